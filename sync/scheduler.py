"""Recurring background scheduler for calendar sync."""
import logging
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sync.calendar_sync_service import CalendarSyncService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 2 * 60 * 60


class SchedulerState(Enum):
    STOPPED = 'stopped'
    STARTING = 'starting'
    RUNNING = 'running'


class CalendarScheduler:
    """
    Runs a full sync pass at startup and then at a fixed interval.
    
    The owner creates one instance at startup and calls stop() on
    shutdown. Passes run on a single worker thread so they never overlap.
    """
    
    def __init__(
        self,
        sync_service: CalendarSyncService,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    ):
        self.sync_service = sync_service
        self.interval_seconds = interval_seconds
        self._state = SchedulerState.STOPPED
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_run_at: Optional[datetime] = None
        self.next_run_at: Optional[datetime] = None
    
    @property
    def state(self) -> SchedulerState:
        return self._state
    
    def start(self) -> None:
        """
        Run the initial sync pass and arm the recurring timer.
        
        Calling start() on a scheduler that is not stopped does nothing.
        """
        with self._state_lock:
            if self._state is not SchedulerState.STOPPED:
                logger.info("Calendar scheduler is already running")
                return
            self._state = SchedulerState.STARTING
            self._stop_event.clear()

        logger.info("Running initial calendar sync on startup")
        self._run_pass('Initial')

        with self._state_lock:
            # stop() may have been called during the initial pass
            if self._state is not SchedulerState.STARTING:
                logger.info("Calendar scheduler stopped during startup")
                return
            self._thread = threading.Thread(
                target=self._run_loop,
                name='calendar-scheduler',
                daemon=True
            )
            self._state = SchedulerState.RUNNING
            self.next_run_at = self._now() + timedelta(seconds=self.interval_seconds)
            self._thread.start()
        
        logger.info(
            f"Calendar scheduler started - will run every "
            f"{self.interval_seconds} seconds"
        )
    
    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Cancel the recurring timer and wait for the worker to exit.
        
        Args:
            timeout: Seconds to wait for an in-flight pass, None waits forever
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        
        with self._state_lock:
            self._thread = None
            self._state = SchedulerState.STOPPED
            self.next_run_at = None
        
        logger.info("Calendar scheduler stopped")
    
    def status(self) -> Dict[str, Any]:
        is_running = self._state is SchedulerState.RUNNING
        return {
            'state': self._state.value,
            'is_running': is_running,
            'interval_seconds': self.interval_seconds,
            'last_run_at': self.last_run_at.isoformat() if self.last_run_at else None,
            'next_run_at': self.next_run_at.isoformat() if self.next_run_at else None
        }
    
    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            logger.info("Starting scheduled calendar sync")
            self._run_pass('Scheduled')
            self.next_run_at = self._now() + timedelta(seconds=self.interval_seconds)
    
    def _run_pass(self, label: str) -> None:
        """Run one sync-all pass, logging totals and swallowing failures."""
        self.last_run_at = self._now()
        
        try:
            results = self.sync_service.sync_all()
        except Exception as e:
            logger.error(f"{label} calendar sync error: {e}", exc_info=True)
            return
        
        total_created = sum(r.bookings_created for r in results)
        total_updated = sum(r.bookings_updated for r in results)
        total_errors = sum(len(r.errors) for r in results)
        
        logger.info(
            f"{label} sync completed: {total_created} created, "
            f"{total_updated} updated, {total_errors} errors",
            extra={
                'properties_synced': len(results),
                'bookings_created': total_created,
                'bookings_updated': total_updated,
                'errors': total_errors
            }
        )
    
    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)
