"""Long-running process that keeps calendars in sync on a timer."""
import logging
import signal
import threading

from config import load_config
from lambda_function import setup_logging
from sync.calendar_sync_service import CalendarSyncService
from sync.scheduler import CalendarScheduler

logger = logging.getLogger(__name__)


def main() -> None:
    """Start the scheduler and block until SIGINT or SIGTERM."""
    config = load_config()
    setup_logging(config.log_level)
    
    service = CalendarSyncService.from_config(config)
    scheduler = CalendarScheduler(service, interval_seconds=config.sync_interval_seconds)
    
    shutdown = threading.Event()
    
    def _request_shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        shutdown.set()
    
    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)
    
    scheduler.start()
    try:
        shutdown.wait()
    finally:
        scheduler.stop()


if __name__ == '__main__':
    main()
