"""Orchestration of calendar sync across properties."""
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

from config import AppConfig
from feed.ical_fetcher import FetchError, ICalFetcher
from processor.ical_parser import ICalParser, ParseError
from processor.models import CalendarSettings, SyncResult, UrlTestResult
from storage.dynamodb_manager import DynamoDBManager
from sync.reconciler import BookingReconciler

logger = logging.getLogger(__name__)

NOT_ENABLED_ERROR = 'Calendar sync is not enabled for this property'
NOT_FOUND_ERROR = 'Property not found'
IN_PROGRESS_ERROR = 'Sync already in progress for this property'


class CalendarSyncService:
    """Drives fetch, parse and reconcile for one or all properties."""
    
    def __init__(
        self,
        fetcher: ICalFetcher,
        parser: ICalParser,
        storage: DynamoDBManager,
        reconciler: BookingReconciler
    ):
        self.fetcher = fetcher
        self.parser = parser
        self.storage = storage
        self.reconciler = reconciler
        self._active_lock = threading.Lock()
        self._active_properties = set()
    
    @classmethod
    def from_config(cls, config: AppConfig) -> 'CalendarSyncService':
        """
        Build a service wired to real HTTP and DynamoDB collaborators.
        
        Args:
            config: Application configuration
            
        Returns:
            CalendarSyncService instance
        """
        storage = DynamoDBManager(
            properties_table_name=config.properties_table_name,
            bookings_table_name=config.bookings_table_name,
            region_name=config.aws_region
        )
        return cls(
            fetcher=ICalFetcher(timeout=config.timeout_seconds),
            parser=ICalParser(),
            storage=storage,
            reconciler=BookingReconciler(storage, config.booking_source)
        )
    
    def sync_property(self, property_id: str, ical_url: str) -> SyncResult:
        """
        Sync one property against an explicit calendar URL.
        
        Args:
            property_id: Property identifier
            ical_url: Calendar export URL
            
        Returns:
            SyncResult; never raises
        """
        result = SyncResult()
        
        if not self._acquire(property_id):
            logger.warning(f"Sync already running for property {property_id}")
            result.message = IN_PROGRESS_ERROR
            result.errors.append(IN_PROGRESS_ERROR)
            return result
        
        try:
            self._sync(property_id, ical_url, result)
        except Exception as e:
            logger.error(
                f"Calendar sync error for property {property_id}: {e}",
                exc_info=True
            )
            result.success = False
            result.message = 'Sync failed'
            result.errors.append(f"Sync failed: {e}")
        finally:
            self._release(property_id)
        
        return result
    
    def _sync(self, property_id: str, ical_url: str, result: SyncResult) -> None:
        prop = self.storage.get_property(property_id)
        if prop is None:
            result.message = NOT_FOUND_ERROR
            result.errors.append(NOT_FOUND_ERROR)
            return
        
        name = prop.get('name', property_id)
        logger.info(f"Starting calendar sync for property: {name}")
        
        try:
            events = self.parser.parse(self.fetcher.fetch(ical_url))
        except (FetchError, ParseError) as e:
            logger.error(f"Calendar download failed for property {name}: {e}")
            result.message = 'Sync failed'
            result.errors.append(f"Sync failed: {e}")
            return
        
        logger.info(f"Downloaded {len(events)} events from calendar")
        self.reconciler.reconcile_events(property_id, events, result)
        
        self.storage.update_last_sync(property_id, datetime.now(timezone.utc))
        
        result.success = not result.errors
        if result.success:
            result.message = (
                f"Sync completed successfully. Created: {result.bookings_created}, "
                f"Updated: {result.bookings_updated}, "
                f"Skipped: {result.bookings_skipped}"
            )
        else:
            result.message = f"Sync completed with {len(result.errors)} errors"
        
        logger.info(f"Calendar sync completed for property {name}: {result.message}")
    
    def sync_stored_property(self, property_id: str) -> SyncResult:
        """
        Sync one property using its stored calendar settings.
        
        No network call is made when sync is disabled or no URL is set.
        
        Args:
            property_id: Property identifier
            
        Returns:
            SyncResult; never raises
        """
        result = SyncResult()
        
        try:
            settings = self.storage.get_calendar_settings(property_id)
        except Exception as e:
            logger.error(f"Sync error for property {property_id}: {e}", exc_info=True)
            result.message = 'Sync failed'
            result.errors.append(str(e))
            return result
        
        if settings is None:
            result.message = NOT_FOUND_ERROR
            result.errors.append(NOT_FOUND_ERROR)
            return result
        
        if not settings.sync_enabled or not settings.ical_url:
            result.message = NOT_ENABLED_ERROR
            result.errors.append(NOT_ENABLED_ERROR)
            return result
        
        return self.sync_property(property_id, settings.ical_url)
    
    def sync_all(self) -> List[SyncResult]:
        """
        Sync every property that has sync enabled and a calendar URL.
        
        Properties are processed one after another; a failure on one does
        not stop the others.
        
        Returns:
            One SyncResult per property
        """
        try:
            properties = self.storage.get_sync_enabled_properties()
        except Exception as e:
            logger.error(f"Failed to list sync-enabled properties: {e}", exc_info=True)
            return [SyncResult(message='Sync failed', errors=[f"Sync failed: {e}"])]

        logger.info(f"Starting sync for {len(properties)} properties")
        
        results = []
        for prop in properties:
            results.append(self.sync_stored_property(prop['property_id']))
        
        return results
    
    def test_url(self, ical_url: str) -> UrlTestResult:
        """
        Check that a URL serves a parseable calendar, without saving anything.
        
        Args:
            ical_url: Calendar export URL
            
        Returns:
            UrlTestResult with the number of events found
        """
        try:
            events = self.parser.parse(self.fetcher.fetch(ical_url))
        except (FetchError, ParseError) as e:
            logger.info(f"Calendar URL test failed for {ical_url}: {e}")
            return UrlTestResult(valid=False, event_count=0, error=str(e))
        
        return UrlTestResult(valid=True, event_count=len(events))
    
    def get_settings(self, property_id: str) -> Optional[CalendarSettings]:
        return self.storage.get_calendar_settings(property_id)
    
    def update_settings(
        self,
        property_id: str,
        ical_url: Optional[str] = None,
        sync_enabled: Optional[bool] = None
    ) -> CalendarSettings:
        """
        Update the stored calendar URL and/or sync flag.
        
        Raises:
            PropertyNotFoundError: If the property does not exist
        """
        return self.storage.update_calendar_settings(
            property_id, ical_url=ical_url, sync_enabled=sync_enabled
        )
    
    def _acquire(self, property_id: str) -> bool:
        with self._active_lock:
            if property_id in self._active_properties:
                return False
            self._active_properties.add(property_id)
            return True
    
    def _release(self, property_id: str) -> None:
        with self._active_lock:
            self._active_properties.discard(property_id)
