"""Reconciliation of calendar events against stored bookings."""
import logging
import math
from datetime import datetime, timezone
from typing import List

from processor.guest_info import extract_guest_info
from processor.models import Booking, CalendarEvent, SyncResult
from storage.dynamodb_manager import DynamoDBManager, calendar_booking_id

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class BookingReconciler:
    """Creates or updates one booking per calendar event."""
    
    def __init__(self, storage: DynamoDBManager, booking_source: str = 'booking.com'):
        """
        Initialize the reconciler.
        
        Args:
            storage: Persistence collaborator for bookings
            booking_source: Platform name recorded on created bookings
        """
        self.storage = storage
        self.booking_source = booking_source
    
    def reconcile_events(
        self,
        property_id: str,
        events: List[CalendarEvent],
        result: SyncResult
    ) -> None:
        """
        Reconcile events one at a time, recording failures on the result.
        
        A failing event never stops the rest of the batch.
        
        Args:
            property_id: Property the calendar belongs to
            events: Parsed calendar events
            result: SyncResult updated in place
        """
        for event in events:
            try:
                self.reconcile_event(property_id, event, result)
            except Exception as e:
                logger.warning(
                    f"Error processing event {event.external_id}: {e}",
                    exc_info=True
                )
                result.errors.append(
                    f"Error processing event {event.external_id}: {e}"
                )
    
    def reconcile_event(
        self,
        property_id: str,
        event: CalendarEvent,
        result: SyncResult
    ) -> None:
        """
        Ensure a current booking exists for a single event.
        
        Args:
            property_id: Property the calendar belongs to
            event: Parsed calendar event
            result: SyncResult updated in place
        """
        logger.debug(f"Processing event {event.external_id}: {event.summary!r}")
        
        nights = math.ceil((event.end - event.start).total_seconds() / SECONDS_PER_DAY)
        if nights <= 0:
            logger.warning(f"Invalid date range for event {event.external_id}")
            result.errors.append(f"Invalid date range for event {event.external_id}")
            return
        
        guest = extract_guest_info(event)
        existing = self.storage.find_booking_by_external_id(
            property_id, event.external_id
        )
        synced_at = datetime.now(timezone.utc).isoformat()
        
        if existing:
            # Financial and status fields are owned by the booking, not the feed
            self.storage.update_booking_from_calendar(existing.booking_id, {
                'guest_name': guest.name,
                'guest_email': guest.email,
                'guest_phone': guest.phone,
                'number_of_guests': guest.guest_count,
                'check_in_date': event.start,
                'check_out_date': event.end,
                'nights_count': nights,
                'special_requests': event.description or None,
                'internal_notes': f"Updated from calendar sync on {synced_at}"
            })
            result.bookings_updated += 1
            return
        
        if guest.is_placeholder:
            notes = (
                f"[PLACEHOLDER] Calendar blocked date - imported from calendar "
                f"sync on {synced_at}"
            )
        else:
            notes = f"Imported from calendar sync on {synced_at}"
        
        self.storage.create_booking(Booking(
            booking_id=calendar_booking_id(property_id, event.external_id),
            property_id=property_id,
            guest_name=guest.name,
            guest_email=guest.email,
            guest_phone=guest.phone,
            number_of_guests=guest.guest_count,
            check_in_date=event.start,
            check_out_date=event.end,
            nights_count=nights,
            booking_status='pending',
            payment_status='pending',
            booking_source=self.booking_source,
            external_id=event.external_id,
            special_requests=event.description or None,
            internal_notes=notes
        ))
        result.bookings_created += 1
