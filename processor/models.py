"""Data models for calendar sync."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional


@dataclass
class CalendarEvent:
    """Event parsed from an iCal feed."""
    external_id: str
    summary: str
    start: datetime
    end: datetime
    description: str = ''
    location: str = ''
    organizer: str = ''


@dataclass
class GuestInfo:
    """Guest details derived from an event's free text."""
    name: str
    guest_count: int = 1
    email: Optional[str] = None
    phone: Optional[str] = None
    is_placeholder: bool = True


@dataclass
class Booking:
    """Booking record owned by a property."""
    booking_id: str
    property_id: str
    guest_name: str
    check_in_date: datetime
    check_out_date: datetime
    nights_count: int
    number_of_guests: int = 1
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    base_amount: Decimal = Decimal('0')
    cleaning_fee: Decimal = Decimal('0')
    taxes: Decimal = Decimal('0')
    total_amount: Decimal = Decimal('0')
    security_deposit: Decimal = Decimal('0')
    booking_status: str = 'pending'
    payment_status: str = 'pending'
    booking_source: Optional[str] = None
    external_id: Optional[str] = None
    special_requests: Optional[str] = None
    internal_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class CalendarSettings:
    """Calendar sync settings stored on a property."""
    property_id: str
    property_name: str
    ical_url: Optional[str]
    sync_enabled: bool
    last_sync_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'propertyId': self.property_id,
            'propertyName': self.property_name,
            'icalUrl': self.ical_url,
            'syncEnabled': self.sync_enabled,
            'lastSyncAt': (
                self.last_sync_at.isoformat() if self.last_sync_at else None
            )
        }


@dataclass
class SyncResult:
    """Result of a sync operation for one property."""
    success: bool = False
    message: str = ''
    bookings_created: int = 0
    bookings_updated: int = 0
    bookings_skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'bookingsCreated': self.bookings_created,
            'bookingsUpdated': self.bookings_updated,
            'bookingsSkipped': self.bookings_skipped,
            'errors': list(self.errors)
        }


@dataclass
class UrlTestResult:
    """Result of validating a calendar URL without syncing it."""
    valid: bool
    event_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'valid': self.valid, 'eventCount': self.event_count}
        if self.error:
            data['error'] = self.error
        return data
