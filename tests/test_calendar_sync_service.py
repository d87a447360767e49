"""Unit tests for CalendarSyncService."""
import threading
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from feed.ical_fetcher import FetchError, FetchErrorKind, ICalFetcher
from processor.ical_parser import ICalParser
from storage.dynamodb_manager import PropertyNotFoundError
from sync.calendar_sync_service import CalendarSyncService
from sync.reconciler import BookingReconciler

URL_A = "https://example.com/a.ics"
URL_B = "https://example.com/b.ics"

JANE_ROE_ICAL = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Booking.com//EN
BEGIN:VEVENT
UID:abc123
DTSTART;VALUE=DATE:20250301
DTEND;VALUE=DATE:20250304
SUMMARY:Jane Roe
END:VEVENT
END:VCALENDAR
"""

MIXED_ICAL = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Booking.com//EN
BEGIN:VEVENT
UID:good-1
DTSTART;VALUE=DATE:20250401
DTEND;VALUE=DATE:20250403
SUMMARY:CLOSED - Not available
END:VEVENT
BEGIN:VEVENT
UID:bad-range
DTSTART;VALUE=DATE:20250410
DTEND;VALUE=DATE:20250410
SUMMARY:John Doe
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def fetcher():
    return Mock(spec=ICalFetcher)


@pytest.fixture
def service(fetcher, dynamodb_manager):
    return CalendarSyncService(
        fetcher=fetcher,
        parser=ICalParser(),
        storage=dynamodb_manager,
        reconciler=BookingReconciler(dynamodb_manager)
    )


def put_property(table, property_id, **attrs):
    item = {'property_id': property_id, 'name': f'Property {property_id}'}
    item.update(attrs)
    table.put_item(Item=item)


class TestSyncProperty:
    """Test cases for syncing one property by URL."""
    
    def test_first_sync_creates_booking(self, service, fetcher, properties_table,
                                        dynamodb_manager):
        """Test the first pass creates the booking for a new event."""
        put_property(properties_table, 'prop-1')
        fetcher.fetch.return_value = JANE_ROE_ICAL
        
        result = service.sync_property('prop-1', URL_A)
        
        assert result.success is True
        assert result.bookings_created == 1
        assert result.bookings_updated == 0
        assert result.message == (
            "Sync completed successfully. Created: 1, Updated: 0, Skipped: 0"
        )
        booking = dynamodb_manager.find_booking_by_external_id('prop-1', 'abc123')
        assert booking.nights_count == 3
        assert booking.guest_name == 'Jane Roe'
        assert booking.booking_status == 'pending'
        fetcher.fetch.assert_called_once_with(URL_A)
    
    def test_second_sync_is_idempotent(self, service, fetcher, properties_table,
                                       bookings_table):
        """Test syncing the same calendar twice updates instead of creating."""
        put_property(properties_table, 'prop-1')
        fetcher.fetch.return_value = JANE_ROE_ICAL
        
        service.sync_property('prop-1', URL_A)
        result = service.sync_property('prop-1', URL_A)
        
        assert result.bookings_created == 0
        assert result.bookings_updated == 1
        assert len(bookings_table.scan()['Items']) == 1
    
    def test_sync_updates_last_sync_even_with_event_errors(
        self, service, fetcher, properties_table, dynamodb_manager
    ):
        """Test event errors mark the result failed but still record the sync."""
        put_property(properties_table, 'prop-1')
        fetcher.fetch.return_value = MIXED_ICAL
        
        result = service.sync_property('prop-1', URL_A)
        
        assert result.success is False
        assert result.bookings_created == 1
        assert result.errors == ['Invalid date range for event bad-range']
        assert result.message == "Sync completed with 1 errors"
        assert dynamodb_manager.get_calendar_settings('prop-1').last_sync_at is not None
    
    def test_sync_unknown_property(self, service, fetcher):
        """Test a missing property fails without fetching."""
        result = service.sync_property('missing', URL_A)
        
        assert result.success is False
        assert result.errors == ['Property not found']
        fetcher.fetch.assert_not_called()
    
    def test_sync_fetch_failure(self, service, fetcher, properties_table,
                                dynamodb_manager):
        """Test a fetch error is returned as a failed result."""
        put_property(properties_table, 'prop-1')
        fetcher.fetch.side_effect = FetchError(
            'URL request timed out', FetchErrorKind.TIMEOUT
        )
        
        result = service.sync_property('prop-1', URL_A)
        
        assert result.success is False
        assert result.message == 'Sync failed'
        assert result.errors == ['Sync failed: URL request timed out']
        assert dynamodb_manager.get_calendar_settings('prop-1').last_sync_at is None
    
    def test_sync_parse_failure(self, service, fetcher, properties_table):
        """Test an unparseable document is returned as a failed result."""
        put_property(properties_table, 'prop-1')
        fetcher.fetch.return_value = "garbage"
        
        result = service.sync_property('prop-1', URL_A)
        
        assert result.success is False
        assert result.errors[0].startswith('Sync failed:')
    
    def test_sync_unexpected_error_is_caught(self, fetcher):
        """Test programmer errors still produce a structured result."""
        storage = Mock()
        storage.get_property.side_effect = RuntimeError('boom')
        service = CalendarSyncService(fetcher, ICalParser(), storage, Mock())
        
        result = service.sync_property('prop-1', URL_A)
        
        assert result.success is False
        assert result.errors == ['Sync failed: boom']
    
    def test_concurrent_sync_of_same_property_rejected(self, fetcher):
        """Test a second sync of a property already syncing is refused."""
        storage = Mock()
        storage.get_property.return_value = {'property_id': 'prop-1', 'name': 'A'}
        entered = threading.Event()
        release = threading.Event()
        
        def slow_fetch(url):
            entered.set()
            release.wait(5)
            return JANE_ROE_ICAL
        
        fetcher.fetch.side_effect = slow_fetch
        service = CalendarSyncService(fetcher, ICalParser(), storage, Mock())
        
        worker = threading.Thread(target=service.sync_property, args=('prop-1', URL_A))
        worker.start()
        assert entered.wait(5)
        
        result = service.sync_property('prop-1', URL_A)
        release.set()
        worker.join(5)
        
        assert result.success is False
        assert result.errors == ['Sync already in progress for this property']


class TestSyncStoredProperty:
    """Test cases for syncing with stored settings."""
    
    def test_disabled_sync_makes_no_request(self, service, fetcher, properties_table):
        """Test disabled properties are rejected without network I/O."""
        put_property(properties_table, 'prop-1', sync_enabled=False, ical_url=URL_A)
        
        result = service.sync_stored_property('prop-1')
        
        assert result.success is False
        assert result.errors == ['Calendar sync is not enabled for this property']
        fetcher.fetch.assert_not_called()
    
    def test_missing_url_makes_no_request(self, service, fetcher, properties_table):
        """Test enabled properties without a URL are rejected."""
        put_property(properties_table, 'prop-1', sync_enabled=True)
        
        result = service.sync_stored_property('prop-1')
        
        assert result.success is False
        fetcher.fetch.assert_not_called()
    
    def test_uses_stored_url(self, service, fetcher, properties_table):
        """Test the stored URL is fetched."""
        put_property(properties_table, 'prop-1', sync_enabled=True, ical_url=URL_A)
        fetcher.fetch.return_value = JANE_ROE_ICAL
        
        result = service.sync_stored_property('prop-1')
        
        assert result.success is True
        fetcher.fetch.assert_called_once_with(URL_A)
    
    def test_unknown_property(self, service):
        result = service.sync_stored_property('missing')
        
        assert result.success is False
        assert result.errors == ['Property not found']


class TestSyncAll:
    """Test cases for bulk sync."""
    
    def test_one_failure_does_not_stop_others(self, service, fetcher,
                                              properties_table):
        """Test property B succeeds even when property A's fetch fails."""
        put_property(properties_table, 'prop-a', sync_enabled=True, ical_url=URL_A)
        put_property(properties_table, 'prop-b', sync_enabled=True, ical_url=URL_B)
        put_property(properties_table, 'prop-c', sync_enabled=False, ical_url=URL_B)
        
        def fetch(url):
            if url == URL_A:
                raise FetchError('Failed to download calendar: refused',
                                 FetchErrorKind.NETWORK)
            return JANE_ROE_ICAL
        
        fetcher.fetch.side_effect = fetch
        
        results = service.sync_all()
        
        assert len(results) == 2
        assert sorted(r.success for r in results) == [False, True]
        assert sum(r.bookings_created for r in results) == 1
    
    def test_property_scan_failure_returns_result(self, fetcher):
        """Test a failing property scan is reported, not raised."""
        storage = Mock()
        storage.get_sync_enabled_properties.side_effect = ClientError(
            {'Error': {'Code': 'ResourceNotFoundException', 'Message': 'no table'}},
            'Scan'
        )
        service = CalendarSyncService(fetcher, ICalParser(), storage, Mock())

        results = service.sync_all()

        assert len(results) == 1
        assert results[0].success is False
        assert results[0].message == 'Sync failed'
        assert results[0].errors[0].startswith('Sync failed:')
        assert 'no table' in results[0].errors[0]
        fetcher.fetch.assert_not_called()

    def test_no_enabled_properties(self, service, fetcher):
        assert service.sync_all() == []
        fetcher.fetch.assert_not_called()


class TestTestUrl:
    """Test cases for URL validation."""
    
    def test_valid_url(self, service, fetcher, bookings_table):
        """Test a valid URL reports its event count and writes nothing."""
        fetcher.fetch.return_value = MIXED_ICAL
        
        result = service.test_url(URL_A)
        
        assert result.valid is True
        assert result.event_count == 2
        assert result.to_dict() == {'valid': True, 'eventCount': 2}
        assert bookings_table.scan()['Items'] == []
    
    def test_invalid_url(self, service, fetcher):
        """Test a failing fetch is reported as invalid."""
        fetcher.fetch.side_effect = FetchError(
            'URL not found (404)', FetchErrorKind.NOT_FOUND, 404
        )
        
        result = service.test_url(URL_A)
        
        assert result.valid is False
        assert result.event_count == 0
        assert result.error == 'URL not found (404)'


class TestSettings:
    """Test cases for settings accessors."""
    
    def test_get_settings_missing(self, service):
        assert service.get_settings('missing') is None
    
    def test_update_then_get(self, service, properties_table):
        """Test updated settings are returned by get_settings."""
        put_property(properties_table, 'prop-1')
        
        service.update_settings('prop-1', ical_url=URL_A, sync_enabled=True)
        settings = service.get_settings('prop-1')
        
        assert settings.ical_url == URL_A
        assert settings.sync_enabled is True
        assert settings.to_dict()['icalUrl'] == URL_A
    
    def test_update_missing_property(self, service):
        with pytest.raises(PropertyNotFoundError):
            service.update_settings('missing', sync_enabled=True)
