"""Parser turning raw iCal text into calendar events."""
import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from icalendar import Calendar

from processor.models import CalendarEvent

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = 'Booking'


class ParseError(Exception):
    """Raised when a calendar document cannot be tokenized."""


class ICalParser:
    """Parser for iCal (RFC 5545) documents."""
    
    def parse(self, ical_text: str) -> List[CalendarEvent]:
        """
        Parse calendar text into events.
        
        Only VEVENT entries are returned. Entries without a UID, start or
        end are dropped since they cannot be matched to a booking.
        
        Args:
            ical_text: Raw calendar text
            
        Returns:
            List of CalendarEvent objects (empty for an empty calendar)
            
        Raises:
            ParseError: If the document is not a calendar at all
        """
        if not ical_text or 'BEGIN:VCALENDAR' not in ical_text:
            raise ParseError('Failed to parse iCal data: no VCALENDAR found')
        
        try:
            calendar = Calendar.from_ical(ical_text)
        except Exception as e:
            raise ParseError(f'Failed to parse iCal data: {e}') from e
        
        events = []
        dropped = 0
        
        for component in calendar.walk('VEVENT'):
            try:
                event = self._parse_component(component)
            except Exception as e:
                logger.debug(f"Failed to decode calendar entry: {e}")
                event = None
            
            if event:
                events.append(event)
            else:
                dropped += 1
        
        if dropped:
            logger.info(f"Dropped {dropped} calendar entries missing uid/start/end")
        
        logger.info(f"Parsed {len(events)} events from calendar")
        return events
    
    def _parse_component(self, component) -> Optional[CalendarEvent]:
        """
        Convert a single VEVENT component.
        
        Args:
            component: icalendar Event component
            
        Returns:
            CalendarEvent or None if a required field is missing
        """
        uid = str(component.get('UID', '')).strip()
        dtstart = component.get('DTSTART')
        dtend = component.get('DTEND')
        
        if not uid or dtstart is None or dtend is None:
            logger.debug(
                f"Skipping calendar entry without required fields (uid={uid!r})"
            )
            return None
        
        summary = str(component.get('SUMMARY', '')).strip()
        
        return CalendarEvent(
            external_id=uid,
            summary=summary or DEFAULT_SUMMARY,
            description=str(component.get('DESCRIPTION', '')),
            start=self._to_utc(dtstart.dt),
            end=self._to_utc(dtend.dt),
            location=str(component.get('LOCATION', '')),
            organizer=self._flatten_organizer(component.get('ORGANIZER'))
        )
    
    @staticmethod
    def _to_utc(value) -> datetime:
        """
        Normalize an iCal DATE or DATE-TIME value to an aware UTC datetime.
        
        Floating times are read as UTC.
        """
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        raise ValueError(f"Unsupported date value: {value!r}")
    
    @staticmethod
    def _flatten_organizer(organizer) -> str:
        """Reduce an ORGANIZER property to its display name or address."""
        if organizer is None:
            return ''
        
        params = getattr(organizer, 'params', None)
        if params and params.get('CN'):
            return str(params['CN'])
        
        address = str(organizer)
        if address.lower().startswith('mailto:'):
            address = address[len('mailto:'):]
        return address
