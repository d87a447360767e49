"""Heuristic extraction of guest details from calendar events.

Platform calendar exports rarely carry structured guest data, so the name
is pulled from the event summary when it looks like a person and otherwise
flagged as a placeholder that needs manual review.
"""
import re

from processor.models import CalendarEvent, GuestInfo

CLOSURE_KEYWORDS = ('closed', 'blocked', 'unavailable', 'not available')

BLOCKED_LABEL = 'Blocked Period - Please Update'
GENERIC_LABEL = 'Calendar Reservation'
REVIEW_SUFFIX = ' - Please Update'

NAME_PATTERN = re.compile(r'^([A-Za-z\s]{2,50})(?:\s*-|\s*\(|$)')
GUEST_COUNT_PATTERN = re.compile(r'(\d+)\s*guests?', re.IGNORECASE)
EMAIL_PATTERN = re.compile(r'([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})')
PHONE_PATTERN = re.compile(r'(?:phone|tel|mobile):\s*([+\d\s\-\(\)]+)', re.IGNORECASE)


def _has_closure_keyword(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in CLOSURE_KEYWORDS)


def extract_guest_info(event: CalendarEvent) -> GuestInfo:
    """
    Derive guest details from an event's summary and description.
    
    Args:
        event: Parsed calendar event
        
    Returns:
        GuestInfo; is_placeholder is True when no real guest name was found
    """
    summary = event.summary
    info = GuestInfo(name=GENERIC_LABEL)
    
    if summary and _has_closure_keyword(summary):
        info.name = BLOCKED_LABEL
    elif summary:
        clean_summary = summary.strip()
        match = NAME_PATTERN.match(clean_summary)
        
        if match and match.group(1).strip() and not _has_closure_keyword(match.group(1)):
            info.name = match.group(1).strip()
            info.is_placeholder = False
        else:
            info.name = f'{clean_summary}{REVIEW_SUFFIX}'
        
        count_match = GUEST_COUNT_PATTERN.search(summary)
        if count_match:
            info.guest_count = max(1, int(count_match.group(1)))
    
    if event.description:
        email_match = EMAIL_PATTERN.search(event.description)
        if email_match:
            info.email = email_match.group(1)
        
        phone_match = PHONE_PATTERN.search(event.description)
        if phone_match and phone_match.group(1).strip():
            info.phone = phone_match.group(1).strip()
    
    return info
