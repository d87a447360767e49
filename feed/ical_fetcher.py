"""HTTP fetcher for remote iCal feeds."""
import logging
from enum import Enum
from typing import Optional

import requests

logger = logging.getLogger(__name__)

CALENDAR_MARKER = 'BEGIN:VCALENDAR'


class FetchErrorKind(Enum):
    """Category of a failed calendar download."""
    TIMEOUT = 'timeout'
    NOT_FOUND = 'not_found'
    HTTP = 'http'
    NETWORK = 'network'
    MALFORMED = 'malformed'


class FetchError(Exception):
    """Raised when a calendar cannot be downloaded."""

    def __init__(
        self,
        message: str,
        kind: FetchErrorKind,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class ICalFetcher:
    """Downloads raw calendar text from booking platforms."""
    
    DEFAULT_USER_AGENT = 'RentalCalendarSync/1.0'
    
    def __init__(self, timeout: int = 30, user_agent: str = DEFAULT_USER_AGENT):
        """
        Initialize the calendar fetcher.
        
        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            user_agent: User-Agent header sent with every request
        """
        self.timeout = timeout
        self.user_agent = user_agent
    
    def fetch(self, url: str) -> str:
        """
        Fetch raw iCal text from a URL.
        
        A single attempt is made; callers decide what a failure means.
        
        Args:
            url: Calendar export URL
            
        Returns:
            Response body as text
            
        Raises:
            FetchError: On timeout, network failure, error status or a
                body that is not calendar data
        """
        logger.info(f"Fetching calendar from {url}")
        
        try:
            response = requests.get(
                url,
                timeout=self.timeout,
                headers={'User-Agent': self.user_agent}
            )
            response.raise_for_status()
        except requests.Timeout as e:
            logger.warning(f"Calendar request timed out: {e}")
            raise FetchError(
                'URL request timed out', FetchErrorKind.TIMEOUT
            ) from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.warning(f"Calendar request returned HTTP {status}")
            if status == 404:
                raise FetchError(
                    'URL not found (404)', FetchErrorKind.NOT_FOUND, status
                ) from e
            raise FetchError(
                f'HTTP error: {status}', FetchErrorKind.HTTP, status
            ) from e
        except requests.RequestException as e:
            logger.warning(f"Calendar request failed: {e}")
            raise FetchError(
                f'Failed to download calendar: {e}', FetchErrorKind.NETWORK
            ) from e
        
        body = response.text
        if CALENDAR_MARKER not in body:
            raise FetchError(
                'URL does not return valid iCal data',
                FetchErrorKind.MALFORMED,
                response.status_code
            )
        
        logger.info(f"Downloaded {len(body)} bytes of calendar data")
        return body
