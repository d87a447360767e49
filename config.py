"""Environment-driven configuration."""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings shared by the Lambda handler and the scheduler."""
    properties_table_name: str = 'properties'
    bookings_table_name: str = 'bookings'
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    sync_interval_seconds: int = 2 * 60 * 60
    booking_source: str = 'booking.com'
    aws_region: Optional[str] = None


def load_config() -> AppConfig:
    """
    Read configuration from environment variables.
    
    Returns:
        AppConfig with defaults for any unset variable
    """
    return AppConfig(
        properties_table_name=os.environ.get('PROPERTIES_TABLE_NAME', 'properties'),
        bookings_table_name=os.environ.get('BOOKINGS_TABLE_NAME', 'bookings'),
        log_level=os.environ.get('LOG_LEVEL', 'INFO'),
        timeout_seconds=int(os.environ.get('TIMEOUT_SECONDS', '30')),
        sync_interval_seconds=int(os.environ.get('SYNC_INTERVAL_SECONDS', '7200')),
        booking_source=os.environ.get('BOOKING_SOURCE', 'booking.com'),
        aws_region=os.environ.get('AWS_REGION') or None
    )
