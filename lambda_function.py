"""AWS Lambda handler for rental calendar sync."""
import json
import logging
import time
from typing import Dict, Any
from urllib.parse import urlparse

from config import load_config
from storage.dynamodb_manager import PropertyNotFoundError
from sync.calendar_sync_service import CalendarSyncService


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _is_valid_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return parsed.scheme in ('http', 'https', 'webcal') and bool(parsed.netloc)


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _handle_action(
    service: CalendarSyncService,
    action: str,
    event: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Dispatch a single API action onto the sync service.

    Args:
        service: Calendar sync service
        action: Action name from the invocation payload
        event: Full invocation payload

    Returns:
        Response dict with statusCode and JSON body
    """
    property_id = event.get('property_id')
    ical_url = event.get('ical_url')

    if action == 'test_url':
        if not ical_url:
            return _response(400, {'valid': False, 'error': 'iCal URL is required'})
        if not _is_valid_url(ical_url):
            return _response(400, {'valid': False, 'error': 'Invalid URL format'})
        return _response(200, service.test_url(ical_url).to_dict())

    if not property_id:
        return _response(400, {
            'success': False,
            'message': 'Property ID is required'
        })

    if action == 'sync_property':
        if not ical_url:
            return _response(400, {
                'success': False,
                'message': 'iCal URL is required'
            })
        if not _is_valid_url(ical_url):
            return _response(400, {
                'success': False,
                'message': 'Invalid URL format'
            })
        return _response(200, service.sync_property(property_id, ical_url).to_dict())

    if action == 'sync_stored_property':
        return _response(200, service.sync_stored_property(property_id).to_dict())

    if action == 'get_settings':
        settings = service.get_settings(property_id)
        if settings is None:
            return _response(404, {
                'success': False,
                'message': 'Property not found or no calendar settings configured'
            })
        return _response(200, {'success': True, 'settings': settings.to_dict()})

    if action == 'update_settings':
        sync_enabled = event.get('sync_enabled')
        if sync_enabled is not None and not isinstance(sync_enabled, bool):
            return _response(400, {
                'success': False,
                'message': 'sync_enabled must be a boolean'
            })
        try:
            settings = service.update_settings(
                property_id,
                ical_url=ical_url,
                sync_enabled=sync_enabled
            )
        except PropertyNotFoundError:
            return _response(404, {
                'success': False,
                'message': 'Property not found'
            })
        return _response(200, {
            'success': True,
            'message': 'Calendar settings updated successfully',
            'settings': settings.to_dict()
        })

    return _response(400, {
        'success': False,
        'message': f'Unknown action: {action}'
    })


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for calendar sync.

    Scheduled EventBridge invocations (or payloads without an action) sync
    every enabled property. Payloads with an 'action' key call a single
    sync service operation.

    Args:
        event: EventBridge event or action payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    config = load_config()

    # Initialize logging
    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    action = (event or {}).get('action')
    logger.info(
        f"Lambda execution started",
        extra={
            'action': action or 'sync_all',
            'properties_table': config.properties_table_name,
            'bookings_table': config.bookings_table_name
        }
    )

    try:
        service = CalendarSyncService.from_config(config)

        if action:
            response = _handle_action(service, action, event)
            logger.info(
                f"Action {action} completed with status {response['statusCode']}",
                extra={'duration_seconds': round(time.time() - start_time, 2)}
            )
            return response

        results = service.sync_all()
        duration = time.time() - start_time

        total_created = sum(r.bookings_created for r in results)
        total_updated = sum(r.bookings_updated for r in results)
        total_errors = sum(len(r.errors) for r in results)

        # Log execution summary
        logger.info(
            f"Lambda execution completed: {total_created} created, "
            f"{total_updated} updated, {total_errors} errors",
            extra={
                'duration_seconds': round(duration, 2),
                'properties_synced': len(results)
            }
        )

        return _response(200, {
            'message': 'Sync completed',
            'statistics': {
                'properties_synced': len(results),
                'bookings_created': total_created,
                'bookings_updated': total_updated,
                'errors': total_errors,
                'duration_seconds': round(duration, 2)
            },
            'results': [r.to_dict() for r in results]
        })

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return _response(500, {
            'message': 'Sync failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })
