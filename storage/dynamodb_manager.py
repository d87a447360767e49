"""DynamoDB manager for property and booking storage operations."""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from processor.models import Booking, CalendarSettings

logger = logging.getLogger(__name__)

MONEY_FIELDS = (
    'base_amount',
    'cleaning_fee',
    'taxes',
    'total_amount',
    'security_deposit'
)


CALENDAR_BOOKING_NAMESPACE = uuid.UUID('6f1c9a52-3d2e-5b8a-9c47-1e0d2b7f4a13')


class PropertyNotFoundError(LookupError):
    """Raised when a property id does not exist."""


def calendar_booking_id(property_id: str, external_id: str) -> str:
    """Deterministic booking id for a (property, calendar event) pair."""
    return str(uuid.uuid5(CALENDAR_BOOKING_NAMESPACE, f'{property_id}:{external_id}'))


class DynamoDBManager:
    """Manager for DynamoDB operations on properties and bookings."""

    EXTERNAL_ID_INDEX = 'property-external-index'

    def __init__(
        self,
        properties_table_name: str,
        bookings_table_name: str,
        region_name: Optional[str] = None
    ):
        """
        Initialize DynamoDB resource and table references.

        Args:
            properties_table_name: Name of the properties table
            bookings_table_name: Name of the bookings table
            region_name: AWS region, or None to use the default chain
        """
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.properties = self.dynamodb.Table(properties_table_name)
        self.bookings = self.dynamodb.Table(bookings_table_name)
        logger.info(
            f"Initialized DynamoDBManager for tables: "
            f"{properties_table_name}, {bookings_table_name}"
        )

    # Properties

    def get_property(self, property_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a property item by id.

        Args:
            property_id: Property identifier

        Returns:
            Raw property item or None if it does not exist
        """
        try:
            response = self.properties.get_item(Key={'property_id': property_id})
        except ClientError as e:
            logger.error(f"Error reading property {property_id}: {e}")
            raise
        return response.get('Item')

    def get_calendar_settings(self, property_id: str) -> Optional[CalendarSettings]:
        item = self.get_property(property_id)
        if item is None:
            return None
        return self._item_to_settings(item)

    def get_sync_enabled_properties(self) -> List[Dict[str, Any]]:
        """
        Scan for properties with sync enabled and a calendar URL.

        Returns:
            List of raw property items
        """
        logger.info("Scanning properties table for sync-enabled properties")
        filter_expression = (
            Attr('sync_enabled').eq(True) &
            Attr('ical_url').exists() &
            Attr('ical_url').ne('')
        )

        try:
            response = self.properties.scan(FilterExpression=filter_expression)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.properties.scan(
                    FilterExpression=filter_expression,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning properties table: {e}")
            raise

        # Items written with an explicit NULL url pass exists()
        items = [item for item in items if item.get('ical_url')]
        logger.info(f"Found {len(items)} sync-enabled properties")
        return items

    def update_calendar_settings(
        self,
        property_id: str,
        ical_url: Optional[str] = None,
        sync_enabled: Optional[bool] = None
    ) -> CalendarSettings:
        """
        Partially update calendar settings on a property.

        Args:
            property_id: Property identifier
            ical_url: New URL; None leaves it unchanged, '' clears it
            sync_enabled: New flag; None leaves it unchanged

        Returns:
            Updated CalendarSettings

        Raises:
            PropertyNotFoundError: If the property does not exist
        """
        set_clauses = []
        remove_clauses = []
        values = {}

        if ical_url is not None:
            if ical_url:
                set_clauses.append('ical_url = :ical_url')
                values[':ical_url'] = ical_url
            else:
                remove_clauses.append('ical_url')
        if sync_enabled is not None:
            set_clauses.append('sync_enabled = :sync_enabled')
            values[':sync_enabled'] = bool(sync_enabled)

        if not set_clauses and not remove_clauses:
            settings = self.get_calendar_settings(property_id)
            if settings is None:
                raise PropertyNotFoundError(property_id)
            return settings

        expression = ''
        if set_clauses:
            expression += 'SET ' + ', '.join(set_clauses)
        if remove_clauses:
            expression += ' REMOVE ' + ', '.join(remove_clauses)

        kwargs = {
            'Key': {'property_id': property_id},
            'UpdateExpression': expression.strip(),
            'ConditionExpression': 'attribute_exists(property_id)',
            'ReturnValues': 'ALL_NEW'
        }
        if values:
            kwargs['ExpressionAttributeValues'] = values

        try:
            response = self.properties.update_item(**kwargs)
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise PropertyNotFoundError(property_id) from e
            logger.error(f"Error updating settings for property {property_id}: {e}")
            raise

        logger.info(f"Updated calendar settings for property {property_id}")
        return self._item_to_settings(response['Attributes'])

    def update_last_sync(self, property_id: str, synced_at: datetime) -> None:
        try:
            self.properties.update_item(
                Key={'property_id': property_id},
                UpdateExpression='SET last_sync_at = :synced_at',
                ExpressionAttributeValues={':synced_at': synced_at.isoformat()}
            )
        except ClientError as e:
            logger.error(f"Error updating last sync for property {property_id}: {e}")
            raise

    # Bookings

    def find_booking_by_external_id(
        self,
        property_id: str,
        external_id: str
    ) -> Optional[Booking]:
        """
        Look up a booking by its (property, external id) dedup key.

        Calendar-sourced bookings are keyed by calendar_booking_id(), so a
        strongly consistent get_item finds them right after they are
        written. The external id index is only consulted for bookings that
        were stored under some other id.

        Args:
            property_id: Property identifier
            external_id: Calendar event UID

        Returns:
            Booking or None if no booking carries that key
        """
        booking = self.get_booking(
            calendar_booking_id(property_id, external_id), consistent=True
        )
        if booking is not None:
            return booking

        try:
            response = self.bookings.query(
                IndexName=self.EXTERNAL_ID_INDEX,
                KeyConditionExpression=(
                    Key('property_id').eq(property_id) &
                    Key('external_id').eq(external_id)
                ),
                Limit=1
            )
        except ClientError as e:
            logger.error(
                f"Error querying booking {external_id} for property {property_id}: {e}"
            )
            raise

        items = response.get('Items', [])
        if not items:
            return None
        return self._item_to_booking(items[0])

    def get_booking(self, booking_id: str, consistent: bool = False) -> Optional[Booking]:
        try:
            response = self.bookings.get_item(
                Key={'booking_id': booking_id},
                ConsistentRead=consistent
            )
        except ClientError as e:
            logger.error(f"Error reading booking {booking_id}: {e}")
            raise
        item = response.get('Item')
        return self._item_to_booking(item) if item else None

    def create_booking(self, booking: Booking) -> Booking:
        """
        Insert a new booking, generating an id when none is set.

        Args:
            booking: Booking to write

        Returns:
            The stored Booking
        """
        now = datetime.now(timezone.utc)
        if not booking.booking_id:
            booking.booking_id = str(uuid.uuid4())
        booking.created_at = booking.created_at or now
        booking.updated_at = now

        try:
            self.bookings.put_item(
                Item=self._booking_to_item(booking),
                ConditionExpression='attribute_not_exists(booking_id)'
            )
        except ClientError as e:
            logger.error(f"Error creating booking {booking.booking_id}: {e}")
            raise

        logger.debug(f"Created booking {booking.booking_id}")
        return booking

    def update_booking_from_calendar(
        self,
        booking_id: str,
        fields: Dict[str, Any]
    ) -> None:
        """
        Overwrite guest, date and note fields on an existing booking.

        Args:
            booking_id: Booking identifier
            fields: Attribute names mapped to new values
        """
        fields = dict(fields)
        fields['updated_at'] = datetime.now(timezone.utc)

        names = {}
        values = {}
        clauses = []
        for name, value in fields.items():
            names[f'#{name}'] = name
            values[f':{name}'] = self._to_dynamo_value(value)
            clauses.append(f'#{name} = :{name}')

        try:
            self.bookings.update_item(
                Key={'booking_id': booking_id},
                UpdateExpression='SET ' + ', '.join(clauses),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ConditionExpression='attribute_exists(booking_id)'
            )
        except ClientError as e:
            logger.error(f"Error updating booking {booking_id}: {e}")
            raise

        logger.debug(f"Updated booking {booking_id}")

    def _item_to_settings(self, item: dict) -> CalendarSettings:
        return CalendarSettings(
            property_id=item['property_id'],
            property_name=item.get('name', ''),
            ical_url=item.get('ical_url') or None,
            sync_enabled=bool(item.get('sync_enabled', False)),
            last_sync_at=self._parse_datetime(item.get('last_sync_at'))
        )

    def _item_to_booking(self, item: dict) -> Booking:
        """
        Convert DynamoDB item to Booking object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Booking object
        """
        return Booking(
            booking_id=item['booking_id'],
            property_id=item['property_id'],
            guest_name=item['guest_name'],
            guest_email=item.get('guest_email'),
            guest_phone=item.get('guest_phone'),
            number_of_guests=int(item.get('number_of_guests', 1)),
            check_in_date=self._parse_datetime(item['check_in_date']),
            check_out_date=self._parse_datetime(item['check_out_date']),
            nights_count=int(item['nights_count']),
            base_amount=Decimal(item.get('base_amount', 0)),
            cleaning_fee=Decimal(item.get('cleaning_fee', 0)),
            taxes=Decimal(item.get('taxes', 0)),
            total_amount=Decimal(item.get('total_amount', 0)),
            security_deposit=Decimal(item.get('security_deposit', 0)),
            booking_status=item.get('booking_status', 'pending'),
            payment_status=item.get('payment_status', 'pending'),
            booking_source=item.get('booking_source'),
            external_id=item.get('external_id'),
            special_requests=item.get('special_requests'),
            internal_notes=item.get('internal_notes'),
            created_at=self._parse_datetime(item.get('created_at')),
            updated_at=self._parse_datetime(item.get('updated_at'))
        )

    def _booking_to_item(self, booking: Booking) -> dict:
        """
        Convert Booking object to DynamoDB item.

        Optional fields that are unset are left off the item so the
        external id index stays sparse.
        """
        item = {}
        for name, value in vars(booking).items():
            if value is None:
                continue
            if name in MONEY_FIELDS:
                value = Decimal(str(value))
            item[name] = self._to_dynamo_value(value)
        return item

    @staticmethod
    def _to_dynamo_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        return datetime.fromisoformat(value)
