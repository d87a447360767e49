"""Shared fixtures for DynamoDB-backed tests."""
import boto3
import pytest
from moto import mock_aws

from storage.dynamodb_manager import DynamoDBManager

PROPERTIES_TABLE = 'test-properties'
BOOKINGS_TABLE = 'test-bookings'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never touches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb_tables():
    """Create mock properties and bookings tables."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        
        properties = dynamodb.create_table(
            TableName=PROPERTIES_TABLE,
            KeySchema=[
                {'AttributeName': 'property_id', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'property_id', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        
        bookings = dynamodb.create_table(
            TableName=BOOKINGS_TABLE,
            KeySchema=[
                {'AttributeName': 'booking_id', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'booking_id', 'AttributeType': 'S'},
                {'AttributeName': 'property_id', 'AttributeType': 'S'},
                {'AttributeName': 'external_id', 'AttributeType': 'S'}
            ],
            GlobalSecondaryIndexes=[
                {
                    'IndexName': DynamoDBManager.EXTERNAL_ID_INDEX,
                    'KeySchema': [
                        {'AttributeName': 'property_id', 'KeyType': 'HASH'},
                        {'AttributeName': 'external_id', 'KeyType': 'RANGE'}
                    ],
                    'Projection': {'ProjectionType': 'ALL'}
                }
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        
        yield properties, bookings


@pytest.fixture
def dynamodb_manager(dynamodb_tables):
    """Create DynamoDBManager instance with mock tables."""
    return DynamoDBManager(PROPERTIES_TABLE, BOOKINGS_TABLE, region_name='us-east-1')


@pytest.fixture
def properties_table(dynamodb_tables):
    return dynamodb_tables[0]


@pytest.fixture
def bookings_table(dynamodb_tables):
    return dynamodb_tables[1]
