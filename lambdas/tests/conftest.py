"""Shared pytest fixtures."""

import os

import boto3
import pytest
from moto import mock_aws

from shared.config import reset_config

os.environ.setdefault("TABLE_NAME", "test-table")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "encounter-engine")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "EncounterEngine")


@pytest.fixture(autouse=True)
def env_setup(monkeypatch):
    """Point configuration at the test table for every test."""
    monkeypatch.setenv("TABLE_NAME", "test-table")
    monkeypatch.setenv("MODEL_PROVIDER", "mistral")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def dynamodb_table():
    """Create the single table inside a moto mock."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        table = dynamodb.create_table(
            TableName="test-table",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        table.meta.client.get_waiter("table_exists").wait(TableName="test-table")
        yield table
