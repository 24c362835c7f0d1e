import pathlib
import sys

import pytest
from botocore.exceptions import ClientError

# Ensure project root on sys.path for the top-level modules
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import SweeperConfig  # noqa: E402


def _ok(**extra):
    extra["ResponseMetadata"] = {"HTTPStatusCode": 200}
    return extra


class FakeDynamoClient:
    """In-memory stand-in for the low-level DynamoDB client.

    Only the calls the sweeper makes are implemented. Items use raw
    AttributeValue maps, like the real client.
    """

    def __init__(self, key_schema, attribute_definitions, items=(), missing_describes=0):
        self.key_schema = list(key_schema)
        self.attribute_definitions = list(attribute_definitions)
        self.items = [dict(i) for i in items]
        self.missing_describes = missing_describes
        self.calls = []
        self.deleted = []
        self.fail_delete_at = None
        self.scan_status = 200

    def describe_table(self, TableName):
        self.calls.append(("describe_table", TableName))
        if self.missing_describes > 0:
            self.missing_describes -= 1
            raise ClientError(
                {"Error": {"Code": "ResourceNotFoundException", "Message": "Cannot do operations on a non-existent table"}},
                "DescribeTable",
            )
        return _ok(Table={
            "TableName": TableName,
            "KeySchema": self.key_schema,
            "AttributeDefinitions": self.attribute_definitions,
        })

    def scan(self, TableName, FilterExpression, ProjectionExpression,
             ExpressionAttributeNames, ExpressionAttributeValues):
        self.calls.append(("scan", TableName))
        assert FilterExpression == "#ttl < :now"
        if self.scan_status != 200:
            return {"ResponseMetadata": {"HTTPStatusCode": self.scan_status}}
        ttl_attr = ExpressionAttributeNames["#ttl"]
        now = int(ExpressionAttributeValues[":now"]["N"])
        projected = [ExpressionAttributeNames[p.strip()] for p in ProjectionExpression.split(",")]
        matches = []
        for item in self.items:
            value = item.get(ttl_attr, {})
            if "N" in value and int(value["N"]) < now:
                matches.append({k: v for k, v in item.items() if k in projected})
        return _ok(Items=matches, Count=len(matches))

    def delete_item(self, TableName, Key):
        self.calls.append(("delete_item", TableName))
        if self.fail_delete_at is not None and len(self.deleted) + 1 == self.fail_delete_at:
            self.deleted.append(Key)
            return {"ResponseMetadata": {"HTTPStatusCode": 500}}
        self.deleted.append(Key)
        self.items = [
            i for i in self.items
            if any(i.get(k) != v for k, v in Key.items())
        ]
        return _ok()


class FakeTime:
    def __init__(self, now=2000.0):
        self.now = now
        self.sleeps = []

    def clock(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def config():
    return SweeperConfig(
        endpoint_url="http://localhost:8000",
        region="us-east-1",
        table_name="Sessions",
        ttl_attribute="Expires",
        table_retry_seconds=3,
        poll_interval_seconds=5,
    )


@pytest.fixture()
def fake_time():
    return FakeTime()


@pytest.fixture()
def simple_table():
    return FakeDynamoClient(
        key_schema=[{"AttributeName": "id", "KeyType": "HASH"}],
        attribute_definitions=[{"AttributeName": "id", "AttributeType": "S"}],
        items=[
            {"id": {"S": "a"}, "Expires": {"N": "100"}, "payload": {"S": "secret"}},
            {"id": {"S": "b"}, "Expires": {"N": "9999999999"}},
        ],
    )


@pytest.fixture()
def composite_table():
    return FakeDynamoClient(
        key_schema=[
            {"AttributeName": "pk", "KeyType": "HASH"},
            {"AttributeName": "sk", "KeyType": "RANGE"},
        ],
        attribute_definitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "N"},
        ],
    )
