# ttl_sweeper.py

import time
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from botocore.exceptions import ClientError

from config import SweeperConfig
from dynamo_utils import error_code, format_key, http_status

logger = logging.getLogger(__name__)

ItemKey = Dict[str, Dict[str, Any]]

HASH = "HASH"
RANGE = "RANGE"


class SweeperError(Exception):
    pass


class StoreRequestError(SweeperError):
    pass


class TableSchemaError(SweeperError):
    pass


class TableNotFoundError(SweeperError):
    def __init__(self, table_name: str):
        super().__init__(f"Table '{table_name}' not found")
        self.table_name = table_name


@dataclass(frozen=True)
class KeyDescriptor:
    partition_attribute: str
    sort_attribute: Optional[str] = None

    @property
    def attributes(self) -> List[str]:
        if self.sort_attribute:
            return [self.partition_attribute, self.sort_attribute]
        return [self.partition_attribute]


class SweeperState(Enum):
    RESOLVING = "resolving"
    RUNNING = "running"


# ---------- Schema resolver ----------

def resolve_key_schema(client, table_name: str) -> KeyDescriptor:
    """Describes the table and works out its partition and sort key names.

    Raises TableNotFoundError while the table does not exist yet; any other
    client error propagates unchanged.
    """
    try:
        response = client.describe_table(TableName=table_name)
    except ClientError as e:
        if error_code(e) == "ResourceNotFoundException":
            raise TableNotFoundError(table_name) from e
        raise

    # botocore raises ClientError on non-2xx; this covers clients that return the status instead.
    table = response.get("Table")
    if http_status(response) != 200 or not table:
        raise StoreRequestError(f"Failed to describe DynamoDB table '{table_name}': {response}")
    if not table.get("KeySchema"):
        raise TableSchemaError(f"No key schema defined on DynamoDB table '{table_name}'")

    attribute_types = {
        d.get("AttributeName"): d.get("AttributeType")
        for d in table.get("AttributeDefinitions") or []
    }
    partition, sort = None, None
    for entry in table["KeySchema"]:
        name = entry.get("AttributeName")
        if not attribute_types.get(name):
            logger.warning("Could not find attribute definition or type for key '%s'", name)
            continue
        key_type = entry.get("KeyType")
        if key_type == HASH:
            partition = name
        elif key_type == RANGE:
            sort = name
        else:
            logger.warning("Key '%s' was not key type HASH or RANGE (got %r)", name, key_type)

    if not partition:
        raise TableSchemaError(f"No usable partition key on DynamoDB table '{table_name}'")
    return KeyDescriptor(partition_attribute=partition, sort_attribute=sort)


# ---------- Expiration scanner ----------

def get_expired_item_keys(
    client,
    table_name: str,
    ttl_attribute: str,
    key_descriptor: KeyDescriptor,
    *,
    now: float,
) -> List[ItemKey]:
    key_attrs = key_descriptor.attributes
    names = {"#ttl": ttl_attribute}
    names.update({f"#k{i}": attr for i, attr in enumerate(key_attrs)})

    # Single page only; anything past LastEvaluatedKey is swept on a later cycle.
    response = client.scan(
        TableName=table_name,
        FilterExpression="#ttl < :now",
        ProjectionExpression=", ".join(f"#k{i}" for i in range(len(key_attrs))),
        ExpressionAttributeNames=names,
        ExpressionAttributeValues={":now": {"N": str(int(now))}},
    )
    # botocore raises ClientError on non-2xx; this covers clients that return the status instead.
    if http_status(response) != 200:
        raise StoreRequestError(f"Failed to scan DynamoDB items: {response}")

    if response.get("LastEvaluatedKey"):
        logger.warning(
            "Scan of '%s' was truncated; remaining expired items wait for the next cycle",
            table_name,
        )

    keys: List[ItemKey] = []
    for item in response.get("Items") or []:
        missing = [attr for attr in key_attrs if attr not in item]
        if missing:
            logger.warning("Skipping scanned item without key attribute(s) %s", missing)
            continue
        keys.append({attr: item[attr] for attr in key_attrs})
    return keys


# ---------- Item deleter ----------

def delete_items(client, table_name: str, keys: Sequence[ItemKey]) -> int:
    for key in keys:
        logger.info("Deleting DynamoDB item with key: '%s'", format_key(key))
        response = client.delete_item(TableName=table_name, Key=key)
        # botocore raises ClientError on non-2xx; this covers clients that return the status instead.
        if http_status(response) != 200:
            raise StoreRequestError(f"Failed to delete DynamoDB item with key '{format_key(key)}'")
    return len(keys)


# ---------- Orchestration ----------

class TtlSweeper:
    """Polls the table and deletes items whose TTL attribute has passed.

    Starts in RESOLVING until the table can be described, then stays in
    RUNNING. Only a missing table is retried; every other error escapes.
    """

    def __init__(
        self,
        client,
        config: SweeperConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.config = config
        self.sleep = sleep
        self.clock = clock
        self.state = SweeperState.RESOLVING
        self.key_descriptor: Optional[KeyDescriptor] = None

    def wait_for_key_schema(self) -> KeyDescriptor:
        table_name = self.config.table_name
        delay = self.config.table_retry_seconds
        while True:
            try:
                descriptor = resolve_key_schema(self.client, table_name)
                break
            except TableNotFoundError:
                logger.warning("Table '%s' not found, trying again in '%s' seconds", table_name, delay)
                self.sleep(delay)

        logger.info("Resolved key schema for '%s': %s", table_name, descriptor)
        self.key_descriptor = descriptor
        self.state = SweeperState.RUNNING
        return descriptor

    def run_cycle(self, key_descriptor: KeyDescriptor) -> int:
        logger.info("Scanning for new expired DynamoDB items...")
        keys = get_expired_item_keys(
            self.client,
            self.config.table_name,
            self.config.ttl_attribute,
            key_descriptor,
            now=self.clock(),
        )
        if not keys:
            logger.info("No expired items to delete")
            return 0
        logger.info("Found %s expired item(s)", len(keys))
        return delete_items(self.client, self.config.table_name, keys)

    def run(self, max_cycles: Optional[int] = None) -> None:
        descriptor = self.key_descriptor or self.wait_for_key_schema()
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            self.run_cycle(descriptor)
            cycles += 1
            logger.info("Sleeping for %s seconds...", self.config.poll_interval_seconds)
            self.sleep(self.config.poll_interval_seconds)
