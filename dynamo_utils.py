# dynamo_utils.py

import json
import logging
from typing import Any, Dict, Mapping

import boto3
from botocore.config import Config

from config import SweeperConfig

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 2
READ_TIMEOUT = 12
# Requests are sent once; failures surface on the first attempt.
TOTAL_MAX_ATTEMPTS = 1


def botocore_config() -> Config:
    return Config(
        retries={"total_max_attempts": TOTAL_MAX_ATTEMPTS, "mode": "standard"},
        connect_timeout=CONNECT_TIMEOUT,
        read_timeout=READ_TIMEOUT,
    )


def make_dynamodb_client(config: SweeperConfig):
    """Low-level client for the emulator endpoint (e.g. DynamoDB Local)."""
    logger.info("DynamoDB client: endpoint=%s region=%s", config.endpoint_url, config.region)
    return boto3.client(
        "dynamodb",
        endpoint_url=config.endpoint_url,
        region_name=config.region,
        config=botocore_config(),
    )


def http_status(response: Mapping[str, Any]) -> Any:
    return (response.get("ResponseMetadata") or {}).get("HTTPStatusCode")


def error_code(exc: Exception) -> str:
    response = getattr(exc, "response", None) or {}
    return (response.get("Error") or {}).get("Code", "")


def format_key(key: Dict[str, Any]) -> str:
    # Keys carry raw AttributeValues, e.g. {"id": {"S": "a"}}
    return json.dumps(key, sort_keys=True, default=str)
