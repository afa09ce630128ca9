from __future__ import annotations

from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config

from ...settings import settings

# Services that honour DDB_ENDPOINT_URL (DynamoDB Local in dev).
_LOCAL_ENDPOINT_SERVICES = frozenset({"dynamodb"})


@lru_cache(maxsize=1)
def botocore_config() -> Config:
    # Adaptive mode handles plain throttling; retry.ddb_call covers
    # cancelled transactions, which botocore does not retry.
    return Config(
        retries={"max_attempts": 8, "mode": "adaptive"},
        connect_timeout=2,
        read_timeout=10,
    )


def _client_kwargs(service_name: str) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"region_name": settings.aws_region, "config": botocore_config()}
    url = (settings.ddb_endpoint_url or "").strip()
    if url and service_name in _LOCAL_ENDPOINT_SERVICES:
        kwargs["endpoint_url"] = url
    return kwargs


@lru_cache(maxsize=8)
def aws_client(service_name: str):
    """Shared low-level client for dynamodb, sesv2 and s3."""
    return boto3.client(service_name, **_client_kwargs(service_name))


@lru_cache(maxsize=1)
def dynamodb_resource():
    return boto3.resource("dynamodb", **_client_kwargs("dynamodb"))


def dynamodb_client():
    return aws_client("dynamodb")


def table_resource(table_name: str):
    return dynamodb_resource().Table(table_name)
