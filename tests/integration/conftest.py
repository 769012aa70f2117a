"""LocalStack fixtures: the episode table, a DynamoDB-backed store and an SNS topic.

Everything here is skipped unless LocalStack answers on ``LOCALSTACK_URL``.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import boto3
import pytest
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from triageguard.persistence.dynamodb_backend import DynamoDBEpisodeStore

LOCALSTACK_URL = os.environ.get("LOCALSTACK_URL", "http://localhost:4566")
REGION = "us-east-1"
TABLE_SUFFIX = "-inttest"

# fail fast when nothing is listening
_FAST_FAIL_CONFIG = Config(connect_timeout=1, read_timeout=1, retries={"total_max_attempts": 1})


def _episode_table_reachable() -> bool:
    client = boto3.client("dynamodb", region_name=REGION, endpoint_url=LOCALSTACK_URL, config=_FAST_FAIL_CONFIG)
    try:
        client.list_tables(Limit=1)
    except (BotoCoreError, ClientError):
        return False
    return True


skip_no_localstack = pytest.mark.skipif(
    not _episode_table_reachable(),
    reason=f"LocalStack not reachable at {LOCALSTACK_URL}",
)


@pytest.fixture(scope="session")
def localstack_ddb():
    return boto3.resource("dynamodb", region_name=REGION, endpoint_url=LOCALSTACK_URL)


@pytest.fixture(scope="session")
def localstack_sns():
    return boto3.client("sns", region_name=REGION, endpoint_url=LOCALSTACK_URL)


@pytest.fixture(scope="session")
def episode_table(localstack_ddb) -> str:
    """Create the episode table and its queue indexes once per session; yields the suffix."""
    sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "scripts"))
    from create_episode_table import create_table

    create_table(localstack_ddb, suffix=TABLE_SUFFIX)
    return TABLE_SUFFIX


@pytest.fixture
def ddb_store(episode_table) -> DynamoDBEpisodeStore:
    return DynamoDBEpisodeStore(table_suffix=episode_table, region=REGION, endpoint_url=LOCALSTACK_URL)


@pytest.fixture(scope="session")
def notification_topic(localstack_sns) -> str:
    return localstack_sns.create_topic(Name=f"triageguard-notifications{TABLE_SUFFIX}")["TopicArn"]
