import logging

import boto3
from botocore.client import BaseClient
from botocore.config import Config as BotoCoreConfig

from queuebridge.config import AwsTransportConfig

logger = logging.getLogger(__name__)


def build_session(config: AwsTransportConfig) -> boto3.session.Session:
    """Create a boto3 session from explicit credentials, falling back to the default chain when unset."""
    return boto3.session.Session(
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        aws_session_token=config.session_token,
        region_name=config.region,
    )


def build_client(service_name: str, config: AwsTransportConfig) -> BaseClient:
    boto_config = BotoCoreConfig(
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
        # retries belong to the scheduler driving the bridge
        retries={"max_attempts": 1, "mode": "standard"},
    )
    client = build_session(config).client(
        service_name,
        endpoint_url=config.endpoint_url,
        config=boto_config,
    )
    logger.info(
        "%s client created for region %s endpoint %s",
        service_name,
        config.region,
        config.endpoint_url or "default",
    )
    return client


def build_sns_client(config: AwsTransportConfig) -> BaseClient:
    return build_client("sns", config)


def build_sqs_client(config: AwsTransportConfig) -> BaseClient:
    return build_client("sqs", config)
