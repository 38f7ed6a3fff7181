"""
SNS/SQS bindings of the bridge transports, built on boto3.
"""

from .session import build_sns_client, build_sqs_client
from .sns import SnsTopicTransport
from .sqs import SqsQueueTransport

__all__ = [
    "build_sns_client",
    "build_sqs_client",
    "SnsTopicTransport",
    "SqsQueueTransport",
]
