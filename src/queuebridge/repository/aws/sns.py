"""
SNS binding of the topic transport.

Topic ids are ARNs (``arn:aws:sns:<region>:<account>:<name>``); the queue
subscriber endpoint is the matching SQS ARN.
"""

import logging
from typing import Any, Optional

from botocore.client import BaseClient

from queuebridge.models import MessageAttributes, PublishTarget
from queuebridge.repository.aws.attributes import to_aws_attributes
from queuebridge.repository.message.abstract_interface import TopicTransportInterface

logger = logging.getLogger(__name__)

PROTOCOL_SNS = "sns"
PROTOCOL_SQS = "sqs"


class SnsTopicTransport(TopicTransportInterface):
    topic_protocol = PROTOCOL_SNS
    queue_protocol = PROTOCOL_SQS

    def __init__(self, client: BaseClient) -> None:
        self._client = client

    def create_topic(self, name: str) -> Optional[str]:
        response = self._client.create_topic(Name=name)
        return response.get("TopicArn")

    def subscribe(
        self,
        topic_id: str,
        endpoint: Optional[str],
        protocol: str,
        raw_delivery: bool = False,
    ) -> Optional[str]:
        params: dict[str, Any] = {"TopicArn": topic_id, "Protocol": protocol}
        if endpoint is not None:
            params["Endpoint"] = endpoint
        if raw_delivery:
            params["Attributes"] = {"RawMessageDelivery": "true"}

        response = self._client.subscribe(**params)
        return response.get("SubscriptionArn")

    def publish(
        self,
        body: str,
        attributes: MessageAttributes,
        target: PublishTarget,
        subject: Optional[str] = None,
        message_structure: Optional[str] = None,
    ) -> Optional[str]:
        params: dict[str, Any] = {"Message": body}
        if attributes:
            params["MessageAttributes"] = to_aws_attributes(attributes)
        if subject is not None:
            params["Subject"] = subject
        if message_structure is not None:
            # "json": body maps each protocol to its own payload
            params["MessageStructure"] = message_structure
        if target.topic_id:
            params["TopicArn"] = target.topic_id
        elif target.target_id:
            params["TargetArn"] = target.target_id
        else:
            params["PhoneNumber"] = target.phone_number

        response = self._client.publish(**params)
        return response.get("MessageId")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(region={self._client.meta.region_name})"
