"""
SQS binding of the queue transport. Queue addresses are queue URLs.
"""

import logging
from typing import Any, Optional

from botocore.client import BaseClient

from queuebridge.models import Message, MessageAttributes
from queuebridge.repository.aws.attributes import from_aws_attributes, to_aws_attributes
from queuebridge.repository.message.abstract_interface import QueueTransportInterface

logger = logging.getLogger(__name__)


class SqsQueueTransport(QueueTransportInterface):
    def __init__(
        self,
        client: BaseClient,
        wait_time_seconds: Optional[int] = None,
        visibility_timeout: Optional[int] = None,
    ) -> None:
        """
        :param client: boto3 SQS client.
        :param wait_time_seconds: Long polling wait for receives, queue default when None.
        :param visibility_timeout: Visibility timeout for received messages, queue default when None.
        """
        self._client = client
        self._wait_time_seconds = wait_time_seconds
        self._visibility_timeout = visibility_timeout

    def create_queue(
        self, name: str, attributes: Optional[dict[str, str]] = None
    ) -> Optional[str]:
        params: dict[str, Any] = {"QueueName": name}
        if attributes:
            params["Attributes"] = attributes
        response = self._client.create_queue(**params)
        return response.get("QueueUrl")

    def resolve_queue_address(self, name: str) -> Optional[str]:
        response = self._client.get_queue_url(QueueName=name)
        return response.get("QueueUrl")

    def send_message(
        self,
        queue_address: str,
        body: str,
        attributes: Optional[MessageAttributes] = None,
    ) -> Optional[str]:
        params: dict[str, Any] = {"QueueUrl": queue_address, "MessageBody": body}
        if attributes:
            params["MessageAttributes"] = to_aws_attributes(attributes)
        response = self._client.send_message(**params)
        return response.get("MessageId")

    def receive_messages(self, queue_address: str, max_count: int) -> list[Message]:
        params: dict[str, Any] = {
            "QueueUrl": queue_address,
            "MaxNumberOfMessages": max_count,
            "MessageAttributeNames": ["All"],
        }
        if self._wait_time_seconds is not None:
            params["WaitTimeSeconds"] = self._wait_time_seconds
        if self._visibility_timeout is not None:
            params["VisibilityTimeout"] = self._visibility_timeout

        response = self._client.receive_message(**params)
        return [
            Message(
                body=raw["Body"],
                attributes=from_aws_attributes(raw.get("MessageAttributes")),
                message_id=raw.get("MessageId"),
                receipt_handle=raw["ReceiptHandle"],
            )
            for raw in response.get("Messages", [])
        ]

    def delete_message(self, queue_address: str, receipt_handle: str) -> None:
        self._client.delete_message(QueueUrl=queue_address, ReceiptHandle=receipt_handle)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(region={self._client.meta.region_name})"
