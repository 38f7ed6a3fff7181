import logging
import threading
import uuid
from typing import Callable, Optional

from amqpstorm import Channel, Connection

from queuebridge.models import Message, MessageAttributes
from queuebridge.repository.message.abstract_interface import QueueTransportInterface
from queuebridge.repository.rabbitmq.util import (
    QUEUE_PROTOCOL,
    build_address,
    decode_headers,
    encode_headers,
    parse_address,
    queue_arguments,
)

logger = logging.getLogger(__name__)


class RabbitQueueTransport(QueueTransportInterface):
    """
    Queues consumed with ``basic.get`` and acknowledged with ``basic.ack``.

    Delivery tags are only valid on the channel that received them, so a
    receipt handle is ``<channel generation>.<delivery tag>`` and every handle
    handed out is tracked until acked. Acking an unknown or stale handle is
    refused before it reaches the broker, which would otherwise close the
    channel and requeue every other outstanding delivery on it.
    """

    def __init__(
        self, connection_provider: Callable[[], Connection], durable: bool = True
    ) -> None:
        self._connection_provider = connection_provider
        self._durable = durable

        self._channel: Optional[Channel] = None
        self._channel_generation = 0
        self._outstanding: set[str] = set()
        self._lock = threading.RLock()

    def _get_channel(self) -> Channel:
        with self._lock:
            if self._channel is None or not self._channel.is_open:
                self._channel = self._connection_provider().channel()
                self._channel_generation += 1
                # the broker requeued whatever the old channel held
                self._outstanding.clear()
                logger.debug(
                    "Opened channel %s generation %d",
                    self._channel,
                    self._channel_generation,
                )
            return self._channel

    def create_queue(
        self, name: str, attributes: Optional[dict[str, str]] = None
    ) -> Optional[str]:
        with self._lock:
            result = self._get_channel().queue.declare(
                queue=name,
                durable=self._durable,
                exclusive=False,
                auto_delete=False,
                arguments=queue_arguments(attributes),
            )
        if not result:
            return None
        return build_address(QUEUE_PROTOCOL, result.get("queue", name))

    def resolve_queue_address(self, name: str) -> Optional[str]:
        # a failed passive declare closes its channel, keep it off the consuming one
        with self._connection_provider().channel() as channel:
            result = channel.queue.declare(queue=name, passive=True)
        if not result:
            return None
        return build_address(QUEUE_PROTOCOL, result.get("queue", name))

    def send_message(
        self,
        queue_address: str,
        body: str,
        attributes: Optional[MessageAttributes] = None,
    ) -> Optional[str]:
        queue_name = parse_address(queue_address, QUEUE_PROTOCOL)
        message_id = uuid.uuid4().hex
        with self._lock:
            self._get_channel().basic.publish(
                body=body,
                routing_key=queue_name,
                exchange="",
                properties={
                    "message_id": message_id,
                    "delivery_mode": 2,
                    "headers": encode_headers(attributes),
                },
            )
        return message_id

    def receive_messages(self, queue_address: str, max_count: int) -> list[Message]:
        queue_name = parse_address(queue_address, QUEUE_PROTOCOL)
        messages = []
        with self._lock:
            channel = self._get_channel()
            for _ in range(max_count):
                delivery = channel.basic.get(queue=queue_name, no_ack=False)
                if delivery is None:
                    break

                receipt_handle = f"{self._channel_generation}.{delivery.delivery_tag}"
                self._outstanding.add(receipt_handle)
                properties = delivery.properties or {}
                messages.append(
                    Message(
                        body=delivery.body,
                        attributes=decode_headers(properties.get("headers")),
                        message_id=properties.get("message_id"),
                        receipt_handle=receipt_handle,
                    )
                )
        return messages

    def _delivery_tag(self, receipt_handle: str) -> int:
        if receipt_handle not in self._outstanding:
            raise ValueError(f"Unknown or stale receipt handle {receipt_handle!r}")
        _, delivery_tag = receipt_handle.split(".", 1)
        return int(delivery_tag)

    def delete_message(self, queue_address: str, receipt_handle: str) -> None:
        with self._lock:
            # a reopened channel drops the old generation's handles before the check
            channel = self._get_channel()
            channel.basic.ack(delivery_tag=self._delivery_tag(receipt_handle))
            self._outstanding.discard(receipt_handle)

    def release(self, queue_address: str, receipt_handle: str) -> None:
        """Reject the delivery with requeue, basic.get has no visibility timeout."""
        with self._lock:
            channel = self._get_channel()
            channel.basic.reject(
                delivery_tag=self._delivery_tag(receipt_handle), requeue=True
            )
            self._outstanding.discard(receipt_handle)

    def shutdown(self) -> None:
        """Close the channel, returning unacked deliveries to the queue."""
        logger.info("Shutting down %s", self.__class__.__name__)
        with self._lock:
            try:
                if self._channel is not None and self._channel.is_open:
                    self._channel.close()
            except Exception as e:
                logger.exception("Error closing channel: %s", e)
            self._channel = None
            self._outstanding.clear()
