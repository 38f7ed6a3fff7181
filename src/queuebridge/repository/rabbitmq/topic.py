import logging
import threading
import uuid
from typing import Callable, Optional

from amqpstorm import Channel, Connection

from queuebridge.models import MessageAttributes, PublishTarget
from queuebridge.repository.message.abstract_interface import TopicTransportInterface
from queuebridge.repository.rabbitmq.util import (
    EXCHANGE_PROTOCOL,
    QUEUE_PROTOCOL,
    address_protocol,
    build_address,
    declare_fanout_exchange,
    encode_headers,
    parse_address,
)

logger = logging.getLogger(__name__)


class RabbitTopicTransport(TopicTransportInterface):
    """
    Topics as durable fanout exchanges.

    Supported subscription protocols are ``amqp-queue`` (queue binding) and
    ``amqp-exchange`` (exchange to exchange binding). Every published message
    gets a generated ``message_id`` since RabbitMQ assigns none.
    """

    topic_protocol = EXCHANGE_PROTOCOL
    queue_protocol = QUEUE_PROTOCOL

    def __init__(self, connection_provider: Callable[[], Connection]) -> None:
        self._connection_provider = connection_provider
        self._channel: Optional[Channel] = None
        self._lock = threading.RLock()

    def _get_channel(self) -> Channel:
        with self._lock:
            if self._channel is None or not self._channel.is_open:
                self._channel = self._connection_provider().channel()
                logger.debug("Opened channel %s", self._channel)
            return self._channel

    def create_topic(self, name: str) -> Optional[str]:
        with self._lock:
            declare_fanout_exchange(self._get_channel(), name)
        return build_address(EXCHANGE_PROTOCOL, name)

    def subscribe(
        self,
        topic_id: str,
        endpoint: Optional[str],
        protocol: str,
        raw_delivery: bool = False,
    ) -> Optional[str]:
        # bodies always reach the queue unwrapped, raw_delivery has nothing to change here
        exchange = parse_address(topic_id, EXCHANGE_PROTOCOL)
        with self._lock:
            channel = self._get_channel()
            if protocol == QUEUE_PROTOCOL:
                queue_name = parse_address(endpoint, QUEUE_PROTOCOL)
                channel.queue.declare(queue=queue_name, durable=True)
                channel.queue.bind(queue=queue_name, exchange=exchange, routing_key="")
                logger.info("Queue %s bound to exchange %s", queue_name, exchange)
            elif protocol == EXCHANGE_PROTOCOL:
                destination = parse_address(endpoint, EXCHANGE_PROTOCOL)
                channel.exchange.bind(
                    destination=destination, source=exchange, routing_key=""
                )
                logger.info("Exchange %s bound to exchange %s", destination, exchange)
            else:
                raise ValueError(
                    f"Unsupported subscription protocol {protocol!r}, "
                    f"expected {QUEUE_PROTOCOL} or {EXCHANGE_PROTOCOL}"
                )
        return f"{topic_id}/{endpoint}"

    def publish(
        self,
        body: str,
        attributes: MessageAttributes,
        target: PublishTarget,
        subject: Optional[str] = None,
        message_structure: Optional[str] = None,
    ) -> Optional[str]:
        if target.phone_number:
            raise ValueError("RabbitMQ cannot deliver to phone numbers")
        if message_structure is not None:
            raise ValueError("RabbitMQ has no per-protocol message structure")

        address = target.topic_id or target.target_id
        if address_protocol(address) == QUEUE_PROTOCOL:
            # default exchange routes straight to the named queue
            exchange = ""
            routing_key = parse_address(address, QUEUE_PROTOCOL)
        else:
            exchange = parse_address(address, EXCHANGE_PROTOCOL)
            routing_key = ""

        message_id = uuid.uuid4().hex
        properties = {
            "message_id": message_id,
            "delivery_mode": 2,
            "headers": encode_headers(attributes),
        }
        if subject is not None:
            properties["type"] = subject

        with self._lock:
            self._get_channel().basic.publish(
                body=body,
                routing_key=routing_key,
                exchange=exchange,
                properties=properties,
            )
        logger.debug(
            "Message published to exchange %r with routing key %r", exchange, routing_key
        )
        return message_id

    def shutdown(self) -> None:
        logger.info("Shutting down %s", self.__class__.__name__)
        with self._lock:
            try:
                if self._channel is not None and self._channel.is_open:
                    self._channel.close()
            except Exception as e:
                logger.exception("Error closing channel: %s", e)
            self._channel = None
