import logging
from typing import Callable, Optional

from queuebridge.config import TopicConfig
from queuebridge.exceptions import (
    CreateFailedException,
    EmptyResultException,
    PublishFailedException,
    SubscriptionFailedException,
)
from queuebridge.models import (
    EndpointSubscription,
    MessageAttributes,
    PublishTarget,
    QueueSubscription,
    Subscription,
)
from queuebridge.repository.message.abstract_interface import TopicTransportInterface

logger = logging.getLogger(__name__)

EndpointDeriver = Callable[[str], str]


def derive_queue_endpoint(topic_id: str, topic_protocol: str, queue_protocol: str) -> str:
    """
    Build the queue endpoint for a topic by swapping the first protocol token.

    ``arn:aws:sns:us-east-1:123:orders`` becomes ``arn:aws:sqs:us-east-1:123:orders``.
    This only works because the broker names topics and queues alike apart from
    that token, so the queue has to be named like the topic. It is not a general
    URL transform.
    """
    return topic_id.replace(topic_protocol, queue_protocol, 1)


class ProtocolTokenEndpointDeriver:
    """Default EndpointDeriver, bound to one pair of protocol tokens."""

    def __init__(self, topic_protocol: str, queue_protocol: str) -> None:
        if not topic_protocol or not queue_protocol:
            raise ValueError("Both topic_protocol and queue_protocol tokens are required")
        self._topic_protocol = topic_protocol
        self._queue_protocol = queue_protocol

    def __call__(self, topic_id: str) -> str:
        return derive_queue_endpoint(topic_id, self._topic_protocol, self._queue_protocol)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._topic_protocol!r} -> {self._queue_protocol!r})"


class TopicService:
    """
    Creates fan-out topics, subscribes endpoints to them and publishes.

    A topic created through ``create`` always gets two subscribers: the queue
    derived from the topic id, and the externally configured endpoint.
    """

    def __init__(
        self,
        transport: TopicTransportInterface,
        config: TopicConfig,
        endpoint_deriver: Optional[EndpointDeriver] = None,
    ) -> None:
        self._transport = transport
        self._config = config
        if endpoint_deriver is None:
            endpoint_deriver = ProtocolTokenEndpointDeriver(
                transport.topic_protocol, transport.queue_protocol
            )
        self._endpoint_deriver = endpoint_deriver
        logger.info(
            "%s initialized with transport %s and deriver %s",
            self.__class__.__name__,
            self._transport,
            self._endpoint_deriver,
        )

    def queue_subscription_for(self, topic_id: str, protocol: str) -> QueueSubscription:
        return QueueSubscription(
            endpoint=self._endpoint_deriver(topic_id), protocol=protocol
        )

    def create(
        self,
        topic_name: Optional[str] = None,
        queue_protocol: Optional[str] = None,
        subscriber_endpoint: Optional[str] = None,
        subscriber_protocol: Optional[str] = None,
    ) -> str:
        """
        Create a topic and attach its queue subscriber and external subscriber.

        Arguments left as ``None`` fall back to the service's TopicConfig.
        If a subscription fails the topic is not deleted, so it may exist
        without its durable queue subscriber.

        :return: The topic id.
        """
        topic_name = topic_name or self._config.topic_name
        queue_protocol = queue_protocol or self._config.queue_protocol
        subscriber_endpoint = subscriber_endpoint or self._config.subscriber_endpoint
        subscriber_protocol = subscriber_protocol or self._config.subscriber_protocol
        if not subscriber_protocol:
            raise ValueError("subscriber_protocol must be provided")

        try:
            topic_id = self._transport.create_topic(topic_name)
        except Exception as e:
            logger.exception("Unable to create topic %s", topic_name)
            raise CreateFailedException("topic", topic_name) from e
        if not topic_id:
            raise EmptyResultException("create topic", "topic id")
        logger.info("Topic %s created with id %s", topic_name, topic_id)

        subscriptions: list[Subscription] = [
            self.queue_subscription_for(topic_id, queue_protocol),
            EndpointSubscription(endpoint=subscriber_endpoint, protocol=subscriber_protocol),
        ]
        for subscription in subscriptions:
            try:
                self.subscribe_topic(topic_id, subscription)
            except SubscriptionFailedException:
                logger.error(
                    "Topic %s left without its %s subscriber, it is not rolled back",
                    topic_id,
                    subscription.kind,
                )
                raise
            except EmptyResultException as e:
                logger.error(
                    "Topic %s left without its %s subscriber, it is not rolled back",
                    topic_id,
                    subscription.kind,
                )
                raise SubscriptionFailedException(
                    topic_id, subscription.endpoint, subscription.protocol
                ) from e

        return topic_id

    def subscribe_topic(self, topic_id: str, subscription: Subscription) -> str:
        """
        Subscribe an endpoint to a topic.

        :return: The subscription id.
        """
        raw_delivery = (
            isinstance(subscription, QueueSubscription)
            and self._config.raw_message_delivery
        )
        try:
            subscription_id = self._transport.subscribe(
                topic_id,
                subscription.endpoint,
                subscription.protocol,
                raw_delivery=raw_delivery,
            )
        except Exception as e:
            raise SubscriptionFailedException(
                topic_id, subscription.endpoint, subscription.protocol
            ) from e
        if not subscription_id:
            raise EmptyResultException("subscribe", "subscription id")

        logger.info(
            "%s endpoint %s subscribed to topic %s as %s",
            subscription.protocol,
            subscription.endpoint,
            topic_id,
            subscription_id,
        )
        return subscription_id

    def publish_to_topic(
        self,
        message: str,
        attributes: Optional[MessageAttributes],
        target: PublishTarget,
        subject: Optional[str] = None,
        message_structure: Optional[str] = None,
    ) -> str:
        """
        Publish a message to a topic, a single subscriber target or a phone number.

        :param target: Addressing for the publish, exactly one field set.
        :param message_structure: ``json`` when the body holds one payload per protocol.
        :return: The message id assigned by the broker.
        """
        if not isinstance(target, PublishTarget):
            raise TypeError(f"target must be a PublishTarget, got {type(target).__name__}")

        try:
            message_id = self._transport.publish(
                message,
                attributes or {},
                target,
                subject=subject,
                message_structure=message_structure,
            )
        except Exception as e:
            raise PublishFailedException(target.address) from e
        if not message_id:
            raise EmptyResultException("publish", "message id")

        logger.debug("Message %s published to %s", message_id, target.address)
        return message_id
