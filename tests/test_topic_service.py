import pytest

from queuebridge.config import TopicConfig
from queuebridge.exceptions import (
    CreateFailedException,
    EmptyResultException,
    PublishFailedException,
    SubscriptionFailedException,
)
from queuebridge.models import (
    EndpointSubscription,
    MessageAttribute,
    PublishTarget,
    QueueSubscription,
)
from queuebridge.repository.message.topic import (
    ProtocolTokenEndpointDeriver,
    TopicService,
    derive_queue_endpoint,
)
from tests.conftest import MockTopicTransport

TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:orders"
QUEUE_ARN = "arn:aws:sqs:us-east-1:123456789012:orders"


def test_derive_queue_endpoint_replaces_protocol_token():
    assert derive_queue_endpoint(TOPIC_ARN, "sns", "sqs") == QUEUE_ARN


def test_derive_queue_endpoint_replaces_first_occurrence_only():
    topic_arn = "arn:aws:sns:us-east-1:123456789012:sns-events"
    assert (
        derive_queue_endpoint(topic_arn, "sns", "sqs")
        == "arn:aws:sqs:us-east-1:123456789012:sns-events"
    )


def test_derive_queue_endpoint_is_deterministic():
    deriver = ProtocolTokenEndpointDeriver("sns", "sqs")
    assert deriver(TOPIC_ARN) == deriver(TOPIC_ARN)


def test_derive_queue_endpoint_without_token_is_unchanged():
    assert derive_queue_endpoint("amqp-exchange:orders", "sns", "sqs") == "amqp-exchange:orders"


def test_deriver_requires_tokens():
    with pytest.raises(ValueError):
        ProtocolTokenEndpointDeriver("", "sqs")


def test_create_subscribes_queue_then_external_endpoint(topic_service, topic_transport):
    topic_id = topic_service.create()

    assert topic_id == TOPIC_ARN
    assert topic_transport.calls == [
        ("create_topic", "orders"),
        ("subscribe", TOPIC_ARN, QUEUE_ARN, "sqs", False),
        ("subscribe", TOPIC_ARN, "https://hook.example/cb", "https", False),
    ]


def test_create_with_explicit_arguments():
    transport = MockTopicTransport()
    service = TopicService(transport, TopicConfig(topic_name="unused", queue_protocol="unused"))

    topic_id = service.create(
        "orders-topic", "sqs", "https://hook.example/cb", "https-generic"
    )

    assert topic_id == "arn:aws:sns:us-east-1:123456789012:orders-topic"
    assert transport.calls_to("subscribe") == [
        ("subscribe", topic_id, "arn:aws:sqs:us-east-1:123456789012:orders-topic", "sqs", False),
        ("subscribe", topic_id, "https://hook.example/cb", "https-generic", False),
    ]


def test_create_requests_raw_delivery_for_queue_subscription_only():
    transport = MockTopicTransport()
    config = TopicConfig(
        topic_name="orders",
        queue_protocol="sqs",
        subscriber_endpoint="https://hook.example/cb",
        subscriber_protocol="https",
        raw_message_delivery=True,
    )

    TopicService(transport, config).create()

    raw_flags = [call[4] for call in transport.calls_to("subscribe")]
    assert raw_flags == [True, False]


def test_create_with_custom_deriver(topic_transport, topic_config):
    service = TopicService(
        topic_transport,
        topic_config,
        endpoint_deriver=lambda topic_id: "arn:aws:sqs:us-east-1:123456789012:mapped",
    )

    service.create()

    assert topic_transport.calls_to("subscribe")[0][2] == "arn:aws:sqs:us-east-1:123456789012:mapped"


def test_create_without_topic_id_does_not_subscribe():
    transport = MockTopicTransport(empty_results={"create_topic"})
    service = TopicService(transport, TopicConfig(topic_name="unused", queue_protocol="sqs"))

    with pytest.raises(EmptyResultException):
        service.create("orders-topic", "queue", "https://hook.example/cb", "https-generic")

    assert transport.calls_to("subscribe") == []


def test_create_topic_transport_error():
    transport = MockTopicTransport(failures={"create_topic": RuntimeError("boom")})
    service = TopicService(transport, TopicConfig(topic_name="orders", queue_protocol="sqs", subscriber_protocol="https"))

    with pytest.raises(CreateFailedException) as exc_info:
        service.create()

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert exc_info.value.name == "orders"


def test_create_requires_subscriber_protocol():
    transport = MockTopicTransport()
    service = TopicService(transport, TopicConfig(topic_name="orders", queue_protocol="sqs"))

    with pytest.raises(ValueError):
        service.create()

    assert transport.calls == []


def test_queue_subscription_failure_is_fatal(topic_config):
    transport = MockTopicTransport(failures={"subscribe": RuntimeError("denied")})
    service = TopicService(transport, topic_config)

    with pytest.raises(SubscriptionFailedException) as exc_info:
        service.create()

    assert exc_info.value.endpoint == QUEUE_ARN
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    # the external subscriber is not attempted and the topic is not rolled back
    assert len(transport.calls_to("subscribe")) == 1
    assert TOPIC_ARN in transport.subscriptions


def test_empty_subscription_id_during_create_is_subscription_failure(topic_config):
    transport = MockTopicTransport(empty_results={"subscribe"})
    service = TopicService(transport, topic_config)

    with pytest.raises(SubscriptionFailedException) as exc_info:
        service.create()

    assert isinstance(exc_info.value.__cause__, EmptyResultException)


def test_external_subscription_failure(topic_config):
    class FailSecondSubscribe(MockTopicTransport):
        def subscribe(self, topic_id, endpoint, protocol, raw_delivery=False):
            if endpoint == "https://hook.example/cb":
                raise RuntimeError("unreachable")
            return super().subscribe(topic_id, endpoint, protocol, raw_delivery)

    service = TopicService(FailSecondSubscribe(), topic_config)

    with pytest.raises(SubscriptionFailedException) as exc_info:
        service.create()

    assert exc_info.value.protocol == "https"


def test_subscribe_topic_returns_subscription_id(topic_service):
    subscription_id = topic_service.subscribe_topic(
        TOPIC_ARN, EndpointSubscription(endpoint="https://hook.example/cb", protocol="https")
    )
    assert subscription_id.startswith(TOPIC_ARN)


def test_subscribe_topic_empty_result(topic_config):
    service = TopicService(MockTopicTransport(empty_results={"subscribe"}), topic_config)

    with pytest.raises(EmptyResultException):
        service.subscribe_topic(
            TOPIC_ARN, QueueSubscription(endpoint=QUEUE_ARN, protocol="sqs")
        )


def test_queue_subscription_for_topic(topic_service):
    subscription = topic_service.queue_subscription_for(TOPIC_ARN, "sqs")
    assert subscription == QueueSubscription(endpoint=QUEUE_ARN, protocol="sqs")


def test_publish_to_topic(topic_service, topic_transport):
    attributes = {"kind": MessageAttribute.string("x")}
    target = PublishTarget(topic_id=TOPIC_ARN)

    message_id = topic_service.publish_to_topic("hello", attributes, target, subject="greeting")

    assert message_id.startswith("pub-")
    assert topic_transport.calls_to("publish") == [
        ("publish", "hello", attributes, target, "greeting", None)
    ]


def test_publish_without_attributes_sends_empty_mapping(topic_service, topic_transport):
    topic_service.publish_to_topic("hello", None, PublishTarget(phone_number="+15555550100"))
    assert topic_transport.calls_to("publish")[0][2] == {}


def test_publish_requires_publish_target(topic_service):
    with pytest.raises(TypeError):
        topic_service.publish_to_topic("hello", None, TOPIC_ARN)


def test_publish_transport_error(topic_config):
    service = TopicService(
        MockTopicTransport(failures={"publish": RuntimeError("throttled")}), topic_config
    )

    with pytest.raises(PublishFailedException) as exc_info:
        service.publish_to_topic("hello", None, PublishTarget(topic_id=TOPIC_ARN))

    assert exc_info.value.address == TOPIC_ARN


def test_publish_without_message_id(topic_config):
    service = TopicService(MockTopicTransport(empty_results={"publish"}), topic_config)

    with pytest.raises(EmptyResultException):
        service.publish_to_topic("hello", None, PublishTarget(topic_id=TOPIC_ARN))


def test_publish_forwards_message_structure(topic_service, topic_transport):
    body = '{"default": "hello", "sqs": "{\\"order\\": 1}"}'

    topic_service.publish_to_topic(
        body, None, PublishTarget(topic_id=TOPIC_ARN), message_structure="json"
    )

    assert topic_transport.calls_to("publish")[0][5] == "json"
