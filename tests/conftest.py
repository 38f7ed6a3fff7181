"""
Shared pytest fixtures and utilities for testing.

## Mock Transport Infrastructure

In-memory implementations of the transport interfaces, so the services and
the consume loop can be tested without a broker. They follow the same
interfaces as the SNS/SQS and RabbitMQ bindings and record every call.

### Core Mock Classes

- `MockTopicTransport`: Mock implementation of `TopicTransportInterface`
  - Hands out SNS-style ARNs as topic ids
  - Records `calls` as `(operation, args...)` tuples
  - Fans published messages out to any attached `MockQueueTransport`

- `MockQueueTransport`: Mock implementation of `QueueTransportInterface`
  - Holds pending messages and in-flight deliveries
  - Issues a fresh receipt handle per delivery (`r1`, `r2`, ...)
  - Refuses unknown or already used receipt handles
  - `release` puts an in-flight delivery back on the queue

- `RecordingMessageHandler`: handler that records bodies and can fail on chosen ones

Both transports take `failures` (operation -> exception to raise) and
`empty_results` (operations that answer `None`) to simulate broker problems.

### Available Fixtures

- `topic_transport`, `queue_transport`: fresh mock transports
- `topic_config`, `queue_config`: configs for an `orders` queue and topic
- `topic_service`, `queue_service`: services over the mock transports
- `handler`: fresh RecordingMessageHandler
"""

import itertools
from typing import Optional

import pytest

from queuebridge.config import QueueConfig, TopicConfig
from queuebridge.models import Message, MessageAttributes, PublishTarget
from queuebridge.repository.message.abstract_interface import (
    MessageHandlerInterface,
    QueueTransportInterface,
    TopicTransportInterface,
)
from queuebridge.repository.message.queue import QueueService
from queuebridge.repository.message.topic import TopicService

QUEUE_URL_PREFIX = "https://sqs.us-east-1.amazonaws.com/123456789012/"
TOPIC_ARN_PREFIX = "arn:aws:sns:us-east-1:123456789012:"


class _FailureInjection:
    def __init__(
        self,
        failures: Optional[dict[str, Exception]] = None,
        empty_results: Optional[set[str]] = None,
    ):
        self.failures = dict(failures or {})
        self.empty_results = set(empty_results or ())
        self.calls: list[tuple] = []

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation, *args))
        if operation in self.failures:
            raise self.failures[operation]

    def calls_to(self, operation: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == operation]


class MockQueueTransport(_FailureInjection, QueueTransportInterface):
    """In-memory queue. Received messages stay in flight until deleted."""

    def __init__(self, queue_name: str = "orders", **kwargs):
        super().__init__(**kwargs)
        self.queue_name = queue_name
        self.queue_url = QUEUE_URL_PREFIX + queue_name
        self.pending: list[Message] = []
        self.in_flight: dict[str, Message] = {}
        self._handles = itertools.count(1)
        self._message_ids = itertools.count(1)

    def enqueue(
        self,
        body: str,
        attributes: Optional[MessageAttributes] = None,
        receipt_handle: Optional[str] = None,
    ) -> Message:
        """Put a message on the queue. A fixed receipt handle may be given for its first delivery."""
        message = Message(
            body=body,
            attributes=dict(attributes or {}),
            message_id=f"m{next(self._message_ids)}",
            receipt_handle=receipt_handle,
        )
        self.pending.append(message)
        return message

    def create_queue(self, name, attributes=None):
        self._record("create_queue", name, attributes)
        if "create_queue" in self.empty_results:
            return None
        return QUEUE_URL_PREFIX + name

    def resolve_queue_address(self, name):
        self._record("resolve_queue_address", name)
        if "resolve_queue_address" in self.empty_results:
            return None
        return QUEUE_URL_PREFIX + name

    def send_message(self, queue_address, body, attributes=None):
        self._record("send_message", queue_address, body, attributes)
        if "send_message" in self.empty_results:
            return None
        return self.enqueue(body, attributes).message_id

    def receive_messages(self, queue_address, max_count):
        self._record("receive_messages", queue_address, max_count)
        batch, self.pending = self.pending[:max_count], self.pending[max_count:]
        delivered = []
        for message in batch:
            handle = message.receipt_handle or f"r{next(self._handles)}"
            delivery = message.model_copy(update={"receipt_handle": handle})
            self.in_flight[handle] = delivery
            delivered.append(delivery)
        return delivered

    def delete_message(self, queue_address, receipt_handle):
        self._record("delete_message", queue_address, receipt_handle)
        if receipt_handle not in self.in_flight:
            raise ValueError(f"Unknown receipt handle {receipt_handle}")
        del self.in_flight[receipt_handle]

    def release(self, queue_address, receipt_handle):
        self._record("release", queue_address, receipt_handle)
        if receipt_handle not in self.in_flight:
            raise ValueError(f"Unknown receipt handle {receipt_handle}")
        message = self.in_flight.pop(receipt_handle)
        self.pending.append(message.model_copy(update={"receipt_handle": None}))

    def expire_visibility(self) -> None:
        """Return every in-flight delivery to the queue, as a visibility timeout would."""
        for message in self.in_flight.values():
            self.pending.append(message.model_copy(update={"receipt_handle": None}))
        self.in_flight.clear()


class MockTopicTransport(_FailureInjection, TopicTransportInterface):
    topic_protocol = "sns"
    queue_protocol = "sqs"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.subscriptions: dict[str, list[tuple[Optional[str], str]]] = {}
        self.queues: dict[str, MockQueueTransport] = {}
        self.published: list[tuple[str, MessageAttributes, PublishTarget]] = []
        self._ids = itertools.count(1)

    def attach_queue(self, endpoint: str, queue: MockQueueTransport) -> None:
        """Deliver messages for subscriptions on ``endpoint`` to ``queue``."""
        self.queues[endpoint] = queue

    def create_topic(self, name):
        self._record("create_topic", name)
        if "create_topic" in self.empty_results:
            return None
        arn = TOPIC_ARN_PREFIX + name
        self.subscriptions.setdefault(arn, [])
        return arn

    def subscribe(self, topic_id, endpoint, protocol, raw_delivery=False):
        self._record("subscribe", topic_id, endpoint, protocol, raw_delivery)
        if "subscribe" in self.empty_results:
            return None
        self.subscriptions.setdefault(topic_id, []).append((endpoint, protocol))
        return f"{topic_id}:sub-{next(self._ids)}"

    def publish(self, body, attributes, target, subject=None, message_structure=None):
        self._record("publish", body, attributes, target, subject, message_structure)
        if "publish" in self.empty_results:
            return None
        self.published.append((body, attributes, target))
        for endpoint, _ in self.subscriptions.get(target.topic_id, []):
            if endpoint in self.queues:
                self.queues[endpoint].enqueue(body, attributes)
        return f"pub-{next(self._ids)}"


class RecordingMessageHandler(MessageHandlerInterface):
    """Records handled bodies and raises for bodies listed in ``fail_on``."""

    def __init__(self, fail_on: Optional[set[str]] = None):
        self.handled: list[str] = []
        self.fail_on = set(fail_on or ())

    def handle(self, body: str) -> None:
        self.handled.append(body)
        if body in self.fail_on:
            raise RuntimeError(f"cannot process {body}")


@pytest.fixture
def topic_transport():
    return MockTopicTransport()


@pytest.fixture
def queue_transport():
    return MockQueueTransport()


@pytest.fixture
def topic_config():
    return TopicConfig(
        topic_name="orders",
        queue_protocol="sqs",
        subscriber_endpoint="https://hook.example/cb",
        subscriber_protocol="https",
    )


@pytest.fixture
def queue_config():
    return QueueConfig(queue_name="orders", max_messages=10)


@pytest.fixture
def topic_service(topic_transport, topic_config):
    return TopicService(topic_transport, topic_config)


@pytest.fixture
def queue_service(queue_transport, queue_config):
    return QueueService(queue_transport, queue_config)


@pytest.fixture
def handler():
    return RecordingMessageHandler()
