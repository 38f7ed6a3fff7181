"""
Topic fan-out and at-least-once queue consumption.
"""

from queuebridge.models import (
    EndpointSubscription,
    Message,
    MessageAttribute,
    PublishTarget,
    QueueSubscription,
)
from queuebridge.repository.message.abstract_interface import MessageHandlerInterface
from queuebridge.repository.message.queue import QueueService
from queuebridge.repository.message.topic import TopicService
from queuebridge.worker.consume_loop import ConsumeLoop, ConsumeResult

__all__ = [
    "ConsumeLoop",
    "ConsumeResult",
    "EndpointSubscription",
    "Message",
    "MessageAttribute",
    "MessageHandlerInterface",
    "PublishTarget",
    "QueueService",
    "QueueSubscription",
    "TopicService",
]
