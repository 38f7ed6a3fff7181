import abc
from typing import Optional

from queuebridge.models import Message, MessageAttributes, PublishTarget


class TopicTransportInterface(abc.ABC):
    """
    Broker calls behind TopicService.

    Implementations raise on transport errors and return ``None`` when the
    broker answered without a usable identifier. TopicService turns both into
    bridge exceptions.
    """

    # token in a topic id that becomes ``queue_protocol`` in the derived queue endpoint
    topic_protocol: str = ""
    queue_protocol: str = ""

    @abc.abstractmethod
    def create_topic(self, name: str) -> Optional[str]:
        pass

    @abc.abstractmethod
    def subscribe(
        self,
        topic_id: str,
        endpoint: Optional[str],
        protocol: str,
        raw_delivery: bool = False,
    ) -> Optional[str]:
        pass

    @abc.abstractmethod
    def publish(
        self,
        body: str,
        attributes: MessageAttributes,
        target: PublishTarget,
        subject: Optional[str] = None,
        message_structure: Optional[str] = None,
    ) -> Optional[str]:
        pass


class QueueTransportInterface(abc.ABC):
    """
    Broker calls behind QueueService.

    Same contract as TopicTransportInterface: raise on transport errors,
    return ``None`` for a missing identifier or address.
    """

    @abc.abstractmethod
    def create_queue(
        self, name: str, attributes: Optional[dict[str, str]] = None
    ) -> Optional[str]:
        pass

    @abc.abstractmethod
    def resolve_queue_address(self, name: str) -> Optional[str]:
        pass

    @abc.abstractmethod
    def send_message(
        self,
        queue_address: str,
        body: str,
        attributes: Optional[MessageAttributes] = None,
    ) -> Optional[str]:
        pass

    @abc.abstractmethod
    def receive_messages(self, queue_address: str, max_count: int) -> list[Message]:
        """
        Receive up to ``max_count`` deliveries.

        Non-blocking beyond the broker's own wait time. An empty list means
        the queue had nothing to deliver.
        """
        pass

    @abc.abstractmethod
    def delete_message(self, queue_address: str, receipt_handle: str) -> None:
        pass

    def release(self, queue_address: str, receipt_handle: str) -> None:
        """
        Hand an undeleted delivery back to the queue for redelivery.

        Brokers with a visibility timeout redeliver on their own and keep this no-op.
        """


class MessageHandlerInterface(abc.ABC):
    """
    Application side of the bridge, invoked once per delivered message.

    Raising signals failure; the message is then left on the queue.
    """

    @abc.abstractmethod
    def handle(self, body: str) -> None:
        pass
