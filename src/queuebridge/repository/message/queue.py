import logging
import threading
from typing import Optional

from queuebridge.config import QueueConfig, validate_max_messages
from queuebridge.exceptions import (
    CreateFailedException,
    DeleteFailedException,
    EmptyResultException,
    ReceiveFailedException,
    ReleaseFailedException,
    ResolveFailedException,
    SendFailedException,
)
from queuebridge.models import Message, MessageAttributes
from queuebridge.repository.message.abstract_interface import QueueTransportInterface

logger = logging.getLogger(__name__)


class QueueService:
    """
    Queue operations for a single named queue.

    The queue address is resolved from the name on every call. Set
    ``QueueConfig.cache_address`` to resolve it once and reuse it.
    """

    def __init__(self, transport: QueueTransportInterface, config: QueueConfig) -> None:
        self._transport = transport
        self._config = config

        self._address_lock = threading.Lock()
        self._cached_address: Optional[str] = None

        logger.info(
            "%s initialized for queue %s with transport %s",
            self.__class__.__name__,
            self._config.queue_name,
            self._transport,
        )

    @property
    def queue_name(self) -> str:
        return self._config.queue_name

    def create(self, attributes: Optional[dict[str, str]] = None) -> str:
        """
        Create the queue.

        :param attributes: Optional queue attributes, such as a retention period.
        :return: The queue address.
        """
        try:
            queue_address = self._transport.create_queue(self.queue_name, attributes)
        except Exception as e:
            raise CreateFailedException("queue", self.queue_name) from e
        if not queue_address:
            raise EmptyResultException("create queue", "queue address")

        logger.info("Queue %s created at %s", self.queue_name, queue_address)
        return queue_address

    def resolve_address(self) -> str:
        if self._config.cache_address:
            with self._address_lock:
                if self._cached_address is None:
                    self._cached_address = self._resolve_address()
                return self._cached_address
        return self._resolve_address()

    def _resolve_address(self) -> str:
        try:
            queue_address = self._transport.resolve_queue_address(self.queue_name)
        except Exception as e:
            raise ResolveFailedException(self.queue_name) from e
        if not queue_address:
            raise EmptyResultException("resolve queue address", "queue address")
        return queue_address

    def send(self, body: str, attributes: Optional[MessageAttributes] = None) -> str:
        """
        Put a message on the queue.

        :return: The message id.
        """
        queue_address = self.resolve_address()
        try:
            message_id = self._transport.send_message(queue_address, body, attributes)
        except Exception as e:
            raise SendFailedException(queue_address) from e
        if not message_id:
            raise EmptyResultException("send message", "message id")

        logger.debug("Message %s sent to queue %s", message_id, queue_address)
        return message_id

    def receive(self, max_messages: Optional[int] = None) -> list[Message]:
        """
        Receive up to ``max_messages`` deliveries.

        An empty queue gives an empty list, not an error.
        """
        if max_messages is None:
            max_messages = self._config.max_messages
        validate_max_messages(max_messages)

        queue_address = self.resolve_address()
        try:
            messages = self._transport.receive_messages(queue_address, max_messages)
        except Exception as e:
            raise ReceiveFailedException(queue_address) from e
        if not messages:
            return []

        logger.debug("Received %d messages from %s", len(messages), queue_address)
        return messages

    def delete(self, receipt_handle: str) -> None:
        """Acknowledge one delivery by its receipt handle."""
        queue_address = self.resolve_address()
        try:
            self._transport.delete_message(queue_address, receipt_handle)
        except Exception as e:
            raise DeleteFailedException(queue_address, receipt_handle) from e

        logger.debug("Message %s deleted from queue %s", receipt_handle, queue_address)

    def release(self, receipt_handle: str) -> None:
        """Give an unprocessed delivery back to the queue without deleting it."""
        queue_address = self.resolve_address()
        try:
            self._transport.release(queue_address, receipt_handle)
        except Exception as e:
            raise ReleaseFailedException(queue_address, receipt_handle) from e

        logger.debug("Message %s released to queue %s", receipt_handle, queue_address)
