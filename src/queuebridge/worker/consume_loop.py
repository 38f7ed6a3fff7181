"""
Receive, dispatch and acknowledge cycle.

One call to ``ConsumeLoop.run_cycle`` receives a batch from the queue, hands
each body to the handler in receive order and deletes a message only after
its handler returned. The first handler or delete failure stops the batch.
After a handler failure or a passed cycle deadline the unhandled messages
are released back to the queue. Anything not deleted is redelivered later,
so delivery is at-least-once.
"""

import logging
import time
from typing import NamedTuple, Optional

from queuebridge.exceptions import BridgeException, HandlerFailedException
from queuebridge.models import Message
from queuebridge.repository.message.abstract_interface import MessageHandlerInterface
from queuebridge.repository.message.queue import QueueService

logger = logging.getLogger(__name__)


class ConsumeResult(NamedTuple):
    """Outcome of a successful cycle."""

    received: int
    acknowledged: int
    # left on the queue because the cycle deadline passed
    deferred: int = 0


class ConsumeLoop:
    def __init__(
        self,
        queue_service: QueueService,
        handler: MessageHandlerInterface,
        max_messages: Optional[int] = None,
        cycle_deadline: Optional[float] = None,
    ) -> None:
        """
        :param queue_service: Queue to consume from.
        :param handler: Application handler, required.
        :param max_messages: Deliveries requested per receive, defaults to the queue config.
        :param cycle_deadline: Seconds after which a cycle stops dispatching.
        """
        if handler is None:
            raise ValueError("A message handler is required to consume messages")
        if cycle_deadline is not None and cycle_deadline <= 0:
            raise ValueError(f"cycle_deadline must be positive, got {cycle_deadline}")

        self._queue_service = queue_service
        self._handler = handler
        self._max_messages = max_messages
        self._cycle_deadline = cycle_deadline

    def run_cycle(self) -> ConsumeResult:
        """
        Run one receive-dispatch-delete cycle.

        :raises HandlerFailedException: The handler raised; later messages were not attempted.
        :raises BridgeException: Receive or delete failed.
        """
        started = time.monotonic()
        messages = self._queue_service.receive(self._max_messages)
        if not messages:
            logger.debug("no messages in queue %s", self._queue_service.queue_name)
            return ConsumeResult(received=0, acknowledged=0)

        logger.info(
            "Received %d messages from queue %s",
            len(messages),
            self._queue_service.queue_name,
        )

        acknowledged = 0
        for index, message in enumerate(messages):
            if self._deadline_passed(started):
                deferred = len(messages) - index
                logger.warning(
                    "Cycle deadline of %ss passed, leaving %d messages for redelivery",
                    self._cycle_deadline,
                    deferred,
                )
                self._release(messages[index:])
                return ConsumeResult(len(messages), acknowledged, deferred)

            try:
                self._handler.handle(message.body)
            except Exception as e:
                logger.exception(
                    "Handler %s failed for message %s", self._handler, message.message_id
                )
                self._release(messages[index:])
                raise HandlerFailedException(index, message.message_id) from e

            self._queue_service.delete(message.receipt_handle)
            acknowledged += 1

        return ConsumeResult(len(messages), acknowledged)

    def _deadline_passed(self, started: float) -> bool:
        if self._cycle_deadline is None:
            return False
        return time.monotonic() - started > self._cycle_deadline

    def _release(self, messages: list[Message]) -> None:
        # best effort, anything not released still comes back once the broker gives up on it
        for message in messages:
            try:
                self._queue_service.release(message.receipt_handle)
            except BridgeException as e:
                logger.warning("Unable to release message %s: %s", message.message_id, e)
