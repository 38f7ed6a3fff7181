"""
Custom exceptions for the queuebridge package.

Every core operation raises one of these instead of leaking a broker-specific
error. The underlying transport error is always chained as ``__cause__``.
"""

from typing import Optional


class BridgeException(Exception):
    """Base class for all queuebridge failures. All of them are recoverable at the batch level."""


class CreateFailedException(BridgeException):
    """Raised when a topic or queue cannot be created."""

    def __init__(self, resource: str, name: str, message: str = None):
        self.resource = resource
        self.name = name
        if message is None:
            message = f"Unable to create {resource} {name}"
        super().__init__(message)


class ResolveFailedException(BridgeException):
    """Raised when a queue address cannot be resolved from its name."""

    def __init__(self, queue_name: str, message: str = None):
        self.queue_name = queue_name
        if message is None:
            message = f"Unable to resolve address for queue {queue_name}"
        super().__init__(message)


class SubscriptionFailedException(BridgeException):
    """Raised when an endpoint cannot be subscribed to a topic."""

    def __init__(
        self, topic_id: str, endpoint: Optional[str], protocol: str, message: str = None
    ):
        self.topic_id = topic_id
        self.endpoint = endpoint
        self.protocol = protocol
        if message is None:
            message = f"Unable to subscribe {protocol} endpoint {endpoint} to topic {topic_id}"
        super().__init__(message)


class PublishFailedException(BridgeException):
    """Raised when a message cannot be published."""

    def __init__(self, address: str, message: str = None):
        self.address = address
        if message is None:
            message = f"Unable to publish message to {address}"
        super().__init__(message)


class SendFailedException(BridgeException):
    """Raised when a message cannot be sent to a queue."""

    def __init__(self, queue_address: str, message: str = None):
        self.queue_address = queue_address
        if message is None:
            message = f"Unable to send message to queue {queue_address}"
        super().__init__(message)


class ReceiveFailedException(BridgeException):
    """Raised when messages cannot be received from a queue."""

    def __init__(self, queue_address: str, message: str = None):
        self.queue_address = queue_address
        if message is None:
            message = f"Unable to receive message from queue {queue_address}"
        super().__init__(message)


class DeleteFailedException(BridgeException):
    """Raised when a delivery cannot be acknowledged. The message stays on the queue."""

    def __init__(self, queue_address: str, receipt_handle: str, message: str = None):
        self.queue_address = queue_address
        self.receipt_handle = receipt_handle
        if message is None:
            message = f"Unable to delete message {receipt_handle} from queue {queue_address}"
        super().__init__(message)


class ReleaseFailedException(BridgeException):
    """Raised when an undeleted delivery cannot be handed back to the queue."""

    def __init__(self, queue_address: str, receipt_handle: str, message: str = None):
        self.queue_address = queue_address
        self.receipt_handle = receipt_handle
        if message is None:
            message = f"Unable to release message {receipt_handle} to queue {queue_address}"
        super().__init__(message)


class EmptyResultException(BridgeException):
    """Raised when a transport call succeeded but returned no usable identifier or address."""

    def __init__(self, operation: str, field: str, message: str = None):
        self.operation = operation
        self.field = field
        if message is None:
            message = f"{operation} returned no {field}"
        super().__init__(message)


class HandlerFailedException(BridgeException):
    """Raised when the application handler fails for a message, aborting the batch."""

    def __init__(
        self, index: int, message_id: Optional[str] = None, message: str = None
    ):
        self.index = index
        self.message_id = message_id
        if message is None:
            message = f"Handler failed for message {message_id} at position {index} in batch"
        super().__init__(message)
