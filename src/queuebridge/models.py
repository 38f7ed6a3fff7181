from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AttributeDataType(Enum):
    STRING = "String"
    NUMBER = "Number"
    BINARY = "Binary"


class MessageAttribute(BaseModel):
    """
    Typed value attached to a message.

    ``data_type`` may carry a custom suffix (``String.json``, ``Number.int``),
    the base type before the first dot decides which value field is used.
    """

    model_config = ConfigDict(frozen=True)

    data_type: str = Field()
    string_value: Optional[str] = Field(default=None)
    binary_value: Optional[bytes] = Field(default=None)

    @model_validator(mode="after")
    def _check_value(self) -> "MessageAttribute":
        base_type = self.data_type.split(".", 1)[0]
        try:
            AttributeDataType(base_type)
        except ValueError:
            raise ValueError(
                f"Invalid attribute data type: {self.data_type}. Must start with String, Number or Binary."
            )
        if (self.string_value is None) == (self.binary_value is None):
            raise ValueError("Exactly one of string_value or binary_value must be set")
        if base_type == AttributeDataType.BINARY.value and self.binary_value is None:
            raise ValueError("Binary attributes require binary_value")
        if base_type != AttributeDataType.BINARY.value and self.string_value is None:
            raise ValueError(f"{base_type} attributes require string_value")
        return self

    @classmethod
    def string(cls, value: str) -> "MessageAttribute":
        return cls(data_type=AttributeDataType.STRING.value, string_value=value)

    @classmethod
    def number(cls, value: Union[int, float]) -> "MessageAttribute":
        return cls(data_type=AttributeDataType.NUMBER.value, string_value=str(value))

    @classmethod
    def binary(cls, value: bytes) -> "MessageAttribute":
        return cls(data_type=AttributeDataType.BINARY.value, binary_value=value)


MessageAttributes = dict[str, MessageAttribute]


class Message(BaseModel):
    """
    A message body with its attributes.

    ``receipt_handle`` is only set on messages received from a queue and
    identifies that delivery, not the message.
    """

    body: str = Field()
    attributes: MessageAttributes = Field(default_factory=dict)
    message_id: Optional[str] = Field(default=None)
    receipt_handle: Optional[str] = Field(default=None)


class PublishTarget(BaseModel):
    """Where a publish goes. Exactly one of the three fields must be set."""

    model_config = ConfigDict(frozen=True)

    topic_id: Optional[str] = Field(default=None)
    target_id: Optional[str] = Field(default=None)
    phone_number: Optional[str] = Field(default=None)

    @model_validator(mode="after")
    def _check_exactly_one(self) -> "PublishTarget":
        provided = [
            value
            for value in (self.topic_id, self.target_id, self.phone_number)
            if value
        ]
        if len(provided) != 1:
            raise ValueError(
                "Exactly one of topic_id, target_id or phone_number must be provided"
            )
        return self

    @property
    def address(self) -> str:
        return self.topic_id or self.target_id or self.phone_number


class SubscriptionKind(Enum):
    QUEUE = "queue"
    ENDPOINT = "endpoint"


class QueueSubscription(BaseModel):
    """Durable queue subscriber. Its endpoint is derived from the topic id."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["queue"] = SubscriptionKind.QUEUE.value
    endpoint: str = Field()
    protocol: str = Field()


class EndpointSubscription(BaseModel):
    """Any other subscriber, e.g. a webhook or a second exchange."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["endpoint"] = SubscriptionKind.ENDPOINT.value
    endpoint: Optional[str] = Field(default=None)
    protocol: str = Field()


Subscription = Annotated[
    Union[QueueSubscription, EndpointSubscription], Field(discriminator="kind")
]
