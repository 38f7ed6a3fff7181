"""
Addressing and header helpers for the RabbitMQ binding.

Topics are fanout exchanges addressed as ``amqp-exchange:<name>`` and queues
are addressed as ``amqp-queue:<name>``. The leading token is the protocol, so
the queue endpoint of a topic is derived by swapping it.
"""

import logging
from typing import Any, Optional, Union

from amqpstorm import Channel

from queuebridge.models import MessageAttribute, MessageAttributes

logger = logging.getLogger(__name__)

EXCHANGE_PROTOCOL = "amqp-exchange"
QUEUE_PROTOCOL = "amqp-queue"


def build_address(protocol: str, name: str) -> str:
    return f"{protocol}:{name}"


def address_protocol(address: Optional[str]) -> Optional[str]:
    if not address or ":" not in address:
        return None
    return address.split(":", 1)[0]


def parse_address(address: Optional[str], protocol: str) -> str:
    """
    Return the exchange or queue name from an address.

    :raises ValueError: If the address is not of the given protocol.
    """
    prefix = f"{protocol}:"
    if not address or not address.startswith(prefix) or len(address) == len(prefix):
        raise ValueError(f"Invalid {protocol} address: {address!r}")
    return address[len(prefix):]


def declare_fanout_exchange(channel: Channel, exchange_name: str) -> None:
    channel.exchange.declare(
        exchange=exchange_name,
        exchange_type="fanout",
        durable=True,
        auto_delete=False,
    )
    logger.info("Exchange declared: %s", exchange_name)


def queue_arguments(attributes: Optional[dict[str, str]]) -> Optional[dict[str, Any]]:
    """
    Convert queue attributes to ``x-`` declare arguments.

    Numeric strings become ints, since RabbitMQ rejects ``x-message-ttl`` and
    friends when given as strings.
    """
    if not attributes:
        return None
    arguments = {}
    for key, value in attributes.items():
        if isinstance(value, str) and value.lstrip("-").isdigit():
            arguments[key] = int(value)
        else:
            arguments[key] = value
    return arguments


def _text(value: Union[str, bytes]) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def encode_headers(attributes: Optional[MessageAttributes]) -> dict[str, dict[str, Any]]:
    """Store each attribute as a nested table so its data type survives the trip."""
    headers = {}
    for name, attribute in (attributes or {}).items():
        value: dict[str, Any] = {"data_type": attribute.data_type}
        if attribute.binary_value is not None:
            value["binary_value"] = attribute.binary_value
        else:
            value["string_value"] = attribute.string_value
        headers[name] = value
    return headers


def decode_headers(headers: Optional[dict]) -> MessageAttributes:
    """
    Inverse of ``encode_headers``.

    Plain header values set by other publishers are read as String attributes.
    """
    attributes = {}
    for raw_name, raw_value in (headers or {}).items():
        name = _text(raw_name)
        if isinstance(raw_value, dict):
            value = {_text(key): item for key, item in raw_value.items()}
            if "data_type" in value:
                binary_value = value.get("binary_value")
                if isinstance(binary_value, str):
                    binary_value = binary_value.encode("utf-8")
                string_value = value.get("string_value")
                attributes[name] = MessageAttribute(
                    data_type=_text(value["data_type"]),
                    string_value=_text(string_value) if string_value is not None else None,
                    binary_value=binary_value,
                )
                continue
        if isinstance(raw_value, (str, bytes)):
            attributes[name] = MessageAttribute.string(_text(raw_value))
        else:
            attributes[name] = MessageAttribute.string(str(raw_value))
    return attributes
