from typing import Any, Optional

from queuebridge.models import MessageAttribute, MessageAttributes


def to_aws_attributes(attributes: Optional[MessageAttributes]) -> dict[str, dict[str, Any]]:
    """Convert message attributes to the SNS/SQS ``MessageAttributes`` shape."""
    aws_attributes = {}
    for name, attribute in (attributes or {}).items():
        value: dict[str, Any] = {"DataType": attribute.data_type}
        if attribute.binary_value is not None:
            value["BinaryValue"] = attribute.binary_value
        else:
            value["StringValue"] = attribute.string_value
        aws_attributes[name] = value
    return aws_attributes


def from_aws_attributes(aws_attributes: Optional[dict[str, dict[str, Any]]]) -> MessageAttributes:
    return {
        name: MessageAttribute(
            data_type=value["DataType"],
            string_value=value.get("StringValue"),
            binary_value=value.get("BinaryValue"),
        )
        for name, value in (aws_attributes or {}).items()
    }
