import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import typer
from typing_extensions import Annotated

from queuebridge.config import (
    AwsTransportConfig,
    QueueConfig,
    RabbitTransportConfig,
    TopicConfig,
)
from queuebridge.logging_config import setup_logging
from queuebridge.models import MessageAttribute, PublishTarget
from queuebridge.repository.aws.session import build_sns_client, build_sqs_client
from queuebridge.repository.aws.sns import SnsTopicTransport
from queuebridge.repository.aws.sqs import SqsQueueTransport
from queuebridge.repository.message.abstract_interface import (
    QueueTransportInterface,
    TopicTransportInterface,
)
from queuebridge.repository.message.handlers import LoggingMessageHandler
from queuebridge.repository.message.queue import QueueService
from queuebridge.repository.message.topic import TopicService
from queuebridge.repository.rabbitmq.connection import (
    RobustConnection,
    build_rabbitmq_connection,
)
from queuebridge.repository.rabbitmq.queue import RabbitQueueTransport
from queuebridge.repository.rabbitmq.topic import RabbitTopicTransport
from queuebridge.worker.consume_loop import ConsumeLoop
from queuebridge.worker.consumer_service import ConsumerService

app = typer.Typer()
logger = logging.getLogger(__name__)


class Broker(str, Enum):
    AWS = "aws"
    RABBITMQ = "rabbitmq"


def key_value_list_to_dict(items: Optional[list[str]]) -> dict[str, str]:
    """Convert ``KEY=VALUE`` strings to a dictionary."""
    result = {}
    for item in items or []:
        if "=" not in item:
            raise typer.BadParameter(f"Expected KEY=VALUE, got: {item}")
        key, value = item.split("=", 1)
        result[key] = value
    return result


@dataclass
class BridgeContext:
    """Broker settings collected by the callback, shared with every command."""

    broker: Broker
    aws_config: Optional[AwsTransportConfig] = None
    rabbit_config: Optional[RabbitTransportConfig] = None
    _rabbit_connection: Optional[RobustConnection] = field(default=None, repr=False)

    def _connection(self) -> RobustConnection:
        if self._rabbit_connection is None:
            self._rabbit_connection = build_rabbitmq_connection(self.rabbit_config)
        return self._rabbit_connection

    def topic_transport(self) -> TopicTransportInterface:
        if self.broker == Broker.AWS:
            return SnsTopicTransport(build_sns_client(self.aws_config))
        return RabbitTopicTransport(self._connection().get_connection)

    def queue_transport(self, queue_config: QueueConfig) -> QueueTransportInterface:
        if self.broker == Broker.AWS:
            return SqsQueueTransport(
                build_sqs_client(self.aws_config),
                wait_time_seconds=queue_config.wait_time_seconds,
                visibility_timeout=queue_config.visibility_timeout,
            )
        return RabbitQueueTransport(self._connection().get_connection)

    def close(self) -> None:
        if self._rabbit_connection is not None:
            self._rabbit_connection.close()
            self._rabbit_connection = None


@app.callback()
def callback(
    ctx: typer.Context,
    broker: Annotated[Broker, typer.Option(envvar="QUEUEBRIDGE_BROKER")] = Broker.AWS,
    aws_region: Annotated[
        str, typer.Option(envvar="QUEUEBRIDGE_AWS_REGION")
    ] = "us-east-1",
    aws_endpoint_url: Annotated[
        Optional[str], typer.Option(envvar="QUEUEBRIDGE_AWS_ENDPOINT_URL")
    ] = None,
    aws_access_key_id: Annotated[
        Optional[str], typer.Option(envvar="QUEUEBRIDGE_AWS_ACCESS_KEY_ID")
    ] = None,
    aws_secret_access_key: Annotated[
        Optional[str], typer.Option(envvar="QUEUEBRIDGE_AWS_SECRET_ACCESS_KEY")
    ] = None,
    aws_session_token: Annotated[
        Optional[str], typer.Option(envvar="QUEUEBRIDGE_AWS_SESSION_TOKEN")
    ] = None,
    rabbitmq_host: Annotated[
        str, typer.Option(envvar="QUEUEBRIDGE_RABBITMQ_HOST")
    ] = "localhost",
    rabbitmq_port: Annotated[int, typer.Option(envvar="QUEUEBRIDGE_RABBITMQ_PORT")] = 5672,
    rabbitmq_username: Annotated[
        str, typer.Option(envvar="QUEUEBRIDGE_RABBITMQ_USER")
    ] = "guest",
    rabbitmq_password: Annotated[
        str, typer.Option(envvar="QUEUEBRIDGE_RABBITMQ_PASSWORD")
    ] = "guest",
    rabbitmq_virtual_host: Annotated[
        str, typer.Option(envvar="QUEUEBRIDGE_RABBITMQ_VHOST")
    ] = "/",
    enable_ssl: Annotated[
        bool, typer.Option(envvar="QUEUEBRIDGE_RABBITMQ_ENABLE_SSL")
    ] = False,
    rabbitmq_ssl_hostname: Annotated[
        Optional[str], typer.Option(envvar="QUEUEBRIDGE_RABBITMQ_SSL_HOSTNAME")
    ] = None,
    app_env: Annotated[Optional[str], typer.Option(envvar="APP_ENV")] = None,
    enable_otel: Annotated[bool, typer.Option(envvar="QUEUEBRIDGE_ENABLE_OTEL")] = False,
    debug: Annotated[bool, typer.Option(envvar="QUEUEBRIDGE_DEBUG")] = False,
):
    setup_logging(
        level=logging.DEBUG if debug else logging.INFO,
        microservice_name=ctx.invoked_subcommand,
        app_env=app_env,
        enable_otel=enable_otel,
    )

    bridge_context = BridgeContext(broker=broker)
    if broker == Broker.AWS:
        bridge_context.aws_config = AwsTransportConfig(
            region=aws_region,
            endpoint_url=aws_endpoint_url,
            access_key_id=aws_access_key_id,
            secret_access_key=aws_secret_access_key,
            session_token=aws_session_token,
        )
    else:
        bridge_context.rabbit_config = RabbitTransportConfig(
            host=rabbitmq_host,
            port=rabbitmq_port,
            username=rabbitmq_username,
            password=rabbitmq_password,
            virtual_host=rabbitmq_virtual_host,
            ssl_enabled=enable_ssl,
            ssl_hostname=rabbitmq_ssl_hostname,
        )
    ctx.obj = bridge_context
    ctx.call_on_close(bridge_context.close)


@app.command()
def create_topic(
    ctx: typer.Context,
    topic_name: Annotated[str, typer.Option(envvar="QUEUEBRIDGE_TOPIC_NAME")],
    queue_protocol: Annotated[str, typer.Option(envvar="QUEUEBRIDGE_QUEUE_PROTOCOL")],
    subscriber_protocol: Annotated[
        str, typer.Option(envvar="QUEUEBRIDGE_SUBSCRIBER_PROTOCOL")
    ],
    subscriber_endpoint: Annotated[
        Optional[str], typer.Option(envvar="QUEUEBRIDGE_SUBSCRIBER_ENDPOINT")
    ] = None,
    raw_message_delivery: Annotated[
        bool, typer.Option(envvar="QUEUEBRIDGE_RAW_MESSAGE_DELIVERY")
    ] = False,
):
    """Create a topic with its queue subscriber and external subscriber."""
    bridge_context: BridgeContext = ctx.obj
    topic_config = TopicConfig(
        topic_name=topic_name,
        queue_protocol=queue_protocol,
        subscriber_endpoint=subscriber_endpoint,
        subscriber_protocol=subscriber_protocol,
        raw_message_delivery=raw_message_delivery,
    )
    service = TopicService(bridge_context.topic_transport(), topic_config)
    typer.echo(service.create())


@app.command()
def create_queue(
    ctx: typer.Context,
    queue_name: Annotated[str, typer.Option(envvar="QUEUEBRIDGE_QUEUE_NAME")],
    attribute: Annotated[
        Optional[list[str]], typer.Option(help="Queue attribute as KEY=VALUE")
    ] = None,
):
    """Create a queue, optionally with attributes such as a retention period."""
    bridge_context: BridgeContext = ctx.obj
    queue_config = QueueConfig(queue_name=queue_name)
    service = QueueService(bridge_context.queue_transport(queue_config), queue_config)
    typer.echo(service.create(key_value_list_to_dict(attribute) or None))


@app.command()
def publish(
    ctx: typer.Context,
    message: str,
    topic_id: Annotated[Optional[str], typer.Option()] = None,
    target_id: Annotated[Optional[str], typer.Option()] = None,
    phone_number: Annotated[Optional[str], typer.Option()] = None,
    subject: Annotated[Optional[str], typer.Option()] = None,
    message_structure: Annotated[
        Optional[str], typer.Option(help="Set to json to send one payload per protocol")
    ] = None,
    attribute: Annotated[
        Optional[list[str]], typer.Option(help="String attribute as NAME=VALUE")
    ] = None,
):
    """Publish a message to a topic, a subscriber target or a phone number."""
    bridge_context: BridgeContext = ctx.obj
    try:
        target = PublishTarget(
            topic_id=topic_id, target_id=target_id, phone_number=phone_number
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    attributes = {
        name: MessageAttribute.string(value)
        for name, value in key_value_list_to_dict(attribute).items()
    }
    # only the transport is used for publishing, the topic settings are irrelevant
    service = TopicService(
        bridge_context.topic_transport(),
        TopicConfig(topic_name="", queue_protocol=""),
    )
    typer.echo(
        service.publish_to_topic(
            message,
            attributes,
            target,
            subject=subject,
            message_structure=message_structure,
        )
    )


@app.command()
def send(
    ctx: typer.Context,
    body: str,
    queue_name: Annotated[str, typer.Option(envvar="QUEUEBRIDGE_QUEUE_NAME")],
):
    """Send a message straight to a queue."""
    bridge_context: BridgeContext = ctx.obj
    queue_config = QueueConfig(queue_name=queue_name)
    service = QueueService(bridge_context.queue_transport(queue_config), queue_config)
    typer.echo(service.send(body))


@app.command()
def consume(
    ctx: typer.Context,
    queue_name: Annotated[str, typer.Option(envvar="QUEUEBRIDGE_QUEUE_NAME")],
    max_messages: Annotated[
        int, typer.Option(envvar="QUEUEBRIDGE_MAX_MESSAGES", min=1, max=10)
    ] = 10,
    poll_interval: Annotated[
        float, typer.Option(help="Seconds to wait after an empty or failed cycle")
    ] = 1.0,
    max_cycles: Annotated[Optional[int], typer.Option()] = None,
    cycle_deadline: Annotated[
        Optional[float], typer.Option(help="Seconds after which a cycle stops dispatching")
    ] = None,
    wait_time_seconds: Annotated[Optional[int], typer.Option()] = None,
    visibility_timeout: Annotated[Optional[int], typer.Option()] = None,
    cache_address: Annotated[
        Optional[bool],
        typer.Option(
            "--cache-address/--no-cache-address",
            help="Resolve the queue address once. Defaults to on for rabbitmq, "
            "where every resolution opens an extra channel",
        ),
    ] = None,
):
    """Consume a queue, logging every message before acknowledging it."""
    bridge_context: BridgeContext = ctx.obj
    if cache_address is None:
        cache_address = bridge_context.broker == Broker.RABBITMQ
    queue_config = QueueConfig(
        queue_name=queue_name,
        max_messages=max_messages,
        wait_time_seconds=wait_time_seconds,
        visibility_timeout=visibility_timeout,
        cache_address=cache_address,
    )
    queue_service = QueueService(
        bridge_context.queue_transport(queue_config), queue_config
    )
    consume_loop = ConsumeLoop(
        queue_service, LoggingMessageHandler(), cycle_deadline=cycle_deadline
    )
    ConsumerService(consume_loop, poll_interval=poll_interval).run(max_cycles=max_cycles)
