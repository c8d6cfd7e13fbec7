import json
import logging

import aio_pika
from aio_pika import ExchangeType, Message as AioPikaMessage

from meteor_rx.base.config import AmqpConfig, PipelineConfig
from meteor_rx.base.messages import Message, MessageGenerator
from meteor_rx.common.utils import CustomJSONEncoder
from meteor_rx.operators.publisher.channel import PushChannel, PushContext

logger = logging.getLogger(__name__)


class AmqpChannel(PushChannel):
    """Announces a processed pass on the station's RabbitMQ topic exchange."""

    name = "amqp"

    def __init__(self, config: PipelineConfig):
        super().__init__(config.amqp.enabled)
        self.config: AmqpConfig = config.amqp
        self.msg_generator = MessageGenerator(source="meteor_rx", version=self.config.message_version)

    def build_message(self, context: PushContext) -> Message:
        capture = context.capture
        parameters = {
            "pass_id": context.pass_id,
            "sat_name": capture.sat_name,
            "filename_base": capture.filename_base,
            "pass_start": capture.epoch_start,
            "max_elevation": capture.max_elevation,
            "direction": capture.direction.value,
            "side": capture.side.value,
            "daylight": context.daylight,
            "sun_elevation": context.annotation.sun_elevation,
            "gain": context.annotation.gain,
            "images": [str(f) for f in context.push_files],
        }
        return self.msg_generator.generate_telemetry("pass_processed", parameters)

    async def publish(self, context: PushContext) -> None:
        message = self.build_message(context)
        body = json.dumps(message, cls=CustomJSONEncoder).encode("utf-8")

        connection = await aio_pika.connect_robust(self.config.rabbitmq_server)
        try:
            channel = await connection.channel()
            exchange = await channel.declare_exchange(
                self.config.exchange, ExchangeType.TOPIC, durable=True, auto_delete=False
            )
            await exchange.publish(
                AioPikaMessage(body=body, content_type="application/json"),
                routing_key=self.config.routing_key,
            )
            logger.info(f"Pass published to exchange '{self.config.exchange}' with routing key '{self.config.routing_key}'")
        finally:
            await connection.close()
