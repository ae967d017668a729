"""
RabbitMQ transport provider built on pika.

Each session owns one channel. Transacted sessions run in AMQP tx mode,
so sends and acks become visible on tx_commit. A message listener runs
start_consuming on a thread owned by the consumer; it is stopped from the
driving thread through add_callback_threadsafe.
"""

import logging
import threading
import time
import uuid
from typing import Callable, Dict, Optional

import pika
import pika.exceptions
import pika.spec

from configuration import (
    AMQP_URL,
    CONSUMER_PREFETCH,
    DEFAULT_CONNECTION_FACTORY,
    QUEUE_DURABLE,
    QUEUE_LOOKUP_PREFIXES,
)
from systems.base import (
    DUPS_OK_ACKNOWLEDGE,
    PERSISTENT,
    BytesMessage,
    CleanupError,
    Connection,
    ConnectionFactory,
    MessageConsumer,
    MessageProducer,
    NameNotFoundError,
    NamingContext,
    Queue,
    Session,
    SetupError,
    TransportError,
    queue_name_from_lookup,
)

logger = logging.getLogger(__name__)

_URL_SCHEMES = ("amqp://", "amqps://")


class RabbitMQProducer(MessageProducer):

    def __init__(self, session: "RabbitMQSession", queue: Queue):
        super().__init__()
        self.session = session
        self.queue = queue

    def _properties(self) -> pika.BasicProperties:
        if self.delivery_mode == PERSISTENT:
            delivery_mode = pika.spec.PERSISTENT_DELIVERY_MODE
        else:
            delivery_mode = pika.spec.TRANSIENT_DELIVERY_MODE
        return pika.BasicProperties(
            delivery_mode=delivery_mode,
            message_id=None if self.disable_message_id else uuid.uuid4().hex,
            timestamp=None if self.disable_message_timestamp else int(time.time()),
        )

    def send(self, message: BytesMessage) -> None:
        try:
            self.session.channel.basic_publish(
                exchange="",
                routing_key=self.queue.name,
                body=message.body,
                properties=self._properties(),
            )
        except pika.exceptions.AMQPError as e:
            raise TransportError(f"Failed to send to {self.queue.name}: {e!r}") from e


class RabbitMQConsumer(MessageConsumer):

    def __init__(self, session: "RabbitMQSession", queue: Queue):
        self.session = session
        self.queue = queue
        self.listener: Optional[Callable[[BytesMessage], None]] = None
        self._generator = None
        self._thread: Optional[threading.Thread] = None

    @property
    def auto_ack(self) -> bool:
        return self.session.acknowledge_mode == DUPS_OK_ACKNOWLEDGE

    def receive(self, timeout_ms: int) -> Optional[BytesMessage]:
        if self.listener is not None:
            raise TransportError("Consumer has a message listener; receive() is not allowed")
        channel = self.session.channel
        try:
            if self._generator is None:
                self._generator = channel.consume(
                    self.queue.name,
                    auto_ack=self.auto_ack,
                    inactivity_timeout=timeout_ms / 1000.0,
                )
            method, _properties, body = next(self._generator)
            if method is None:
                return None
            if not self.auto_ack:
                # Transacted acks take effect on commit
                channel.basic_ack(delivery_tag=method.delivery_tag)
        except pika.exceptions.AMQPError as e:
            raise TransportError(f"Failed to receive from {self.queue.name}: {e!r}") from e
        return _to_message(body)

    def set_message_listener(self, listener: Callable[[BytesMessage], None]) -> None:
        channel = self.session.channel
        try:
            if self._generator is not None:
                channel.cancel()
                self._generator = None
            channel.basic_consume(
                queue=self.queue.name,
                on_message_callback=self._on_delivery,
                auto_ack=self.auto_ack,
            )
        except pika.exceptions.AMQPError as e:
            raise TransportError(f"Failed to consume from {self.queue.name}: {e!r}") from e
        self.listener = listener
        if self.session.connection.started:
            self.start_delivery()

    def start_delivery(self) -> None:
        if self.listener is None or self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._consume, name=f"amqp-delivery-{self.queue.name}", daemon=True
        )
        self._thread.start()

    def stop_delivery(self) -> None:
        if self._thread is None or not self._thread.is_alive():
            return
        self.session.connection.pika_connection.add_callback_threadsafe(
            self.session.channel.stop_consuming
        )
        self._thread.join()

    def _consume(self) -> None:
        try:
            self.session.channel.start_consuming()
        except pika.exceptions.AMQPError as e:
            logger.error(f"Delivery from {self.queue.name} stopped: {e!r}")

    def _on_delivery(self, channel, method, _properties, body: bytes) -> None:
        try:
            if self.session.transacted:
                channel.basic_ack(delivery_tag=method.delivery_tag)
            self.listener(_to_message(body))
            if not self.session.transacted and not self.auto_ack:
                channel.basic_ack(delivery_tag=method.delivery_tag)
        except Exception as e:
            logger.error(f"Message listener raised: {e}")


class RabbitMQSession(Session):

    def __init__(self, connection: "RabbitMQConnection", channel, transacted: bool, acknowledge_mode: str):
        self.connection = connection
        self.channel = channel
        self.transacted = transacted
        self.acknowledge_mode = acknowledge_mode
        self.consumers = []
        self._declared = set()

    def _declare(self, queue: Queue) -> None:
        if queue.name in self._declared:
            return
        try:
            self.channel.queue_declare(queue=queue.name, durable=QUEUE_DURABLE)
        except pika.exceptions.AMQPError as e:
            raise SetupError(f"Failed to declare queue {queue.name}: {e!r}") from e
        self._declared.add(queue.name)

    def create_producer(self, queue: Queue) -> RabbitMQProducer:
        self._declare(queue)
        return RabbitMQProducer(self, queue)

    def create_consumer(self, queue: Queue) -> RabbitMQConsumer:
        self._declare(queue)
        consumer = RabbitMQConsumer(self, queue)
        self.consumers.append(consumer)
        return consumer

    def commit(self) -> None:
        if not self.transacted:
            raise TransportError("Session is not transacted")
        try:
            self.channel.tx_commit()
        except pika.exceptions.AMQPError as e:
            raise TransportError(f"Commit failed: {e!r}") from e


class RabbitMQConnection(Connection):

    def __init__(self, pika_connection):
        self.pika_connection = pika_connection
        self.started = False
        self.sessions = []

    def create_session(self, transacted: bool, acknowledge_mode: str, batch_size: int = 1) -> RabbitMQSession:
        prefetch = CONSUMER_PREFETCH
        if transacted:
            # Acks in a tx channel free prefetch credit only on tx_commit
            prefetch = max(CONSUMER_PREFETCH, batch_size)
        try:
            channel = self.pika_connection.channel()
            if transacted:
                channel.tx_select()
            channel.basic_qos(prefetch_count=prefetch)
        except pika.exceptions.AMQPError as e:
            raise SetupError(f"Failed to create session: {e!r}") from e
        session = RabbitMQSession(self, channel, transacted, acknowledge_mode)
        self.sessions.append(session)
        return session

    def start(self) -> None:
        self.started = True
        for session in self.sessions:
            for consumer in session.consumers:
                consumer.start_delivery()

    def close(self) -> None:
        try:
            for session in self.sessions:
                for consumer in session.consumers:
                    consumer.stop_delivery()
            if self.pika_connection.is_open:
                self.pika_connection.close()
        except pika.exceptions.AMQPError as e:
            raise CleanupError(f"Failed to close connection: {e!r}") from e


class RabbitMQConnectionFactory(ConnectionFactory):

    def __init__(self, url: str):
        self.url = url

    def create_connection(self) -> RabbitMQConnection:
        try:
            parameters = pika.URLParameters(self.url)
            pika_connection = pika.BlockingConnection(parameters)
        except pika.exceptions.AMQPError as e:
            raise SetupError(f"Failed to connect to AMQP broker: {e!r}") from e
        logger.info(f"Connected to AMQP broker at {parameters.host}:{parameters.port}")
        return RabbitMQConnection(pika_connection)


class RabbitMQContext(NamingContext):
    """Naming context for a RabbitMQ broker.

    Connection factory names map to AMQP URLs; an AMQP URL is also accepted
    as a factory name directly. Queue names carry a 'queue/' prefix.
    """

    def __init__(self, amqp_url: str = AMQP_URL, factories: Dict[str, str] = None):
        self.factories = {DEFAULT_CONNECTION_FACTORY: amqp_url}
        if factories:
            self.factories.update(factories)

    def lookup(self, name: str):
        if name in self.factories:
            return RabbitMQConnectionFactory(self.factories[name])
        if name.startswith(_URL_SCHEMES):
            return RabbitMQConnectionFactory(name)
        queue_name = queue_name_from_lookup(name, QUEUE_LOOKUP_PREFIXES)
        if queue_name is None:
            raise NameNotFoundError(f"Name not bound: {name}")
        return Queue(queue_name)


def _to_message(body: bytes) -> BytesMessage:
    message = BytesMessage()
    message.write_bytes(body)
    return message
