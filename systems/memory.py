"""
In-process transport provider.

Queues are plain queue.Queue objects held by an InMemoryBroker. Useful for
smoke runs of the harness itself and for tests; both roles must share one
broker, so it only makes sense within a single process.
"""

import logging
import queue as queue_module
import threading
from typing import Callable, Dict, List, Optional

from configuration import (
    DEFAULT_CONNECTION_FACTORY,
    MEMORY_POLL_INTERVAL_SECONDS,
    QUEUE_LOOKUP_PREFIXES,
)
from systems.base import (
    BytesMessage,
    Connection,
    ConnectionFactory,
    MessageConsumer,
    MessageProducer,
    NameNotFoundError,
    NamingContext,
    Queue,
    Session,
    TransportError,
    queue_name_from_lookup,
)

logger = logging.getLogger(__name__)


class InMemoryBroker:
    """Named FIFO queues shared by all connections of one broker."""

    def __init__(self):
        self._queues: Dict[str, queue_module.Queue] = {}
        self._lock = threading.Lock()

    def get_queue(self, name: str) -> queue_module.Queue:
        with self._lock:
            q = self._queues.get(name)
            if q is None:
                q = queue_module.Queue()
                self._queues[name] = q
            return q

    def depth(self, name: str) -> int:
        return self.get_queue(name).qsize()


class InMemoryProducer(MessageProducer):

    def __init__(self, session: "InMemorySession", queue: Queue):
        super().__init__()
        self.session = session
        self.queue = queue
        self.sent = 0

    def send(self, message: BytesMessage) -> None:
        self.session.check_open()
        delivered = BytesMessage()
        delivered.write_bytes(message.body)
        if self.session.transacted:
            self.session.pending.append((self.queue.name, delivered))
        else:
            self.session.broker.get_queue(self.queue.name).put(delivered)
        self.sent += 1


class InMemoryConsumer(MessageConsumer):

    def __init__(self, session: "InMemorySession", queue: Queue):
        self.session = session
        self.queue = queue
        self.listener: Optional[Callable[[BytesMessage], None]] = None
        self._thread: Optional[threading.Thread] = None

    def receive(self, timeout_ms: int) -> Optional[BytesMessage]:
        self.session.check_open()
        if self.listener is not None:
            raise TransportError("Consumer has a message listener; receive() is not allowed")
        try:
            return self.session.broker.get_queue(self.queue.name).get(
                timeout=timeout_ms / 1000.0
            )
        except queue_module.Empty:
            return None

    def set_message_listener(self, listener: Callable[[BytesMessage], None]) -> None:
        self.session.check_open()
        self.listener = listener
        if self.session.connection.started:
            self.start_delivery()

    def start_delivery(self) -> None:
        if self.listener is None or self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._deliver, name=f"memory-delivery-{self.queue.name}", daemon=True
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _deliver(self) -> None:
        q = self.session.broker.get_queue(self.queue.name)
        stop = self.session.connection.stop_event
        while not stop.is_set():
            try:
                message = q.get(timeout=MEMORY_POLL_INTERVAL_SECONDS)
            except queue_module.Empty:
                continue
            try:
                self.listener(message)
            except Exception as e:
                logger.error(f"Message listener raised: {e}")


class InMemorySession(Session):

    def __init__(self, connection: "InMemoryConnection", transacted: bool, acknowledge_mode: str):
        self.connection = connection
        self.broker = connection.broker
        self.transacted = transacted
        self.acknowledge_mode = acknowledge_mode
        self.pending: List = []
        self.commits = 0
        self.consumers: List[InMemoryConsumer] = []

    def check_open(self) -> None:
        if self.connection.closed:
            raise TransportError("Connection is closed")

    def create_producer(self, queue: Queue) -> InMemoryProducer:
        self.check_open()
        return InMemoryProducer(self, queue)

    def create_consumer(self, queue: Queue) -> InMemoryConsumer:
        self.check_open()
        consumer = InMemoryConsumer(self, queue)
        self.consumers.append(consumer)
        return consumer

    def commit(self) -> None:
        self.check_open()
        if not self.transacted:
            raise TransportError("Session is not transacted")
        for name, message in self.pending:
            self.broker.get_queue(name).put(message)
        self.pending = []
        self.commits += 1


class InMemoryConnection(Connection):

    def __init__(self, broker: InMemoryBroker):
        self.broker = broker
        self.started = False
        self.closed = False
        self.stop_event = threading.Event()
        self.sessions: List[InMemorySession] = []

    def create_session(self, transacted: bool, acknowledge_mode: str, batch_size: int = 1) -> InMemorySession:
        if self.closed:
            raise TransportError("Connection is closed")
        session = InMemorySession(self, transacted, acknowledge_mode)
        self.sessions.append(session)
        return session

    def start(self) -> None:
        if self.closed:
            raise TransportError("Connection is closed")
        self.started = True
        for session in self.sessions:
            for consumer in session.consumers:
                consumer.start_delivery()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.stop_event.set()
        for session in self.sessions:
            # Uncommitted sends are rolled back
            session.pending = []
            for consumer in session.consumers:
                if threading.current_thread() is not consumer._thread:
                    consumer.join()


class InMemoryConnectionFactory(ConnectionFactory):

    def __init__(self, broker: InMemoryBroker):
        self.broker = broker

    def create_connection(self) -> InMemoryConnection:
        return InMemoryConnection(self.broker)


class InMemoryContext(NamingContext):
    """Naming context binding connection factories to one in-process broker."""

    def __init__(self, broker: InMemoryBroker = None, factory_names=(DEFAULT_CONNECTION_FACTORY,)):
        self.broker = broker or InMemoryBroker()
        self.factory_names = set(factory_names)

    def lookup(self, name: str):
        if name in self.factory_names:
            return InMemoryConnectionFactory(self.broker)
        queue_name = queue_name_from_lookup(name, QUEUE_LOOKUP_PREFIXES)
        if queue_name is None:
            raise NameNotFoundError(f"Name not bound: {name}")
        return Queue(queue_name)
