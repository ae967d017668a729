"""
Transport contract for the queue benchmark.

The benchmark drivers only talk to these interfaces. Concrete providers
(RabbitMQ, in-memory) implement them; the drivers never construct a
connection themselves, they obtain one through a NamingContext.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

# Acknowledgement modes
AUTO_ACKNOWLEDGE = "auto"
DUPS_OK_ACKNOWLEDGE = "dups_ok"
SESSION_TRANSACTED = "transacted"

# Delivery modes
PERSISTENT = "persistent"
NON_PERSISTENT = "non_persistent"


class BenchError(Exception):
    """Base class for all benchmark errors."""


class SetupError(BenchError):
    """Lookup, connection or session creation failed."""


class NameNotFoundError(SetupError):
    """A lookup name is not bound in the naming context."""


class TransportError(BenchError):
    """A send, receive or commit failed."""


class CleanupError(BenchError):
    """Closing the transport failed."""


class CompletionTimeout(BenchError):
    """The listener did not receive all messages in time."""


class Queue:
    """Reference to a named point-to-point queue."""

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, other):
        return isinstance(other, Queue) and other.name == self.name

    def __hash__(self):
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Queue(name='{self.name}')"


class BytesMessage:
    """A message carrying an opaque byte body."""

    def __init__(self):
        self.body = b""

    def write_bytes(self, data: bytes) -> None:
        self.body += bytes(data)

    def __len__(self) -> int:
        return len(self.body)


class MessageProducer(ABC):
    """Send endpoint bound to one queue."""

    def __init__(self):
        self.disable_message_id = False
        self.disable_message_timestamp = False
        self.delivery_mode = PERSISTENT

    @abstractmethod
    def send(self, message: BytesMessage) -> None:
        """Send a message to the producer's queue."""


class MessageConsumer(ABC):
    """Receive endpoint bound to one queue."""

    @abstractmethod
    def receive(self, timeout_ms: int) -> Optional[BytesMessage]:
        """Pull the next message, or return None once timeout_ms elapses."""

    @abstractmethod
    def set_message_listener(self, listener: Callable[[BytesMessage], None]) -> None:
        """Deliver every further message to listener on a provider-owned thread.

        Invocations for one consumer never overlap.
        """


class Session(ABC):
    """Unit-of-work scope for producers and consumers."""

    @abstractmethod
    def create_producer(self, queue: Queue) -> MessageProducer:
        pass

    @abstractmethod
    def create_consumer(self, queue: Queue) -> MessageConsumer:
        pass

    def create_bytes_message(self) -> BytesMessage:
        return BytesMessage()

    @abstractmethod
    def commit(self) -> None:
        """Commit all sends and receipts since the last commit."""


class Connection(ABC):

    @abstractmethod
    def create_session(self, transacted: bool, acknowledge_mode: str, batch_size: int = 1) -> Session:
        """Open a session. batch_size is the number of receipts held in one transaction."""

    @abstractmethod
    def start(self) -> None:
        """Begin message delivery to consumers."""

    @abstractmethod
    def close(self) -> None:
        pass


class ConnectionFactory(ABC):

    @abstractmethod
    def create_connection(self) -> Connection:
        pass


class NamingContext(ABC):
    """Resolves lookup names to queues and connection factories."""

    @abstractmethod
    def lookup(self, name: str):
        """Return the Queue or ConnectionFactory bound to name.

        Raises:
            NameNotFoundError: If nothing is bound to name
        """


def queue_name_from_lookup(name: str, prefixes) -> Optional[str]:
    """Strip a JNDI-style queue prefix such as 'queue/'.

    Returns:
        The bare queue name, or None if name has none of the prefixes
    """
    for prefix in prefixes:
        if name.startswith(prefix) and len(name) > len(prefix):
            return name[len(prefix):]
    return None


def open_session(context: NamingContext, params) -> Tuple[Queue, Connection, Session]:
    """Resolve the queue and connection factory and open a session.

    Any failure is raised as SetupError. A connection opened before the
    failure is closed again.

    Args:
        context: Naming context to resolve lookup names with
        params: BenchmarkParameters for the run

    Returns:
        Tuple of (queue, connection, session)
    """
    try:
        queue = context.lookup(params.queue_lookup)
        factory = context.lookup(params.connection_factory_lookup)
    except SetupError:
        raise
    except Exception as e:
        raise SetupError(f"Lookup failed: {e}") from e

    if not isinstance(queue, Queue):
        raise SetupError(f"'{params.queue_lookup}' is not a queue")
    if not isinstance(factory, ConnectionFactory):
        raise SetupError(f"'{params.connection_factory_lookup}' is not a connection factory")

    try:
        connection = factory.create_connection()
    except SetupError:
        raise
    except Exception as e:
        raise SetupError(f"Failed to create connection: {e}") from e

    try:
        session = connection.create_session(
            params.transacted, params.acknowledge_mode, params.batch_size
        )
    except Exception as e:
        close_quietly(connection)
        if isinstance(e, SetupError):
            raise
        raise SetupError(f"Failed to create session: {e}") from e

    return queue, connection, session


def close_quietly(connection: Optional[Connection]) -> None:
    """Close a connection, logging instead of raising on failure."""
    if connection is None:
        return
    try:
        connection.close()
    except Exception as e:
        logger.error(f"Failed to close connection: {e}")
