"""
Recording transport fakes for the driver tests.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

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
)


class FakeProducer(MessageProducer):

    def __init__(self, session, queue):
        super().__init__()
        self.session = session
        self.queue = queue
        self.sent = 0
        self.fail_on_send = None

    def send(self, message):
        if self.fail_on_send is not None and self.sent + 1 == self.fail_on_send:
            raise self.session.connection.send_error
        self.sent += 1
        self.session.events.append("send")


class FakeConsumer(MessageConsumer):

    def __init__(self, session, queue, stale_messages=0):
        self.session = session
        self.queue = queue
        self.stale = stale_messages
        self.listener = None
        self.receive_timeouts = []

    def receive(self, timeout_ms):
        self.receive_timeouts.append(timeout_ms)
        if self.stale > 0:
            self.stale -= 1
            return BytesMessage()
        return None

    def set_message_listener(self, listener):
        self.listener = listener
        self.session.connection.on_listener(self)

    def deliver(self, count):
        for _ in range(count):
            self.listener(BytesMessage())


class FakeSession(Session):

    def __init__(self, connection, transacted, acknowledge_mode):
        self.connection = connection
        self.transacted = transacted
        self.acknowledge_mode = acknowledge_mode
        self.events = []
        self.commits = 0
        self.producers = []
        self.consumers = []
        self.fail_commit = False

    def create_producer(self, queue):
        producer = FakeProducer(self, queue)
        self.producers.append(producer)
        return producer

    def create_consumer(self, queue):
        consumer = FakeConsumer(self, queue, self.connection.stale_messages)
        self.consumers.append(consumer)
        return consumer

    def commit(self):
        if self.fail_commit:
            raise RuntimeError("commit failed")
        self.commits += 1
        self.events.append("commit")


class FakeConnection(Connection):

    def __init__(self, stale_messages=0, close_error=None, send_error=None, on_listener=None):
        self.stale_messages = stale_messages
        self.close_error = close_error
        self.send_error = send_error or RuntimeError("send failed")
        self.on_listener = on_listener or (lambda consumer: None)
        self.sessions = []
        self.started = False
        self.closed = 0

    def create_session(self, transacted, acknowledge_mode, batch_size=1):
        session = FakeSession(self, transacted, acknowledge_mode)
        self.sessions.append(session)
        return session

    def start(self):
        self.started = True

    def close(self):
        self.closed += 1
        if self.close_error is not None:
            raise self.close_error

    @property
    def session(self):
        return self.sessions[0]


class FakeConnectionFactory(ConnectionFactory):

    def __init__(self, connection=None, error=None):
        self.connection = connection or FakeConnection()
        self.error = error

    def create_connection(self):
        if self.error is not None:
            raise self.error
        return self.connection


class FakeContext(NamingContext):
    """Binds 'queue/test' and 'ConnectionFactory' to recording fakes."""

    def __init__(self, connection=None, factory_error=None):
        self.factory = FakeConnectionFactory(connection, factory_error)

    @property
    def connection(self):
        return self.factory.connection

    def lookup(self, name):
        if name == "ConnectionFactory":
            return self.factory
        if name == "queue/test":
            return Queue("test")
        raise NameNotFoundError(f"Name not bound: {name}")
