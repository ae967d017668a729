"""
Tests for the in-process transport provider, including a full sender/listener run.
"""

import os
import sys
import threading
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cli.listener import ListenerRunner
from cli.sender import run_sender
from common import BenchmarkParameters
from systems.base import (
    AUTO_ACKNOWLEDGE,
    SESSION_TRANSACTED,
    BytesMessage,
    NameNotFoundError,
    Queue,
    TransportError,
)
from systems.memory import InMemoryBroker, InMemoryConnectionFactory, InMemoryContext


class TestInMemoryContext(unittest.TestCase):

    def test_lookup(self):
        context = InMemoryContext()
        self.assertEqual(context.lookup("queue/perf"), Queue("perf"))
        self.assertEqual(context.lookup("/queue/perf"), Queue("perf"))
        self.assertIsInstance(context.lookup("ConnectionFactory"), InMemoryConnectionFactory)

    def test_unknown_name(self):
        with self.assertRaises(NameNotFoundError):
            InMemoryContext().lookup("perf")


class TestInMemorySession(unittest.TestCase):

    def setUp(self):
        self.broker = InMemoryBroker()
        self.connection = InMemoryConnectionFactory(self.broker).create_connection()
        self.queue = Queue("perf")

    def tearDown(self):
        self.connection.close()

    def message(self, body=b"x"):
        message = BytesMessage()
        message.write_bytes(body)
        return message

    def test_transacted_sends_visible_after_commit(self):
        session = self.connection.create_session(True, SESSION_TRANSACTED)
        producer = session.create_producer(self.queue)
        producer.send(self.message())
        producer.send(self.message())
        self.assertEqual(self.broker.depth("perf"), 0)
        session.commit()
        self.assertEqual(self.broker.depth("perf"), 2)
        self.assertEqual(session.commits, 1)

    def test_commit_requires_transacted_session(self):
        session = self.connection.create_session(False, AUTO_ACKNOWLEDGE)
        with self.assertRaises(TransportError):
            session.commit()

    def test_receive(self):
        session = self.connection.create_session(False, AUTO_ACKNOWLEDGE)
        session.create_producer(self.queue).send(self.message(b"abc"))
        consumer = session.create_consumer(self.queue)
        self.assertEqual(consumer.receive(100).body, b"abc")
        self.assertIsNone(consumer.receive(10))

    def test_close_rolls_back_pending_sends(self):
        session = self.connection.create_session(True, SESSION_TRANSACTED)
        session.create_producer(self.queue).send(self.message())
        self.connection.close()
        self.assertEqual(self.broker.depth("perf"), 0)
        with self.assertRaises(TransportError):
            session.create_producer(self.queue)

    def test_listener_delivery_starts_with_connection(self):
        session = self.connection.create_session(False, AUTO_ACKNOWLEDGE)
        session.create_producer(self.queue).send(self.message())
        received = threading.Event()
        consumer = session.create_consumer(self.queue)
        consumer.set_message_listener(lambda message: received.set())
        self.assertFalse(received.wait(0.2))
        self.connection.start()
        self.assertTrue(received.wait(5))

    def test_listener_errors_do_not_stop_delivery(self):
        session = self.connection.create_session(False, AUTO_ACKNOWLEDGE)
        producer = session.create_producer(self.queue)
        calls = []
        done = threading.Event()

        def listener(message):
            calls.append(message)
            if len(calls) == 2:
                done.set()
            raise RuntimeError("listener failed")

        self.connection.start()
        session.create_consumer(self.queue).set_message_listener(listener)
        producer.send(self.message())
        producer.send(self.message())
        self.assertTrue(done.wait(5))


class TestInMemoryBenchmark(unittest.TestCase):
    """Run both roles against one in-process broker."""

    def run_both(self, params):
        context = InMemoryContext()
        listener = ListenerRunner(context, params, timeout=30)
        results = {}

        def listen():
            results["rate"] = listener.run()

        thread = threading.Thread(target=listen)
        thread.start()
        run_sender(context, params)
        thread.join(30)
        self.assertFalse(thread.is_alive())
        return listener, results

    def test_non_transacted_run(self):
        params = BenchmarkParameters(
            messages_to_send=500, warmup_messages=50, message_size=128,
            queue_lookup="queue/perf",
        )
        listener, results = self.run_both(params)
        self.assertIn("rate", results)
        self.assertEqual(listener.listener.count, 500)
        self.assertEqual(listener.listener.ignored, 0)

    def test_transacted_run(self):
        params = BenchmarkParameters(
            messages_to_send=200, warmup_messages=20, message_size=16,
            transacted=True, batch_size=25, queue_lookup="queue/perf",
        )
        listener, results = self.run_both(params)
        self.assertIn("rate", results)
        # ceil(20/25) + ceil(200/25)
        self.assertEqual(listener.listener.commits, 1 + 8)


if __name__ == '__main__':
    unittest.main()
