import sys
import logging
import argparse

from configuration import (
    DEFAULT_CONNECTION_FACTORY, DEFAULT_QUEUE, LOG_FORMAT, LOG_LEVEL,
    PROMETHEUS_PORT, TRANSPORT_PROVIDER,
)
from common.params import BenchmarkParameters
from common.transport_factory import PROVIDERS, create_naming_context

logger = logging.getLogger(__name__)


def parse_bool(value: str) -> bool:
    """Anything other than 'true' (any case) is false."""
    return value.strip().lower() == "true"


def params_from_args(args) -> BenchmarkParameters:
    """Build validated BenchmarkParameters from parsed arguments."""
    return BenchmarkParameters(
        messages_to_send=args.messages,
        warmup_messages=args.warmup,
        message_size=args.size,
        durable=args.delivery_mode == "persistent",
        transacted=args.transacted,
        batch_size=args.batch_size,
        dups_ok=args.ack_mode.upper() == "DUPS_OK",
        drain_queue=args.drain,
        queue_lookup=args.queue,
        connection_factory_lookup=args.connection_factory,
    ).validate()


class QueueBenchmarkCLI:
    """CLI interface for the queue throughput benchmark."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description='Point-to-point queue throughput benchmark',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Start the listener first and wait for READY!!!
  python -m cli listener 100000 1000 1024 non_persistent false 1 AUTO true queue/testPerfQueue ConnectionFactory

  # Then send 100000 measured messages after 1000 warm-up messages
  python -m cli sender 100000 1000 1024 non_persistent false 1 AUTO false queue/testPerfQueue ConnectionFactory

  # Transacted run committing every 50 messages
  python -m cli sender 100000 1000 1024 persistent true 50 AUTO false queue/testPerfQueue ConnectionFactory
            """
        )
        parser.add_argument('--provider', choices=PROVIDERS, default=TRANSPORT_PROVIDER,
                            help=f'Transport provider (default: {TRANSPORT_PROVIDER})')
        parser.add_argument('--prometheus-port', type=int, default=PROMETHEUS_PORT,
                            help=f'Expose Prometheus metrics on this port (0 = disabled, default: {PROMETHEUS_PORT})')
        parser.add_argument('--log-level', default=LOG_LEVEL,
                            help=f'Logging level (default: {LOG_LEVEL})')

        # Positional arguments shared by both roles
        run_args = argparse.ArgumentParser(add_help=False)
        run_args.add_argument('messages', type=int, help='Messages in the measured phase')
        run_args.add_argument('warmup', type=int, help='Messages in the warm-up phase')
        run_args.add_argument('size', type=int, help='Message size in bytes')
        run_args.add_argument('delivery_mode', type=str.lower, choices=['persistent', 'non_persistent'],
                              help='Delivery mode')
        run_args.add_argument('transacted', type=parse_bool, help='Use a transacted session (true/false)')
        run_args.add_argument('batch_size', type=int, help='Messages per commit in transacted mode')
        run_args.add_argument('ack_mode', help='DUPS_OK for lazy acknowledgement, anything else for auto')
        run_args.add_argument('drain', type=parse_bool, help='Drain the queue before listening (true/false)')
        run_args.add_argument('queue', nargs='?', default=DEFAULT_QUEUE,
                              help=f'Queue lookup name (default: {DEFAULT_QUEUE})')
        run_args.add_argument('connection_factory', nargs='?', default=DEFAULT_CONNECTION_FACTORY,
                              help=f'Connection factory lookup name (default: {DEFAULT_CONNECTION_FACTORY})')

        subparsers = parser.add_subparsers(dest='command', help='Benchmark role')
        subparsers.add_parser('sender', parents=[run_args], help='Send messages and report the send rate')
        listener_parser = subparsers.add_parser('listener', parents=[run_args],
                                                help='Receive messages and report the receive rate')
        listener_parser.add_argument('--timeout', type=float, default=None,
                                     help='Give up after this many seconds (default: wait forever)')

        return parser

    def _create_metrics(self, args):
        if not args.prometheus_port:
            return None
        from observability.prom import BenchmarkMetricsExporter

        metrics = BenchmarkMetricsExporter(args.prometheus_port)
        metrics.start_server()
        return metrics

    def run_sender(self, args):
        """Run the sender role."""
        try:
            from cli.sender import run_sender

            logger.info("=== Sender ===")

            params = params_from_args(args)
            context = create_naming_context(args.provider)
            run_sender(context, params, self._create_metrics(args))

            logger.info("Sender run completed successfully")
            return 0

        except Exception as e:
            logger.error(f"Error in sender run: {e}")
            return 1

    def run_listener(self, args):
        """Run the listener role."""
        try:
            from cli.listener import run_listener

            logger.info("=== Listener ===")

            params = params_from_args(args)
            context = create_naming_context(args.provider)
            run_listener(context, params, self._create_metrics(args), timeout=args.timeout)

            logger.info("Listener run completed successfully")
            return 0

        except Exception as e:
            logger.error(f"Error in listener run: {e}")
            return 1

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        # Set up logging (only if not already configured)
        if not logging.root.handlers:
            logging.basicConfig(level=parsed_args.log_level.upper(), format=LOG_FORMAT)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            if parsed_args.command == 'sender':
                return self.run_sender(parsed_args)
            elif parsed_args.command == 'listener':
                return self.run_listener(parsed_args)
            else:
                logger.error(f"Unknown command: {parsed_args.command}")
                return 1

        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1


def main():
    """Main entry point."""
    cli = QueueBenchmarkCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
