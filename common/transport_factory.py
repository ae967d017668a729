"""
Factory module for creating transport naming contexts.
"""

import logging

# Quiet pika's connection chatter before any pika-based module is imported
logging.getLogger('pika').setLevel(logging.WARNING)

from configuration import AMQP_URL

logger = logging.getLogger(__name__)

PROVIDERS = ("rabbitmq", "memory")


def create_naming_context(provider: str, amqp_url: str = AMQP_URL):
    """Create and return the naming context of a transport provider.

    Args:
        provider: Provider name ('rabbitmq' or 'memory')
        amqp_url: Broker URL bound to the default connection factory (rabbitmq only)

    Returns:
        NamingContext instance (RabbitMQContext or InMemoryContext)

    Raises:
        ValueError: If provider is not supported
    """
    provider = provider.lower()

    if provider == "rabbitmq":
        from systems.rabbitmq import RabbitMQContext
        return RabbitMQContext(amqp_url)

    elif provider == "memory":
        from systems.memory import InMemoryContext
        return InMemoryContext()

    else:
        raise ValueError(f"Unsupported transport provider: {provider}. Must be one of {PROVIDERS}.")
