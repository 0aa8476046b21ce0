"""
Message brokers connecting pipeline processors.
"""

from .base import BrokerError, Envelope, MessageBroker, Subscription
from .memory import InMemoryBroker

__all__ = [
    "BrokerError",
    "Envelope",
    "MessageBroker",
    "Subscription",
    "InMemoryBroker",
]
