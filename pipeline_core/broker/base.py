"""
Message broker interface.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict


class BrokerError(Exception):
    """Raised when a broker cannot accept a subscription or a publish."""


@dataclass
class Envelope:
    """A message as delivered to a processor inbox."""
    topic: str
    payload: Any
    headers: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe; pass it back to unsubscribe."""
    address: str
    topic: str
    inbox: asyncio.Queue = field(compare=False, hash=False)
    subscription_id: int = 0


class MessageBroker(ABC):
    """Topic pub/sub used to wire processors together."""

    @abstractmethod
    async def subscribe(self, address: str, topic: str, inbox: asyncio.Queue) -> Subscription:
        """Deliver every message published to (address, topic) into ``inbox``."""
        pass

    @abstractmethod
    async def unsubscribe(self, subscription: Subscription) -> None:
        """Stop delivering to the subscription's inbox."""
        pass

    @abstractmethod
    async def publish(self, address: str, topic: str, message: Any,
                      headers: Dict[str, Any] = None) -> int:
        """
        Publish a message to (address, topic).

        Blocks while any subscribed inbox is full. Returns the number of
        inboxes the message was delivered to.
        """
        pass

    async def close(self) -> None:
        """Release broker resources."""
        return None
