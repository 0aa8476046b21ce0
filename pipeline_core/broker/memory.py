"""
In-process broker backed by bounded asyncio queues.
"""

import asyncio
import itertools
import logging
from collections import defaultdict
from typing import Any, Dict, List, Tuple

from .base import BrokerError, Envelope, MessageBroker, Subscription

logger = logging.getLogger(__name__)


class InMemoryBroker(MessageBroker):
    """
    Fan-out broker living inside the service process.

    Topics are keyed by (address, topic). Each subscriber owns its inbox; a
    full inbox makes the publisher wait, which is how back pressure reaches
    upstream processors.
    """

    def __init__(self):
        self._topics: Dict[Tuple[str, str], List[Subscription]] = defaultdict(list)
        self._ids = itertools.count(1)
        self._closed = False

    async def subscribe(self, address: str, topic: str, inbox: asyncio.Queue) -> Subscription:
        if self._closed:
            raise BrokerError("Broker is closed")
        subscription = Subscription(address=address, topic=topic, inbox=inbox,
                                    subscription_id=next(self._ids))
        self._topics[(address, topic)].append(subscription)
        logger.debug(f"Subscribed #{subscription.subscription_id} to {address}/{topic}")
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        key = (subscription.address, subscription.topic)
        subscribers = self._topics.get(key, [])
        self._topics[key] = [s for s in subscribers if s.subscription_id != subscription.subscription_id]
        if not self._topics[key]:
            del self._topics[key]

    async def publish(self, address: str, topic: str, message: Any,
                      headers: Dict[str, Any] = None) -> int:
        if self._closed:
            raise BrokerError("Broker is closed")
        subscribers = list(self._topics.get((address, topic), []))
        if not subscribers:
            logger.debug(f"No subscribers on {address}/{topic}, message dropped")
            return 0
        for subscription in subscribers:
            await subscription.inbox.put(Envelope(topic=topic, payload=message, headers=dict(headers or {})))
        return len(subscribers)

    def subscriber_count(self, address: str, topic: str) -> int:
        return len(self._topics.get((address, topic), []))

    async def close(self) -> None:
        self._closed = True
        self._topics.clear()
