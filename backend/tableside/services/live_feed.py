"""Live table feed: subscribe to a stream of full table snapshots.

Writers publish after every successful write; each subscriber gets the
latest snapshots in per-table publish order. There is no incremental diff:
a slow subscriber only loses stale snapshots, never the newest one.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """Async iterator of snapshots for one tenant (optionally one table)."""

    def __init__(self, hub: "FeedHub", tenant_id: str, table_id: Optional[int], maxsize: int):
        self.hub = hub
        self.tenant_id = tenant_id
        self.table_id = table_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def matches(self, tenant_id: str, table_id: int) -> bool:
        return self.tenant_id == tenant_id and (self.table_id is None or self.table_id == table_id)

    def offer(self, snapshot: Any) -> None:
        if self.closed:
            return
        if self.queue.full():
            self.queue.get_nowait()  # drop the stalest snapshot
        self.queue.put_nowait(snapshot)

    async def get(self, timeout: Optional[float] = None) -> Any:
        item = await asyncio.wait_for(self.queue.get(), timeout)
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed and self.queue.empty():
            raise StopAsyncIteration
        return await self.get()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.hub._remove(self)
        if self.queue.full():
            self.queue.get_nowait()
        self.queue.put_nowait(_CLOSED)


class FeedHub:
    MAX_PENDING_SNAPSHOTS = 16

    def __init__(self):
        self._subscriptions: Dict[str, Set[Subscription]] = {}

    def subscribe(self, tenant_id: str, table_id: Optional[int] = None) -> Subscription:
        sub = Subscription(self, tenant_id, table_id, self.MAX_PENDING_SNAPSHOTS)
        self._subscriptions.setdefault(tenant_id, set()).add(sub)
        logger.debug(f"Feed subscription opened: tenant {tenant_id} table {table_id}")
        return sub

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscriptions.get(sub.tenant_id)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subscriptions[sub.tenant_id]
        logger.debug(f"Feed subscription closed: tenant {sub.tenant_id} table {sub.table_id}")

    def publish(self, tenant_id: str, table_id: int, snapshot: Any) -> int:
        """Deliver a snapshot to every matching subscriber. Returns how many got it."""
        delivered = 0
        for sub in list(self._subscriptions.get(tenant_id, ())):
            if sub.matches(tenant_id, table_id):
                sub.offer(snapshot)
                delivered += 1
        return delivered

    def subscriber_count(self, tenant_id: Optional[str] = None) -> int:
        if tenant_id is not None:
            return len(self._subscriptions.get(tenant_id, ()))
        return sum(len(s) for s in self._subscriptions.values())


feed_hub = FeedHub()
