"""
NetShield - Datastore Interface
insert / query / update / subscribe over the three tables the core uses.

Backends implement the underscored coroutines; the public methods add id and
timestamp defaults, a timeout on every call, and in-process change
notification to subscribers after each successful write.
"""

import asyncio
import inspect
import logging
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set

from netshield.errors import StoreUnavailable

logger = logging.getLogger(__name__)

TABLE_ALERTS = "network_alerts"
TABLE_TRAFFIC = "traffic_stats"
TABLE_BLOCKS = "blocked_ips"
TABLES = (TABLE_ALERTS, TABLE_TRAFFIC, TABLE_BLOCKS)

# Column stamped with the creation time when the caller leaves it out
TIMESTAMP_COLUMNS = {
    TABLE_ALERTS: "timestamp",
    TABLE_TRAFFIC: "timestamp",
    TABLE_BLOCKS: "blocked_at",
}

DEFAULT_TIMEOUT_SECONDS = 5.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChangeEvent:
    """Push notification for a write: kind is "insert" or "update"."""
    table: str
    kind: str
    record: Dict[str, Any]


ChangeCallback = Callable[[ChangeEvent], Optional[Awaitable[None]]]


class Subscription:
    """Handle returned by DataStore.subscribe."""

    def __init__(self, store: "DataStore", table: str, callback: ChangeCallback):
        self.store = store
        self.table = table
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.store._remove_subscription(self)


class DataStore(ABC):
    """Abstract datastore with change notification."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout = timeout
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._pending: Set[asyncio.Future] = set()

    # -------------------------------------------------
    # Public API
    # -------------------------------------------------

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it with its id (and default timestamp) filled in."""
        self._check_table(table)
        prepared = dict(record)
        prepared.setdefault("id", str(uuid.uuid4()))
        ts_column = TIMESTAMP_COLUMNS[table]
        if prepared.get(ts_column) is None:
            prepared[ts_column] = utcnow()

        created = await self._guard(self._insert(table, prepared), "insert", table)
        self._notify(ChangeEvent(table=table, kind="insert", record=created))
        return created

    async def query(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Records matching all equality filters, optionally ordered and limited."""
        self._check_table(table)
        return await self._guard(
            self._query(table, filters or {}, order_by, descending, limit), "query", table
        )

    async def update(self, table: str, record_id: str, patch: Dict[str, Any]) -> bool:
        """Apply a partial update. Returns False when no record has that id."""
        self._check_table(table)
        updated = await self._guard(self._update(table, record_id, dict(patch)), "update", table)
        if updated is None:
            return False
        self._notify(ChangeEvent(table=table, kind="update", record=updated))
        return True

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        """Register a callback for writes to a table. Coroutine callbacks are scheduled as tasks."""
        self._check_table(table)
        subscription = Subscription(self, table, callback)
        self._subscriptions[table].append(subscription)
        return subscription

    async def close(self) -> None:
        """Release backend resources."""
        self._subscriptions.clear()

    # -------------------------------------------------
    # Backend hooks
    # -------------------------------------------------

    @abstractmethod
    async def _insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def _query(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def _update(self, table: str, record_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the updated record, or None when the id is unknown."""
        ...

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    def _check_table(self, table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")

    async def _guard(self, coro: Awaitable[Any], operation: str, table: str) -> Any:
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Store {operation} on {table} timed out after {self.timeout}s")
            raise StoreUnavailable(f"{operation} on {table} timed out") from None

    def _remove_subscription(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.table, [])
        if subscription in subs:
            subs.remove(subscription)

    def _notify(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions.get(event.table, [])):
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._pending.add(task)
                    task.add_done_callback(self._subscriber_done)
            except Exception as e:
                # A failing subscriber never fails the write that triggered it
                logger.error(f"Subscriber for {event.table} failed: {e}")

    def _subscriber_done(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Async subscriber failed: {error}")


class InMemoryStore(DataStore):
    """
    Process-local store backed by bounded deques, one per table.
    Oldest records are evicted once a table reaches max_records.
    """

    def __init__(self, max_records: int = 10_000, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(timeout=timeout)
        self.max_records = max_records
        self._tables: Dict[str, Deque[Dict[str, Any]]] = {
            table: deque(maxlen=max_records) for table in TABLES
        }

    async def _insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        self._tables[table].append(record)
        return dict(record)

    async def _query(self, table, filters, order_by, descending, limit):
        rows = [
            r for r in self._tables[table]
            if all(r.get(k) == v for k, v in filters.items())
        ]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [dict(r) for r in rows]

    async def _update(self, table, record_id, patch):
        for record in self._tables[table]:
            if record.get("id") == record_id:
                record.update(patch)
                return dict(record)
        return None

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._tables.values())
