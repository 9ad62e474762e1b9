"""Short-lived store for proposed actions awaiting user confirmation."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from maintenance_orchestrator.actions.models import ActionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingAction:
    token: str
    action: ActionResult
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class PendingActionStore(Protocol):
    def put(self, action: ActionResult) -> PendingAction: ...

    def take(self, token: str) -> PendingAction | None: ...


class InMemoryPendingActionStore:
    """Bounded, insertion-ordered map of single-use confirmation tokens.

    ``take`` removes the entry whether or not it has expired, so a token can
    be redeemed at most once. Expiry is judged by the caller against the
    returned ``expires_at``.
    """

    def __init__(
        self,
        *,
        ttl_s: float = 600.0,
        max_entries: int = 100,
        evict_to: int = 50,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if evict_to > max_entries:
            raise ValueError("evict_to must not exceed max_entries")
        self.ttl = timedelta(seconds=ttl_s)
        self.max_entries = max_entries
        self.evict_to = evict_to
        self.clock = clock or (lambda: datetime.now(UTC))
        self._entries: OrderedDict[str, PendingAction] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, action: ActionResult) -> PendingAction:
        now = self.clock()
        pending = PendingAction(
            token=uuid.uuid4().hex,
            action=action,
            created_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            self._entries[pending.token] = pending
            if len(self._entries) > self.max_entries:
                evicted = 0
                while len(self._entries) > self.evict_to:
                    self._entries.popitem(last=False)
                    evicted += 1
                logger.info(
                    "pending_actions event=evicted count=%s remaining=%s",
                    evicted,
                    len(self._entries),
                )
        return pending

    def take(self, token: str) -> PendingAction | None:
        with self._lock:
            return self._entries.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._entries
