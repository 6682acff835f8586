"""
Time-boxed, resumable iteration over a work list.

``run`` checks the elapsed time before every item. Once the budget is spent
it stops *before* the current item, stores ``items[i:]`` under the job key
and arms a continuation; the continuation calls ``resume`` to take the
remainder back. A run that gets through its list leaves an empty list behind
so "finished" can be told apart from "never ran".

Item errors are not caught here: the first failing item aborts the run and the
entry point decides what to log. Items already processed stay processed.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from .checkpoints import CheckpointStore
from .config import CHECKPOINT_TTL_SEC, CONTINUATION_DELAY_MS, JOB_BUDGET_MS
from .dates import Clock, elapsed_ms, system_clock
from .models import JobKey
from .triggers import SchedulerBridge

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    COMPLETED = "completed"
    SUSPENDED = "suspended"


@dataclass
class RunResult:
    status: RunStatus
    processed: int = 0
    remaining: List[Any] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status is RunStatus.COMPLETED


class ResumableJobRunner:
    def __init__(
        self,
        store: CheckpointStore,
        bridge: SchedulerBridge,
        clock: Clock = system_clock,
        budget_ms: int = JOB_BUDGET_MS,
        continuation_delay_ms: int = CONTINUATION_DELAY_MS,
        checkpoint_ttl_sec: int = CHECKPOINT_TTL_SEC,
    ):
        self.store = store
        self.bridge = bridge
        self.clock = clock
        self.budget_ms = budget_ms
        self.continuation_delay_ms = continuation_delay_ms
        self.checkpoint_ttl_sec = checkpoint_ttl_sec

    def over_budget(self, start_time: datetime) -> bool:
        return elapsed_ms(start_time, self.clock()) >= self.budget_ms

    def run(
        self,
        key: JobKey,
        items: Sequence[Any],
        start_time: datetime,
        per_item: Callable[[Any], None],
        callback: str,
        callback_kwargs: Optional[dict] = None,
    ) -> RunResult:
        items = list(items)
        for i, item in enumerate(items):
            if self.over_budget(start_time):
                remaining = items[i:]
                self.store.put(str(key), remaining, ttl_seconds=self.checkpoint_ttl_sec)
                self.bridge.arm(key, callback, self.continuation_delay_ms, callback_kwargs)
                logger.info("%s suspended after %d items, %d left", key, i, len(remaining))
                return RunResult(RunStatus.SUSPENDED, processed=i, remaining=remaining)
            per_item(item)
        self.store.put(str(key), [], ttl_seconds=self.checkpoint_ttl_sec)
        logger.info("%s completed (%d items)", key, len(items))
        return RunResult(RunStatus.COMPLETED, processed=len(items))

    def resume(self, key: JobKey) -> Optional[List[Any]]:
        """Take the stored remainder (None if nothing is left) and drop the pending continuation."""
        remaining = self.store.get(str(key))
        if remaining:
            # an empty list is the completion marker and stays put
            self.store.delete(str(key))
        self.bridge.disarm(key)
        return remaining or None

    def status(self, key: JobKey) -> Optional[List[Any]]:
        """None: never ran (or expired); []: finished; otherwise the pending items."""
        return self.store.get(str(key))

    def cancel(self, key: JobKey) -> None:
        self.store.delete(str(key))
        self.bridge.disarm(key)
        self.drop_blob(key)

    # ---- cached intermediate results ----
    def cache_blob(self, key: JobKey, blob: Any) -> None:
        self.store.put(key.events_slot, blob, ttl_seconds=self.checkpoint_ttl_sec)

    def load_blob(self, key: JobKey) -> Any:
        return self.store.get(key.events_slot)

    def drop_blob(self, key: JobKey) -> None:
        self.store.delete(key.events_slot)
