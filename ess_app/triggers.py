"""
One-shot continuations.

A suspended job re-arms itself through ``SchedulerBridge.arm``: any handle
already stored for the job key is cancelled first, so a key never has more
than one live continuation. Callbacks are addressed by name so a handle can be
persisted and looked up later.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from .checkpoints import CheckpointStore
from .dates import Clock, system_clock
from .models import TRIGGER_SUFFIX, JobKey

logger = logging.getLogger(__name__)

_CALLBACKS: Dict[str, Callable] = {}


def register_continuation(name: str):
    """Decorator: make ``fn`` schedulable under ``name``."""
    def deco(fn):
        _CALLBACKS[name] = fn
        return fn
    return deco


def resolve_callback(name: str) -> Callable:
    try:
        return _CALLBACKS[name]
    except KeyError:
        raise ValueError(f"No continuation registered as '{name}'") from None


class Scheduler(ABC):
    @abstractmethod
    def schedule_once(self, callback_name: str, delay_ms: int, kwargs: Optional[dict] = None) -> str: ...

    @abstractmethod
    def cancel(self, handle: str) -> bool: ...

    @abstractmethod
    def list_scheduled(self) -> List[str]: ...


class ApsScheduler(Scheduler):
    """APScheduler ``BackgroundScheduler`` with one ``date`` job per continuation."""

    def __init__(self, clock: Clock = system_clock, scheduler: Optional[BackgroundScheduler] = None):
        self.clock = clock
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Continuation scheduler started")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def schedule_once(self, callback_name: str, delay_ms: int, kwargs: Optional[dict] = None) -> str:
        fn = resolve_callback(callback_name)
        handle = uuid.uuid4().hex
        self._scheduler.add_job(
            fn,
            "date",
            run_date=self.clock() + timedelta(milliseconds=delay_ms),
            kwargs=dict(kwargs or {}),
            id=handle,
            name=callback_name,
            misfire_grace_time=None,
        )
        logger.info("Scheduled %s in %d ms (%s)", callback_name, delay_ms, handle)
        return handle

    def cancel(self, handle: str) -> bool:
        try:
            self._scheduler.remove_job(handle)
        except JobLookupError:
            return False
        return True

    def list_scheduled(self) -> List[str]:
        return [job.id for job in self._scheduler.get_jobs()]


class SchedulerBridge:
    def __init__(self, store: CheckpointStore, scheduler: Scheduler, clock: Clock = system_clock):
        self.store = store
        self.scheduler = scheduler
        self.clock = clock

    def arm(self, key: JobKey, callback_name: str, delay_ms: int, kwargs: Optional[dict] = None) -> str:
        self.disarm(key)
        handle = self.scheduler.schedule_once(callback_name, delay_ms, kwargs)
        due = self.clock() + timedelta(milliseconds=delay_ms)
        self.store.put(key.trigger_slot, {
            "handle": handle, "callback": callback_name, "kwargs": dict(kwargs or {}), "due": due.isoformat(),
        })
        return handle

    def disarm(self, key: JobKey) -> bool:
        held = self.store.get(key.trigger_slot)
        if not held:
            return False
        self.scheduler.cancel(held["handle"])
        self.store.delete(key.trigger_slot)
        return True

    def handle_for(self, key: JobKey) -> Optional[str]:
        held = self.store.get(key.trigger_slot)
        return held["handle"] if held else None

    def rearm_orphans(self) -> List[str]:
        """
        Re-schedule stored continuations whose handle the scheduler no longer
        knows, e.g. after a process restart. A job whose checkpoint is the
        empty completion marker only loses its stale handle. Returns the job
        keys re-armed.
        """
        live = set(self.scheduler.list_scheduled())
        rearmed = []
        for slot in self.store.keys():
            if not slot.endswith(TRIGGER_SUFFIX):
                continue
            held = self.store.get(slot)
            if not held or held["handle"] in live:
                continue
            job = slot[:-len(TRIGGER_SUFFIX)]
            if self.store.get(job) == []:
                self.store.delete(slot)
                continue
            now = self.clock()
            due = datetime.fromisoformat(held["due"]) if held.get("due") else now
            delay_ms = max(0, int((due - now) / timedelta(milliseconds=1)))
            handle = self.scheduler.schedule_once(held["callback"], delay_ms, held.get("kwargs"))
            self.store.put(slot, {**held, "handle": handle})
            logger.info("Re-armed %s as %s (%d ms)", job, handle, delay_ms)
            rearmed.append(job)
        return rearmed
