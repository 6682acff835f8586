"""Tests for the time-boxed runner, the scheduler bridge and leases."""

from datetime import timedelta

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from ess_app.errors import ErrorKind, JobBusy
from ess_app.locks import acquire_lease, release_lease
from ess_app.models import JobKey
from ess_app.runner import ResumableJobRunner, RunStatus
from ess_app.triggers import ApsScheduler, SchedulerBridge, register_continuation

KEY = JobKey("doc1", "letters", "Jun")
seen = []


@register_continuation("letters")
def _letters(**kwargs):
    seen.append(("continuation", kwargs))


@pytest.fixture
def bridge(store, scheduler, clock):
    return SchedulerBridge(store, scheduler, clock=clock)


@pytest.fixture
def runner(store, bridge, clock):
    return ResumableJobRunner(store, bridge, clock=clock, budget_ms=1000, continuation_delay_ms=500)


class TestResumableJobRunner:
    def test_suspends_before_the_item_that_would_overrun(self, runner, clock, store, scheduler):
        processed = []
        start = clock()

        def per_item(item):
            processed.append(item)
            if item == "b":
                clock.advance(1000)

        result = runner.run(KEY, ["a", "b", "c", "d", "e"], start, per_item, "letters", {"sheet": "Jun"})

        assert result.status is RunStatus.SUSPENDED
        assert processed == ["a", "b"]
        assert store.get(str(KEY)) == ["c", "d", "e"]
        [(name, delay, kwargs)] = scheduler.jobs.values()
        assert (name, delay, kwargs) == ("letters", 500, {"sheet": "Jun"})

    def test_resume_finishes_without_gaps_or_duplicates(self, runner, clock, store, scheduler):
        processed = []

        def per_item(item):
            processed.append(item)
            if item == "b":
                clock.advance(1000)

        runner.run(KEY, ["a", "b", "c", "d", "e"], clock(), per_item, "letters")

        remaining = runner.resume(KEY)
        result = runner.run(KEY, remaining, clock(), per_item, "letters")

        assert result.completed
        assert processed == ["a", "b", "c", "d", "e"]
        assert scheduler.jobs == {}
        assert runner.resume(KEY) is None
        assert runner.status(KEY) == []

    def test_resume_after_completion_keeps_the_finished_marker(self, runner, clock, store):
        runner.run(KEY, ["a"], clock(), lambda i: None, "letters")

        assert runner.resume(KEY) is None
        assert runner.resume(KEY) is None
        assert runner.status(KEY) == []

    def test_budget_is_checked_before_the_first_item(self, runner, clock, store):
        start = clock()
        clock.advance(5000)

        result = runner.run(KEY, [1, 2], start, lambda i: None, "letters")

        assert result.status is RunStatus.SUSPENDED
        assert result.processed == 0
        assert store.get(str(KEY)) == [1, 2]

    def test_item_error_aborts_the_run(self, runner, clock, store):
        def per_item(item):
            if item == 2:
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            runner.run(KEY, [1, 2, 3], clock(), per_item, "letters")
        assert runner.status(KEY) is None

    def test_checkpoint_expires(self, runner, clock, store):
        def per_item(item):
            clock.advance(1000)

        runner.run(KEY, [1, 2, 3], clock(), per_item, "letters")
        clock.advance(3600 * 1000 + 1)

        assert runner.resume(KEY) is None

    def test_cancel_drops_checkpoint_continuation_and_blob(self, runner, clock, store, scheduler):
        runner.cache_blob(KEY, [{"id": "OTH#1", "crew": []}])
        clock.advance(2000)
        runner.run(KEY, [1], clock() - timedelta(seconds=2), lambda i: None, "letters")

        runner.cancel(KEY)

        assert runner.status(KEY) is None
        assert runner.load_blob(KEY) is None
        assert scheduler.jobs == {}


class TestSchedulerBridge:
    def test_arming_twice_leaves_one_live_continuation(self, bridge, scheduler):
        first = bridge.arm(KEY, "letters", 500)
        second = bridge.arm(KEY, "letters", 500)

        assert scheduler.list_scheduled() == [second]
        assert first in scheduler.cancelled
        assert bridge.handle_for(KEY) == second

    def test_handle_slot_does_not_collide_with_checkpoint(self, bridge, store):
        store.put(str(KEY), ["x"])
        bridge.arm(KEY, "letters", 500)

        assert store.get(str(KEY)) == ["x"]
        assert bridge.disarm(KEY) is True
        assert bridge.disarm(KEY) is False

    def test_fired_continuation_receives_kwargs(self, bridge, scheduler):
        seen.clear()
        handle = bridge.arm(KEY, "letters", 500, {"sheet": "Jun"})

        scheduler.fire(handle)

        assert seen == [("continuation", {"sheet": "Jun"})]

    def test_unknown_callback_is_rejected(self, bridge):
        with pytest.raises(ValueError):
            bridge.arm(KEY, "no-such-job", 500)

    def test_orphaned_continuation_is_rearmed_with_its_kwargs(self, bridge, store, scheduler, clock):
        store.put(str(KEY), ["c"])
        old = bridge.arm(KEY, "letters", 500, {"sheet": "Jun"})
        scheduler.jobs.clear()   # a restarted process has an empty scheduler
        clock.advance(200)

        assert bridge.rearm_orphans() == [str(KEY)]

        [(handle, job)] = scheduler.jobs.items()
        assert handle != old
        assert job == ("letters", 300, {"sheet": "Jun"})
        assert bridge.handle_for(KEY) == handle

    def test_overdue_continuation_fires_right_away(self, bridge, store, scheduler, clock):
        store.put(str(KEY), ["c"])
        bridge.arm(KEY, "letters", 500)
        scheduler.jobs.clear()
        clock.advance(60_000)

        bridge.rearm_orphans()

        [(_, delay, _)] = scheduler.jobs.values()
        assert delay == 0

    def test_live_and_finished_continuations_are_left_alone(self, bridge, store, scheduler):
        handle = bridge.arm(KEY, "letters", 500)

        assert bridge.rearm_orphans() == []
        assert scheduler.list_scheduled() == [handle]

        scheduler.jobs.clear()
        store.put(str(KEY), [])

        assert bridge.rearm_orphans() == []
        assert scheduler.jobs == {}
        assert bridge.handle_for(KEY) is None


class TestApsScheduler:
    @pytest.fixture
    def background(self):
        return BackgroundScheduler(timezone="UTC")

    @pytest.fixture
    def aps(self, background, clock):
        return ApsScheduler(clock=clock, scheduler=background)

    def test_schedule_once_adds_a_date_job(self, aps, background, clock):
        handle = aps.schedule_once("letters", 500, {"sheet": "Jun"})

        job = background.get_job(handle)
        assert job.name == "letters"
        assert job.kwargs == {"sheet": "Jun"}
        assert job.trigger.run_date == clock() + timedelta(milliseconds=500)
        assert aps.list_scheduled() == [handle]

    def test_cancel_removes_the_job_once(self, aps, background):
        handle = aps.schedule_once("letters", 500)

        assert aps.cancel(handle) is True
        assert background.get_job(handle) is None
        assert aps.cancel(handle) is False
        assert aps.list_scheduled() == []

    def test_unregistered_callback_is_not_scheduled(self, aps):
        with pytest.raises(ValueError):
            aps.schedule_once("no-such-job", 500)
        assert aps.list_scheduled() == []


class TestLeases:
    def test_second_owner_is_refused_while_lease_is_live(self, store, clock):
        acquire_lease(store, KEY, "one", 360, clock())

        with pytest.raises(JobBusy) as exc:
            acquire_lease(store, KEY, "two", 360, clock())
        assert exc.value.kind is ErrorKind.CONCURRENT

    def test_expired_lease_is_taken_over(self, store, clock):
        acquire_lease(store, KEY, "one", 360, clock())
        clock.advance(361 * 1000)

        acquire_lease(store, KEY, "two", 360, clock())

        assert store.get(KEY.lease_slot)["owner"] == "two"

    def test_only_the_owner_releases(self, store, clock):
        acquire_lease(store, KEY, "one", 360, clock())

        assert release_lease(store, KEY, "two") is False
        assert release_lease(store, KEY, "one") is True
        assert store.get(KEY.lease_slot) is None
