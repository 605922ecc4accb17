"""Unit tests for deadline propagation."""
import asyncio

from notify_commons.resilience.deadline import DeadlineContext, bounded_timeout, deadline_exceeded
from notify_commons.resilience.timeouts.deadline import Deadline


class TestDeadline:
    def test_after_is_in_the_future(self):
        dl = Deadline.after(seconds=5)
        assert not dl.is_expired
        assert 4 < dl.remaining_seconds <= 5

    def test_negative_is_expired(self):
        dl = Deadline.after(seconds=-1)
        assert dl.is_expired
        assert dl.remaining_seconds == 0.0

    def test_bound_shrinks_timeout(self):
        dl = Deadline.after(seconds=0.5)
        assert dl.bound(10.0) <= 0.5
        assert dl.bound(0.1) == 0.1


class TestDeadlineContext:
    def test_set_and_get(self):
        dl = Deadline.after(seconds=5)
        token = DeadlineContext.set(dl)
        assert DeadlineContext.get() is dl
        DeadlineContext.reset(token)

    def test_scoped_set_and_clear(self):
        async def run():
            dl = Deadline.after(seconds=10)
            async with DeadlineContext.scoped(dl) as d:
                assert DeadlineContext.get() is dl
                assert d is dl
            assert DeadlineContext.get() is None
        asyncio.run(run())

    def test_scope_is_task_local(self):
        async def run():
            seen = []

            async def other_task():
                seen.append(DeadlineContext.get())

            task = asyncio.create_task(other_task())
            async with DeadlineContext.scoped(Deadline.after(seconds=10)):
                await task
            assert seen == [None]
        asyncio.run(run())

    def test_child_tasks_inherit_deadline(self):
        async def read():
            return DeadlineContext.get()

        async def run():
            dl = Deadline.after(seconds=10)
            async with DeadlineContext.scoped(dl):
                inherited = await asyncio.create_task(read())
            assert inherited is dl
        asyncio.run(run())


class TestHelpers:
    def test_no_deadline(self):
        assert deadline_exceeded() is False
        assert bounded_timeout(0.25) == 0.25

    def test_expired_deadline(self):
        async def run():
            async with DeadlineContext.scoped(Deadline.after(seconds=-1)):
                assert deadline_exceeded() is True
                assert bounded_timeout(0.25) == 0.0
        asyncio.run(run())

    def test_bounded_by_remaining_time(self):
        async def run():
            async with DeadlineContext.scoped(Deadline.after(seconds=0.05)):
                assert 0 < bounded_timeout(10.0) <= 0.05
                assert bounded_timeout(0.01) == 0.01
        asyncio.run(run())
