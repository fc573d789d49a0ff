"""Tests for once-per-key execution."""

import asyncio
from datetime import datetime, timedelta

import pytest
from kungfu import Error, Ok

from storefront import idempotency as I
from storefront.idempotency import IdempotencyErrorKind, RecordState
from storefront.webhooks import event_store
from storefront.payments import ProcessorEvent

from .conftest import expect_error, expect_ok


class Counter:
    def __init__(self, result=None):
        self.calls = 0
        self.result = result

    async def __call__(self, value):
        self.calls += 1
        if self.result is not None:
            return self.result
        return Ok(f"done:{value}")


def executor(op, store, policy=None):
    return (
        I.idempotent(op)
        .key(lambda value: f"k:{value}")
        .store(store)
        .policy(policy or I.Policy().with_on_pending(I.FAIL))
        .build()
    )


class TestMemoryStore:
    async def test_runs_once(self):
        op = Counter()
        run = executor(op, I.MemoryStore())

        first = expect_ok(await run.run("a"))
        second = expect_ok(await run.run("a"))

        assert (first.value, first.from_cache) == ("done:a", False)
        assert (second.value, second.from_cache) == ("done:a", True)
        assert op.calls == 1

    async def test_different_keys_run_separately(self):
        op = Counter()
        run = executor(op, I.MemoryStore())

        await run.run("a")
        await run.run("b")
        assert op.calls == 2

    async def test_failure_releases_key(self):
        op = Counter(result=Error("boom"))
        store = I.MemoryStore()
        run = executor(op, store)

        error = expect_error(await run.run("a"))

        assert error.kind is IdempotencyErrorKind.EXECUTION
        assert error.original_error == "boom"
        assert expect_ok(await store.get("k:a")) is None

        await run.run("a")
        assert op.calls == 2

    async def test_persisted_failure_is_cached(self):
        op = Counter(result=Error("boom"))
        run = executor(op, I.MemoryStore(), I.Policy().with_persist_failed())

        await run.run("a")
        error = expect_error(await run.run("a"))

        assert error.message == "Cached failure"
        assert op.calls == 1

    async def test_exception_releases_key(self):
        async def explode(value):
            raise RuntimeError("kaput")

        store = I.MemoryStore()
        error = expect_error(await executor(explode, store).run("a"))

        assert error.kind is IdempotencyErrorKind.EXECUTION
        assert expect_ok(await store.get("k:a")) is None

    async def test_pending_with_fail_policy(self):
        store = I.MemoryStore()
        await store.set_pending("k:a", None)

        error = expect_error(await executor(Counter(), store).run("a"))
        assert error.kind is IdempotencyErrorKind.CONFLICT

    async def test_pending_with_wait_policy_times_out(self):
        store = I.MemoryStore()
        await store.set_pending("k:a", None)
        policy = I.Policy().with_on_pending(I.WAIT).with_wait_timeout(seconds=0.3)

        error = expect_error(await executor(Counter(), store, policy).run("a"))
        assert error.kind is IdempotencyErrorKind.TIMEOUT

    async def test_waiter_sees_completion(self):
        store = I.MemoryStore()
        await store.set_pending("k:a", None)
        policy = I.Policy().with_on_pending(I.WAIT).with_wait_timeout(seconds=2)

        async def finish_later():
            await asyncio.sleep(0.15)
            await store.set_completed("k:a", "late", None)

        result, _ = await asyncio.gather(executor(Counter(), store, policy).run("a"), finish_later())

        done = expect_ok(result)
        assert (done.value, done.from_cache) == ("late", True)

    async def test_expired_record_is_gone(self):
        store = I.MemoryStore()
        await store.set_pending("k:a", timedelta(seconds=0.05))
        await asyncio.sleep(0.1)

        assert expect_ok(await store.get("k:a")) is None

    async def test_key_is_required(self):
        with pytest.raises(ValueError):
            I.idempotent(Counter()).build()


class TestPolicy:
    def test_with_methods_return_copies(self):
        base = I.Policy()
        tuned = base.with_ttl(hours=72).with_on_pending(I.FAIL)

        assert base.result_ttl is None
        assert tuned.result_ttl == timedelta(hours=72)
        assert tuned.on_pending is I.FAIL

    def test_zero_ttl_means_forever(self):
        assert I.Policy().with_ttl(seconds=0).result_ttl is None


class TestSQLAlchemyStore:
    @pytest.fixture
    def store(self, shop):
        event = ProcessorEvent(id="evt_1", type="checkout.session.completed")
        return event_store(shop.session_factory)(event)

    async def test_cas_on_pending(self, store):
        assert expect_ok(await store.set_pending("event:1", None)) is True
        assert expect_ok(await store.set_pending("event:1", None)) is False

    async def test_lifecycle(self, store):
        await store.set_pending("event:1", timedelta(hours=1))
        await store.set_completed("event:1", "applied", timedelta(hours=1))

        record = expect_ok(await store.get("event:1"))
        assert record.state is RecordState.COMPLETED
        assert record.value == "applied"
        assert record.expires_at > datetime.now()

        assert expect_ok(await store.delete("event:1")) is True
        assert expect_ok(await store.get("event:1")) is None

    async def test_expired_key_can_be_taken_again(self, store):
        await store.set_pending("event:1", timedelta(seconds=0.05))
        await asyncio.sleep(0.1)

        assert expect_ok(await store.get("event:1")) is None
        assert expect_ok(await store.set_pending("event:1", None)) is True

    async def test_finish_without_pending(self, store):
        error = expect_error(await store.set_completed("event:missing", "x", None))
        assert "not found" in error.message

    async def test_executor_over_database(self, store):
        op = Counter()
        run = executor(op, store)

        await run.run("x")
        second = expect_ok(await run.run("x"))

        assert second.from_cache is True
        assert op.calls == 1

    async def test_pending_data_required(self, shop):
        from storefront.db import ProcessedEventRow

        bare = I.SQLAlchemyStore(shop.session_factory, ProcessedEventRow, lambda *a: None)
        error = expect_error(await bare.set_pending("event:1", None))
        assert "with_pending" in error.message
