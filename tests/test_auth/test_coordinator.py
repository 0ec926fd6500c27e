"""Tests for the single-flight authentication coordinator."""

from __future__ import annotations

import asyncio
import threading
import time

import pytest

from senserest.auth.coordinator import AuthenticationCoordinator, AuthState
from senserest.exceptions import AuthenticationFailedError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _unused() -> None:
    raise AssertionError("sync procedure must not run")


async def _unused_async() -> None:
    raise AssertionError("async procedure must not run")


async def _noop_async() -> None:
    return None


def _run_threads(count: int, target) -> list[BaseException]:
    """Start *count* threads released together by a barrier; return their errors."""
    barrier = threading.Barrier(count)
    errors: list[BaseException] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            target()
        except BaseException as exc:  # collected for assertions
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return errors


# ---------------------------------------------------------------------------
# Single flight
# ---------------------------------------------------------------------------


class TestSingleFlight:
    def test_fifty_threads_run_procedure_once(self) -> None:
        calls: list[int] = []

        def procedure() -> None:
            calls.append(1)
            time.sleep(0.05)

        coordinator = AuthenticationCoordinator(procedure, _unused_async)
        errors = _run_threads(50, coordinator.ensure_authenticated)

        assert errors == []
        assert len(calls) == 1
        assert coordinator.state is AuthState.AUTHENTICATED

    def test_fifty_tasks_run_procedure_once(self) -> None:
        calls: list[int] = []

        async def procedure() -> None:
            calls.append(1)
            await asyncio.sleep(0.05)

        coordinator = AuthenticationCoordinator(_unused, procedure)

        async def main() -> None:
            await asyncio.gather(*(coordinator.ensure_authenticated_async() for _ in range(50)))

        asyncio.run(main())

        assert len(calls) == 1
        assert coordinator.is_authenticated

    def test_threads_and_tasks_share_the_gate(self) -> None:
        calls: list[str] = []

        def procedure() -> None:
            calls.append("sync")
            time.sleep(0.05)

        async def async_procedure() -> None:
            calls.append("async")
            await asyncio.sleep(0.05)

        coordinator = AuthenticationCoordinator(procedure, async_procedure)

        def run_tasks() -> None:
            async def main() -> None:
                await asyncio.gather(
                    *(coordinator.ensure_authenticated_async() for _ in range(10))
                )

            asyncio.run(main())

        threads = [threading.Thread(target=coordinator.ensure_authenticated) for _ in range(10)]
        threads.append(threading.Thread(target=run_tasks))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert len(calls) == 1
        assert coordinator.is_authenticated


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------


class TestStickyFailure:
    def test_failure_is_wrapped_with_cause(self) -> None:
        def procedure() -> None:
            raise RuntimeError("login refused")

        coordinator = AuthenticationCoordinator(procedure, _unused_async)

        with pytest.raises(AuthenticationFailedError) as exc_info:
            coordinator.ensure_authenticated()

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "login refused" in str(exc_info.value)
        assert coordinator.state is AuthState.FAILED

    def test_same_instance_reraised_without_rerunning(self) -> None:
        calls: list[int] = []

        def procedure() -> None:
            calls.append(1)
            raise RuntimeError("boom")

        coordinator = AuthenticationCoordinator(procedure, _unused_async)

        with pytest.raises(AuthenticationFailedError) as first:
            coordinator.ensure_authenticated()
        with pytest.raises(AuthenticationFailedError) as second:
            coordinator.ensure_authenticated()

        assert first.value is second.value
        assert coordinator.failure is first.value
        assert len(calls) == 1

    def test_authentication_failed_error_is_not_rewrapped(self) -> None:
        original = AuthenticationFailedError("no csrf cookie")

        def procedure() -> None:
            raise original

        coordinator = AuthenticationCoordinator(procedure, _unused_async)

        with pytest.raises(AuthenticationFailedError) as exc_info:
            coordinator.ensure_authenticated()

        assert exc_info.value is original

    def test_concurrent_waiters_get_identical_failure(self) -> None:
        calls: list[int] = []

        def procedure() -> None:
            calls.append(1)
            time.sleep(0.05)
            raise RuntimeError("boom")

        coordinator = AuthenticationCoordinator(procedure, _unused_async)
        errors = _run_threads(50, coordinator.ensure_authenticated)

        assert len(calls) == 1
        assert len(errors) == 50
        assert all(err is errors[0] for err in errors)
        assert isinstance(errors[0], AuthenticationFailedError)

    def test_async_waiters_get_identical_failure(self) -> None:
        async def procedure() -> None:
            await asyncio.sleep(0.05)
            raise RuntimeError("boom")

        coordinator = AuthenticationCoordinator(_unused, procedure)

        async def main() -> list[object]:
            return await asyncio.gather(
                *(coordinator.ensure_authenticated_async() for _ in range(20)),
                return_exceptions=True,
            )

        results = asyncio.run(main())

        assert all(isinstance(r, AuthenticationFailedError) for r in results)
        assert all(r is results[0] for r in results)

    def test_failure_is_shared_between_sync_and_async(self) -> None:
        def procedure() -> None:
            raise RuntimeError("boom")

        coordinator = AuthenticationCoordinator(procedure, _unused_async)
        with pytest.raises(AuthenticationFailedError) as sync_failure:
            coordinator.ensure_authenticated()

        with pytest.raises(AuthenticationFailedError) as async_failure:
            asyncio.run(coordinator.ensure_authenticated_async())

        assert async_failure.value is sync_failure.value


# ---------------------------------------------------------------------------
# Fast path and gate behaviour
# ---------------------------------------------------------------------------


class TestFastPath:
    def test_authenticated_skips_gate(self) -> None:
        coordinator = AuthenticationCoordinator(_unused, _unused_async, authenticated=True)
        coordinator._gate.acquire()
        try:
            coordinator.ensure_authenticated()
            asyncio.run(coordinator.ensure_authenticated_async())
        finally:
            coordinator._gate.release()

    def test_second_call_after_success_skips_gate(self) -> None:
        calls: list[int] = []
        coordinator = AuthenticationCoordinator(lambda: calls.append(1), _unused_async)
        coordinator.ensure_authenticated()

        coordinator._gate.acquire()
        try:
            coordinator.ensure_authenticated()
        finally:
            coordinator._gate.release()
        assert calls == [1]

    def test_mark_authenticated(self) -> None:
        coordinator = AuthenticationCoordinator(_unused, _unused_async)
        assert coordinator.state is AuthState.UNAUTHENTICATED
        coordinator.mark_authenticated()
        coordinator.ensure_authenticated()
        assert coordinator.state is AuthState.AUTHENTICATED


class TestAsyncGate:
    def test_waiter_does_not_block_event_loop(self) -> None:
        coordinator = AuthenticationCoordinator(_unused, _noop_async)
        ticks: list[int] = []

        async def main() -> None:
            coordinator._gate.acquire()
            waiter = asyncio.create_task(coordinator.ensure_authenticated_async())
            for _ in range(5):
                ticks.append(1)
                await asyncio.sleep(0.01)
            assert not waiter.done()
            coordinator._gate.release()
            await asyncio.wait_for(waiter, timeout=1)

        asyncio.run(main())

        assert len(ticks) == 5
        assert coordinator.is_authenticated

    def test_cancelled_waiter_leaves_gate_free(self) -> None:
        coordinator = AuthenticationCoordinator(_unused, _noop_async)

        async def main() -> None:
            coordinator._gate.acquire()
            waiter = asyncio.create_task(coordinator.ensure_authenticated_async())
            await asyncio.sleep(0.03)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter
            coordinator._gate.release()

        asyncio.run(main())

        assert coordinator._gate.acquire(blocking=False)
        coordinator._gate.release()
        assert coordinator.state is AuthState.UNAUTHENTICATED

    def test_state_is_authenticating_while_procedure_runs(self) -> None:
        seen: list[AuthState] = []
        coordinator: AuthenticationCoordinator

        def procedure() -> None:
            seen.append(coordinator.state)

        coordinator = AuthenticationCoordinator(procedure, _unused_async)
        coordinator.ensure_authenticated()

        assert seen == [AuthState.AUTHENTICATING]


# ---------------------------------------------------------------------------
# Derived coordinators
# ---------------------------------------------------------------------------


class TestSeededFrom:
    def test_seeded_from_authenticated_parent(self) -> None:
        parent = AuthenticationCoordinator(_unused, _unused_async, authenticated=True)
        child = AuthenticationCoordinator.seeded_from(parent, _unused, _unused_async)

        child.ensure_authenticated()
        assert child.is_authenticated
        assert child._gate is not parent._gate

    def test_seeded_from_unauthenticated_parent_runs_own_procedure(self) -> None:
        calls: list[str] = []
        parent = AuthenticationCoordinator(lambda: calls.append("parent"), _unused_async)
        child = AuthenticationCoordinator.seeded_from(
            parent, lambda: calls.append("child"), _unused_async
        )

        child.ensure_authenticated()

        assert calls == ["child"]
        assert not parent.is_authenticated

    def test_child_does_not_inherit_parent_failure(self) -> None:
        def failing() -> None:
            raise RuntimeError("boom")

        parent = AuthenticationCoordinator(failing, _unused_async)
        with pytest.raises(AuthenticationFailedError):
            parent.ensure_authenticated()

        child = AuthenticationCoordinator.seeded_from(parent, lambda: None, _unused_async)
        child.ensure_authenticated()

        assert child.is_authenticated
        assert child.failure is None
