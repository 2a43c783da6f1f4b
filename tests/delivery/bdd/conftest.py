"""Shared BDD fixtures and step definitions for delivery tracking."""

import asyncio

import pytest
from delivery.backend.fake_adapter import FakeBackend
from pytest_bdd import given


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def run():
    """Run coroutines on one event loop that lives for the whole scenario."""
    loop = asyncio.new_event_loop()

    def _run(coro):
        return loop.run_until_complete(coro)

    yield _run
    loop.close()


@pytest.fixture()
def settle(run):
    """Give the loop a few turns so acknowledgements and scheduled callbacks land."""

    async def _turns():
        for _ in range(5):
            await asyncio.sleep(0)

    return lambda: run(_turns())


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def outcome():
    """Container for the result of the last write."""
    return {"result": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the backend rejects status writes")
def backend_rejects_status_writes(backend):
    backend.configure(failing={"write_order_status"}, failure_reason="status table locked")


@given("the backend rejects history appends")
def backend_rejects_history_appends(backend):
    backend.configure(failing={"append_order_history"}, failure_reason="history table locked")


@given("the backend rejects chat messages")
def backend_rejects_chat_messages(backend):
    backend.configure(failing={"insert_chat_message"}, failure_reason="chat offline")
