import asyncio

import pytest

from drawing.gateway import CommandGateway

from conftest import FakeDrawingBackend


@pytest.fixture
def gateway_env(store):
    backend = FakeDrawingBackend(status="Drawing")
    adopted = []
    polls = []
    state = {"pipeline": False}
    gateway = CommandGateway(
        backend,
        7,
        store,
        on_snapshot=lambda command, snapshot: adopted.append((command, snapshot.session.revealed_digits)),
        is_pipeline_active=lambda: state["pipeline"],
        after_success=lambda: polls.append(True),
    )
    return gateway, backend, adopted, polls, state


def test_reveal_stays_locked_until_released(store, gateway_env):
    gateway, backend, adopted, polls, _ = gateway_env

    result = asyncio.run(gateway.reveal_next())
    assert result.success
    assert adopted == [("reveal_next", "3")]
    assert polls == [True]
    assert gateway.reveal_locked
    assert not gateway.busy

    rejected = asyncio.run(gateway.reveal_next())
    assert rejected.rejected
    assert backend.calls == [("reveal_next", None)]

    gateway.release_reveal_lock()
    assert asyncio.run(gateway.reveal_next()).success
    assert backend.revealed == "34"


def test_concurrent_reveals_issue_one_request(store, gateway_env):
    gateway, backend, adopted, _, _ = gateway_env

    async def scenario():
        backend.hold = asyncio.Event()
        first = asyncio.create_task(gateway.reveal_next())
        await asyncio.sleep(0)
        second = await gateway.reveal_next()
        backend.hold.set()
        return await first, second

    first, second = asyncio.run(scenario())
    assert first.success
    assert second.rejected
    assert [name for name, _ in backend.calls] == ["reveal_next"]


def test_failure_restores_issuability_and_surfaces_error(store, gateway_env):
    gateway, backend, adopted, polls, _ = gateway_env
    backend.fail_next = "Raffle is not in drawing state"

    result = asyncio.run(gateway.reveal_next())
    assert not result.success
    assert not result.rejected
    assert result.error == "Failed to reveal digit: Raffle is not in drawing state"
    assert store.get_errors() == [result.error]
    assert adopted == []
    assert polls == []
    assert gateway.can_issue("reveal_next")

    store.dismiss_errors()
    assert store.get_errors() == []


def test_pipeline_blocks_start_and_reveals_but_not_reset(store, gateway_env):
    gateway, backend, adopted, _, state = gateway_env
    state["pipeline"] = True

    assert asyncio.run(gateway.start()).rejected
    assert asyncio.run(gateway.reveal_digit(4)).rejected
    result = asyncio.run(gateway.reset())
    assert result.success
    assert adopted == [("reset", "")]


def test_reset_clears_reveal_lock(store, gateway_env):
    gateway, backend, _, _, _ = gateway_env
    asyncio.run(gateway.reveal_next())
    assert gateway.reveal_locked
    asyncio.run(gateway.reset())
    assert not gateway.reveal_locked


def test_reveal_digit_validates_range(store, gateway_env):
    gateway, backend, _, _, _ = gateway_env
    result = asyncio.run(gateway.reveal_digit(12))
    assert result.rejected
    assert backend.calls == []
    assert store.get_errors() == ["Digit must be between 0 and 9"]

    assert asyncio.run(gateway.reveal_digit(3)).success
    assert backend.calls == [("reveal_digit", 3)]


def test_gateway_state_is_published(store, gateway_env):
    gateway, _, _, _, _ = gateway_env
    asyncio.run(gateway.reveal_next())
    view = store.serialize_view()
    assert view["gateway"] == {"busy": False, "revealLocked": True, "lastCommand": "reveal_next"}


def test_disposed_gateway_rejects_everything(store, gateway_env):
    gateway, backend, _, _, _ = gateway_env
    gateway.dispose()
    assert asyncio.run(gateway.reset()).rejected
    assert backend.calls == []
