import random

import pytest
from fastapi.testclient import TestClient

from drawing.engine import DrawingEngine
from drawing.scheduler import ManualScheduler
from web_server import DrawingWebServer

from conftest import FakeDrawingBackend


@pytest.fixture
def env():
    backend = FakeDrawingBackend(status="Drawing")
    scheduler = ManualScheduler()
    engine = DrawingEngine({"drawing": {"raffle_id": 7}}, client=backend, scheduler=scheduler, rng=random.Random(3))
    engine.apply_snapshot(backend.snapshot())
    server = DrawingWebServer({}, engine, backend)
    return TestClient(server.app), engine, backend, scheduler


def test_health_and_view(env):
    client, engine, _, _ = env
    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert health["components"]["backend"]["status"] == "ok"
    assert health["components"]["engine"]["raffle_id"] == 7

    view = client.get("/api/drawing").json()
    assert view["session"]["pattern"] == "????"
    assert len(view["possibleWinners"]) == 10
    assert view["grandPrize"]["name"] == "Weekend Trip"
    assert view["canReveal"] is True


def test_reveal_then_locked_then_unlocked(env):
    client, engine, backend, scheduler = env

    response = client.post("/api/drawing/reveal-next")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["view"]["pipelineActive"] is True

    assert client.post("/api/drawing/reveal-next").status_code == 409

    scheduler.run_until_idle()
    log = client.get("/api/drawing/log").json()
    assert log["returned"] == 1
    assert log["entries"][0]["pattern"] == "3___"

    timeline = client.get("/api/drawing/timeline", params={"kind": "stage_shake"}).json()
    assert timeline["returned"] == 1
    assert client.post("/api/drawing/reveal-next").status_code == 200


def test_reveal_digit_validation_and_backend_failure(env):
    client, _, backend, _ = env
    assert client.post("/api/drawing/reveal-digit", json={"digit": 11}).status_code == 422

    backend.fail_next = "Invalid digit"
    response = client.post("/api/drawing/reveal-digit", json={"digit": 3})
    assert response.status_code == 502
    assert "Invalid digit" in response.json()["detail"]

    assert client.get("/api/drawing").json()["errors"]
    client.post("/api/drawing/errors/dismiss")
    assert client.get("/api/drawing").json()["errors"] == []


def test_reset_and_winner_controls(env):
    client, engine, backend, scheduler = env
    assert client.post("/api/drawing/winner/replay").status_code == 404

    for _ in range(4):
        assert client.post("/api/drawing/reveal-next").status_code == 200
        scheduler.run_until_idle()
    assert client.get("/api/drawing").json()["winner"]["stage"] == "visible"

    replay = client.post("/api/drawing/winner/replay")
    assert replay.status_code == 200
    assert replay.json()["stage"] == "dark"
    client.post("/api/drawing/winner/dismiss")
    assert client.get("/api/drawing").json()["winner"]["stage"] == "hidden"

    reset = client.post("/api/drawing/reset")
    assert reset.status_code == 200
    assert reset.json()["view"]["session"]["status"] == "Active"
    assert client.post("/api/drawing/start").status_code == 200


def test_websocket_sends_initial_snapshot(env):
    client, _, _, _ = env
    with client.websocket_connect("/ws/drawing") as websocket:
        message = websocket.receive_json()
    assert message["type"] == "snapshot"
    assert message["payload"]["session"]["raffleId"] == 7
