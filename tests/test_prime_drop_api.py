from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from minigames.prime_drop.registry import registry


def _create(client: TestClient, seed: int = 7) -> dict:
    resp = client.post("/prime-drop/sessions", json={"seed": seed})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_session_starts_at_home(client: TestClient) -> None:
    snap = _create(client)
    assert snap["phase"] == "home"
    assert snap["value"] == 1
    assert snap["target"] == 1000
    assert snap["seed"] == 7
    assert snap["player"]["y"] == 790

    again = client.get(f"/prime-drop/sessions/{snap['session_id']}")
    assert again.status_code == 200
    assert again.json()["session_id"] == snap["session_id"]


def test_start_and_tick(client: TestClient) -> None:
    sid = _create(client)["session_id"]

    snap = client.post(f"/prime-drop/sessions/{sid}/commands", json={"type": "start"}).json()
    assert snap["phase"] == "playing"
    assert [e["type"] for e in snap["events"]] == ["RUN_STARTED"]

    snap = client.post(f"/prime-drop/sessions/{sid}/tick", json={"delta_ms": 50, "steps": 40}).json()
    assert snap["elapsed_ms"] == 2000
    assert snap["elapsed_label"] == "00:02.0"
    assert "PRIME_SPAWNED" in [e["type"] for e in snap["events"]]


def test_disallowed_command_is_rejected(client: TestClient) -> None:
    sid = _create(client)["session_id"]

    resp = client.post(f"/prime-drop/sessions/{sid}/commands", json={"type": "pause"})
    assert resp.status_code == 422

    resp = client.post(f"/prime-drop/sessions/{sid}/commands", json={"type": "explode"})
    assert resp.status_code == 422


def test_unknown_and_discarded_sessions(client: TestClient) -> None:
    assert client.get("/prime-drop/sessions/nope").status_code == 404

    sid = _create(client)["session_id"]
    assert client.delete(f"/prime-drop/sessions/{sid}").status_code == 204
    assert client.get(f"/prime-drop/sessions/{sid}").status_code == 404


def test_ws_play_loop(client: TestClient) -> None:
    sid = _create(client)["session_id"]

    with client.websocket_connect(f"/ws/prime-drop/{sid}") as ws:
        first = ws.receive_json()
        assert first["type"] == "snapshot"
        assert first["snapshot"]["phase"] == "home"

        ws.send_json({"type": "start"})
        msg = ws.receive_json()
        assert msg["type"] == "snapshot"
        assert msg["snapshot"]["phase"] == "playing"

        ws.send_json({"type": "pause"})
        for _ in range(1_000):
            msg = ws.receive_json()
            if msg["snapshot"]["phase"] == "paused":
                break
        else:
            raise AssertionError("run never paused")

        ws.send_json({"type": "pause"})
        for _ in range(1_000):
            msg = ws.receive_json()
            if msg["type"] == "error":
                break
        else:
            raise AssertionError("second pause was not rejected")
        assert "pause run while paused" in msg["detail"]


def test_ws_unknown_session_is_closed(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/prime-drop/nope") as ws:
            ws.receive_json()


def test_new_runs_are_accepted_when_registry_is_full(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(registry, "max_sessions", 3)

    sids = [_create(client, seed=i)["session_id"] for i in range(5)]
    assert len(registry) == 3
    assert client.get(f"/prime-drop/sessions/{sids[0]}").status_code == 404
    assert client.get(f"/prime-drop/sessions/{sids[-1]}").status_code == 200


def test_ws_second_socket_on_a_run_is_refused(client: TestClient) -> None:
    sid = _create(client)["session_id"]

    with client.websocket_connect(f"/ws/prime-drop/{sid}") as ws:
        assert ws.receive_json()["type"] == "snapshot"
        assert registry.is_attached(sid)

        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws/prime-drop/{sid}") as other:
                other.receive_json()

        ws.send_json({"type": "start"})
        assert ws.receive_json()["snapshot"]["phase"] == "playing"

    # The run survives its socket and can be picked up again.
    assert client.get(f"/prime-drop/sessions/{sid}").status_code == 200
    with client.websocket_connect(f"/ws/prime-drop/{sid}") as ws:
        assert ws.receive_json()["snapshot"]["session_id"] == sid


def test_ws_non_json_frame_gets_error(client: TestClient) -> None:
    sid = _create(client)["session_id"]

    with client.websocket_connect(f"/ws/prime-drop/{sid}") as ws:
        ws.receive_json()
        ws.send_text("not json")
        msg = ws.receive_json()
        assert msg["type"] == "error"
        assert msg["detail"].startswith("Invalid message")

        # The socket keeps working afterwards.
        ws.send_json({"type": "start"})
        assert ws.receive_json()["snapshot"]["phase"] == "playing"
