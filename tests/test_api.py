"""HTTP surface tests, driving a real loop with mock adapters."""

import asyncio
import time
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from pricescan.adapters.camera.mock_camera import MockCamera
from pricescan.adapters.classifier.mock_classifier import MockClassifier
from pricescan.services.api import create_app
from pricescan.services.catalog import DEFAULT_CATALOG
from pricescan.services.config import ScannerConfig
from pricescan.services.override_store import OverrideStore
from pricescan.services.status_store import StatusStore
from tests.helpers import preds

MILK_LABEL = "Hollandia Evap 120g"
MILK_PATH = f"/mapping/{quote(MILK_LABEL)}"


def _make_app(tmp_path, script=None, fail_load=False, labels=None):
    status = StatusStore()
    cfg = ScannerConfig(overrides_path=str(tmp_path / "overrides.json"), tick_interval=0.001)
    clf = MockClassifier(
        status,
        labels=labels or list(DEFAULT_CATALOG),
        script=script if script is not None else [preds((MILK_LABEL, 0.95), ("Hollandia 50g", 0.03))],
        fail_load=fail_load,
    )
    return create_app(cfg, classifier=clf, camera=MockCamera(status), status=status)


def _wait_for(client, predicate, path="/status", timeout=3.0):
    deadline = time.time() + timeout
    data = None
    while time.time() < deadline:
        data = client.get(path).json()
        if predicate(data):
            return data
        time.sleep(0.01)
    raise AssertionError(f"condition not met, last response: {data}")


@pytest.fixture
def client(tmp_path):
    with TestClient(_make_app(tmp_path)) as c:
        _wait_for(c, lambda d: d["state"] == "running")
        yield c


def test_status_reports_detection(client):
    data = _wait_for(client, lambda d: d["result"]["detected"])
    assert data["ready"] is True
    assert data["fatal_error"] is None
    assert data["error_code"] is None
    assert data["result"]["label"] == MILK_LABEL
    assert data["result"]["confidence"] == 0.95
    assert data["result"]["record"]["price"] == "₦500"
    assert data["result"]["mapped"] is True
    assert data["ticks"] > 0


def test_load_failure_is_full_surface_error(tmp_path):
    with TestClient(_make_app(tmp_path, fail_load=True)) as c:
        data = _wait_for(c, lambda d: d["state"] == "stopped")
        assert data["ready"] is False
        assert "model load error" in data["fatal_error"]
        assert data["error_code"] == "LOAD_FAILED"
        assert data["result"]["detected"] is False
        health = c.get("/health").json()
        assert health["all_ok"] is False
        assert health["error_code"] == "LOAD_FAILED"


def test_labels(client):
    data = client.get("/labels").json()
    assert data["ready"] is True
    assert data["labels"] == list(DEFAULT_CATALOG)


def test_mapping_lists_every_label(client):
    entries = {e["label"]: e for e in client.get("/mapping").json()}
    assert set(entries) == set(DEFAULT_CATALOG)
    assert entries[MILK_LABEL]["source"] == "default"
    assert entries[MILK_LABEL]["record"]["display_name"] == "Hollandia Evaporated Milk (120g)"


def test_get_effective_unmapped_label(client):
    data = client.get("/mapping/never-seen").json()
    assert data["source"] == "unmapped"
    assert data["record"] == {"display_name": "never-seen", "price": "Not mapped", "category": "Unknown ID"}


def test_set_override_changes_live_price(client, tmp_path):
    resp = client.put(MILK_PATH, json={"display_name": "Hollandia Evap", "price": "₦700", "category": "Dairy"})
    body = resp.json()
    assert body["ok"] is True
    assert body["persisted"] is True
    assert client.get(MILK_PATH).json()["source"] == "override"

    data = _wait_for(client, lambda d: d["detected"] and d["record"]["price"] == "₦700", path="/result")
    assert data["record"]["display_name"] == "Hollandia Evap"
    assert (tmp_path / "overrides.json").exists()


def test_overrides_survive_restart(tmp_path):
    with TestClient(_make_app(tmp_path)) as c:
        c.put(MILK_PATH, json={"display_name": "Milk", "price": "₦700"})
        c.put(f"/mapping/{quote('Hollandia 50g')}", json={"display_name": "Small Milk", "price": "₦300"})

    with TestClient(_make_app(tmp_path)) as c:
        assert c.get(MILK_PATH).json()["record"]["price"] == "₦700"
        assert c.get(f"/mapping/{quote('Hollandia 50g')}").json()["record"]["price"] == "₦300"


def test_corrupt_overrides_do_not_block_startup(tmp_path):
    (tmp_path / "overrides.json").write_text("{{{", encoding="utf-8")
    with TestClient(_make_app(tmp_path)) as c:
        data = _wait_for(c, lambda d: d["result"]["detected"])
        assert data["result"]["record"]["price"] == "₦500"
        assert any("ignoring persisted overrides" in line for line in data["logs"])


def test_set_override_unknown_label(client):
    body = client.put("/mapping/not-a-product", json={"display_name": "x", "price": "₦1"}).json()
    assert body["ok"] is False
    assert body["error_code"] == "UNKNOWN_LABEL"


def test_set_override_requires_full_record(client):
    assert client.put(MILK_PATH, json={"display_name": "Milk"}).status_code == 422
    assert client.put(MILK_PATH, json={"display_name": "Milk", "price": ""}).status_code == 422


def test_persist_failure_keeps_edit(client, monkeypatch):
    def boom(*args, **kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr("pricescan.services.override_store.tempfile.mkstemp", boom)
    body = client.put(MILK_PATH, json={"display_name": "Milk", "price": "₦650"}).json()
    assert body["ok"] is True
    assert body["persisted"] is False
    assert body["error_code"] == "PERSIST_FAILED"
    assert client.get(MILK_PATH).json()["record"]["price"] == "₦650"
    assert client.get("/status").json()["persist_error"] == "read-only file system"


def test_override_writes_run_off_the_event_loop(client, monkeypatch):
    seen = []
    real_persist = OverrideStore._persist

    def recording_persist(self, layer):
        try:
            asyncio.get_running_loop()
            seen.append("event loop")
        except RuntimeError:
            seen.append("worker thread")
        return real_persist(self, layer)

    monkeypatch.setattr(OverrideStore, "_persist", recording_persist)
    assert client.put(MILK_PATH, json={"display_name": "Milk", "price": "₦650"}).json()["persisted"] is True
    assert client.delete(MILK_PATH).json()["ok"] is True
    assert seen == ["worker thread", "worker thread"]


def test_clear_override(client):
    client.put(MILK_PATH, json={"display_name": "Milk", "price": "₦700"})
    body = client.delete(MILK_PATH).json()
    assert body["ok"] is True
    assert body["record"]["price"] == "₦500"
    assert client.get(MILK_PATH).json()["source"] == "default"
    assert client.delete(MILK_PATH).json()["ok"] is False


def test_pause_clears_result_and_resume_restores(client):
    _wait_for(client, lambda d: d["result"]["detected"])
    body = client.post("/pause").json()
    assert body == {"ok": True, "state": "suspended", "error_code": None}
    assert client.get("/result").json()["detected"] is False
    time.sleep(0.05)
    assert client.get("/result").json()["detected"] is False

    assert client.post("/resume").json()["state"] == "running"
    _wait_for(client, lambda d: d["detected"], path="/result")


def test_stop_is_terminal(client):
    assert client.post("/stop").json()["state"] == "stopped"
    body = client.post("/pause").json()
    assert body["ok"] is False
    assert body["error_code"] == "STOPPED"
    ticks = client.get("/status").json()["ticks"]
    time.sleep(0.05)
    assert client.get("/status").json()["ticks"] == ticks


def test_resume_without_pause(client):
    body = client.post("/resume").json()
    assert body["ok"] is False
    assert body["error_code"] == "NOT_RUNNING"


def test_websocket_pushes_results(client):
    with client.websocket_connect("/ws") as ws:
        first = ws.receive_json()
        assert "detected" in first
        for _ in range(200):
            msg = ws.receive_json()
            if msg["detected"]:
                break
        assert msg["label"] == MILK_LABEL
        assert msg["generation"] > 0


def test_health(client):
    data = client.get("/health").json()
    assert data["all_ok"] is True
    assert data["classifier_adapter"] == "MockClassifier"
    assert data["camera_adapter"] == "MockCamera"
