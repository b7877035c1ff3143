"""Tests for the JSON web driver.

The web driver exposes a ``SimulationContext`` over HTTP.  Tests use
``pytest.importorskip`` so they are skipped gracefully when Flask is
not installed.
"""

from __future__ import annotations

from typing import Any

import pytest

flask = pytest.importorskip("flask")

from py_memsim.simulator import SimulationContext  # noqa: E402
from py_memsim.web.app import create_app  # noqa: E402

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
CLASSIC = [0, 1, 2, 3, 0, 1, 4, 0, 1, 2, 3, 4]


def _create_client(context: SimulationContext | None = None) -> Any:
    """Create a test client from a fresh app."""
    app = create_app(context if context is not None else SimulationContext(frame_count=3, seed=1))
    app.config["TESTING"] = True
    return app.test_client()


class TestAppCreation:
    """Verify the app factory."""

    def test_create_app_returns_flask(self) -> None:
        """create_app should return a Flask application."""
        assert isinstance(create_app(), flask.Flask)

    def test_state(self) -> None:
        """GET /api/state should describe frames and processes."""
        response = _create_client().get("/api/state")
        assert response.status_code == HTTP_OK
        data = response.get_json()
        assert data["frames"] == 3
        assert [p["name"] for p in data["processes"]] == ["Process A", "Process B"]


class TestMemoryEndpoint:
    """Verify POST /api/memory."""

    def test_configure_clamps(self) -> None:
        """Frame counts should be clamped and reported back."""
        response = _create_client().post("/api/memory", json={"frames": 50})
        assert response.get_json() == {"frames": 20}

    def test_missing_field(self) -> None:
        """A body without frames should be rejected."""
        response = _create_client().post("/api/memory", json={})
        assert response.status_code == HTTP_BAD_REQUEST

    def test_non_json_body(self) -> None:
        """A body that is not a JSON object should be rejected."""
        response = _create_client().post("/api/memory", data="frames=3")
        assert response.status_code == HTTP_BAD_REQUEST


class TestProcessEndpoint:
    """Verify POST /api/processes."""

    def test_create(self) -> None:
        """A new process should be created with contiguous segments."""
        response = _create_client().post("/api/processes", json={"name": "ed", "pages": 4, "segments": [2, 3]})
        assert response.status_code == HTTP_CREATED
        data = response.get_json()
        expected_pid = 3
        assert data["pid"] == expected_pid
        assert [s["base"] for s in data["segments"]] == [0, 2]

    def test_limit(self) -> None:
        """Past the process limit the endpoint should answer 409."""
        client = _create_client()
        for _ in range(3):
            client.post("/api/processes", json={"name": "p", "pages": 1})
        response = client.post("/api/processes", json={"name": "p", "pages": 1})
        assert response.status_code == HTTP_CONFLICT


class TestSimulateEndpoint:
    """Verify POST /api/simulate."""

    def test_explicit_references(self) -> None:
        """A FIFO run of the classic string should fault nine times."""
        response = _create_client().post("/api/simulate", json={"policy": "fifo", "references": CLASSIC})
        assert response.status_code == HTTP_OK
        data = response.get_json()
        expected_faults = 9
        assert data["stats"]["faults"] == expected_faults
        assert len(data["steps"]) == len(CLASSIC)

    def test_steps_carry_their_events(self) -> None:
        """Each step should list the log entries recorded during it."""
        client = _create_client()
        client.post("/api/simulate", json={"policy": "fifo", "references": [0, 1, 2, 3]})
        response = client.post("/api/simulate", json={"policy": "fifo", "references": [0, 1, 2, 3]})
        steps = response.get_json()["steps"]
        assert all(len(s["events"]) >= 1 for s in steps)
        assert any("replaced page 0" in e for e in steps[-1]["events"])
        assert not any("replaced" in e for e in steps[0]["events"])

    def test_seeded_context_repeats_runs(self) -> None:
        """With a seeded context two identical requests give identical steps."""
        client = _create_client(SimulationContext(frame_count=3, seed=7))
        body = {"policy": "clock", "references": CLASSIC}
        first = client.post("/api/simulate", json=body).get_json()["steps"]
        second = client.post("/api/simulate", json=body).get_json()["steps"]
        assert [s["snapshot"] for s in first] == [s["snapshot"] for s in second]

    def test_generated_references(self) -> None:
        """Without references a string of the requested length is generated."""
        response = _create_client().post("/api/simulate", json={"policy": "lru", "length": 12, "seed": 3})
        data = response.get_json()
        expected_length = 12
        assert len(data["references"]) == expected_length

    def test_unknown_policy(self) -> None:
        """An unknown policy should be a bad request."""
        response = _create_client().post("/api/simulate", json={"policy": "mru", "references": [0]})
        assert response.status_code == HTTP_BAD_REQUEST

    def test_without_memory(self) -> None:
        """Simulating before memory exists should answer 409."""
        client = _create_client(SimulationContext())
        response = client.post("/api/simulate", json={"policy": "fifo", "references": [0]})
        assert response.status_code == HTTP_CONFLICT


class TestTranslateEndpoint:
    """Verify POST /api/translate."""

    def test_page_fault(self) -> None:
        """An unloaded page should report a page fault."""
        response = _create_client().post("/api/translate", json={"pid": 1, "address": 0})
        assert response.get_json()["status"] == "page_fault"

    def test_segment(self) -> None:
        """A legal segment offset should translate to base + offset."""
        response = _create_client().post("/api/translate", json={"pid": 1, "segment": 1, "offset": 10})
        data = response.get_json()
        assert data["status"] == "ok"
        assert data["physical_address"] == 8 * 1024 + 10

    def test_unknown_pid(self) -> None:
        """An unknown process should answer 404."""
        response = _create_client().post("/api/translate", json={"pid": 9, "address": 0})
        assert response.status_code == HTTP_NOT_FOUND

    def test_pid_zero_is_not_pid_one(self) -> None:
        """PID 0 does not exist and should answer 404."""
        response = _create_client().post("/api/translate", json={"pid": 0, "address": 0})
        assert response.status_code == HTTP_NOT_FOUND

    def test_random_paging(self) -> None:
        """A random request should return the requested number of translations."""
        response = _create_client().post("/api/translate", json={"random": True, "count": 4, "seed": 2})
        data = response.get_json()
        expected_count = 4
        assert len(data["translations"]) == expected_count
        assert all(t["status"] == "page_fault" for t in data["translations"])

    def test_random_segmentation(self) -> None:
        """Random segment accesses either translate or fault."""
        response = _create_client().post(
            "/api/translate", json={"random": True, "mode": "segmentation", "count": 10, "seed": 2}
        )
        statuses = {t["status"] for t in response.get_json()["translations"]}
        assert statuses <= {"ok", "segment_fault"}

    def test_random_unknown_mode(self) -> None:
        """An unknown sampling mode should be a bad request."""
        response = _create_client().post("/api/translate", json={"random": True, "mode": "tlb"})
        assert response.status_code == HTTP_BAD_REQUEST


class TestTlbAndLogEndpoints:
    """Verify POST /api/tlb and GET /api/log."""

    def test_tlb_run(self) -> None:
        """The TLB report should price every access."""
        response = _create_client().post("/api/tlb", json={"size": 2, "references": [1, 2, 1]})
        data = response.get_json()
        expected_total = 230
        assert data["total_time"] == expected_total
        assert data["hits"] == 1

    def test_log_filter(self) -> None:
        """The log should be filterable by source."""
        client = _create_client()
        response = client.get("/api/log?source=memory")
        entries = response.get_json()
        assert entries
        assert all(e["source"] == "memory" for e in entries)

    def test_bad_log_level(self) -> None:
        """An unknown level name should be a bad request."""
        response = _create_client().get("/api/log?min_level=loud")
        assert response.status_code == HTTP_BAD_REQUEST
