"""
Tests for the PLT Nesting API and the background worker

Usage:
    pytest test_api.py
"""

import json

import pytest
from fastapi.testclient import TestClient

from backend.main import app
from backend.worker import NestingWorker
from test_nesting import rect_segment
from test_parser import shape

client = TestClient(app)

PATTERN = "IN;SP1;\n" + "\n".join([
    shape(0, 0, 100, 100),
    shape(2000, 0, 100, 100),
    shape(4000, 0, 60, 40),
]) + "\n"


@pytest.fixture(autouse=True)
def clean_pattern():
    client.delete("/api/pattern")
    yield
    client.delete("/api/pattern")


def read_stream(response):
    return [json.loads(line) for line in response.iter_lines() if line]


class TestHealth:

    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200
        assert "docs" in response.json()

    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["pattern_loaded"] is False


class TestPattern:

    def test_decode_stores_current_pattern(self):
        response = client.post("/api/decode", json={"filename": "camisa.plt", "content": PATTERN})
        assert response.status_code == 200
        body = response.json()
        assert body["result"]["method"] == "regex"
        assert len(body["result"]["segments"]) == 3
        assert body["logs"][0]["message"] == "Loading file camisa.plt"

        pattern = client.get("/api/pattern").json()
        assert len(pattern["points"]) == 18
        segments = client.get("/api/pattern/segments").json()
        assert len(segments) == 3
        assert client.get("/health").json()["segments_count"] == 3

    def test_decode_garbage_returns_example(self):
        response = client.post("/api/decode", json={"content": "not a plot file"})
        assert response.status_code == 200
        result = response.json()["result"]
        assert result["method"] == "example"
        assert result["segments"][0]["name"] == "EXEMPLO"

    def test_no_pattern_is_404(self):
        response = client.get("/api/pattern")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_logs_endpoint(self):
        client.post("/api/decode", json={"content": PATTERN})
        logs = client.get("/api/logs").json()
        assert logs
        assert {"time", "message", "type"} <= set(logs[0])


class TestNesting:

    def test_nest_without_pieces_is_rejected(self):
        response = client.post("/api/nest", json={"fabric_width_m": 1.58})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "No PLT data" in body["error"]

    def test_nest_current_pattern(self):
        client.post("/api/decode", json={"content": PATTERN})
        response = client.post("/api/nest", json={"fabric_width_m": 0.15})
        assert response.status_code == 200
        result = response.json()["result"]
        assert len(result["pieces"]) == 3
        assert 0 < result["efficiency"] <= 100
        assert result["bounds"]["width"] == pytest.approx(150)
        assert result["fabric_length_m"] == pytest.approx(result["fabric_length"] / 1000)

    def test_nest_explicit_segments(self):
        segments = [rect_segment("A", 100, 100).model_dump(mode="json"),
                    rect_segment("B", 100, 100).model_dump(mode="json")]
        response = client.post("/api/nest", json={"fabric_width_m": 0.15, "segments": segments})
        assert response.status_code == 200
        body = response.json()
        assert body["result"]["fabric_length"] == pytest.approx(200)
        assert body["result"]["efficiency"] == pytest.approx(66.67, abs=0.01)
        assert any(log["type"] == "success" for log in body["logs"])

    def test_width_defaults_to_config(self):
        segments = [rect_segment("A", 100, 100).model_dump(mode="json")]
        response = client.post("/api/nest", json={"segments": segments})
        assert response.status_code == 200
        assert response.json()["result"]["bounds"]["width"] == pytest.approx(1580)

        config = {"default_fabric_width_m": 0.5}
        response = client.post("/api/nest", json={"segments": segments, "config": config})
        assert response.json()["result"]["bounds"]["width"] == pytest.approx(500)

    def test_message_counts_enabled_pieces(self):
        segments = [rect_segment("A", 100, 100).model_dump(mode="json"),
                    rect_segment("B", 100, 100).model_dump(mode="json")]
        response = client.post("/api/nest", json={"fabric_width_m": 0.5, "segments": segments,
                                                  "enabled_names": ["A"]})
        assert response.status_code == 200
        body = response.json()
        assert len(body["result"]["pieces"]) == 1
        assert body["message"].startswith("Placed 1 of 1 pieces")

    def test_invalid_width_is_422(self):
        response = client.post("/api/nest", json={"fabric_width_m": 0})
        assert response.status_code == 422

    def test_stream(self):
        segments = [rect_segment("A", 100, 100).model_dump(mode="json")]
        with client.stream("POST", "/api/nest/stream",
                           json={"fabric_width_m": 0.5, "segments": segments}) as response:
            messages = read_stream(response)
        assert [m["type"] for m in messages[:-1]] == ["log"] * (len(messages) - 1)
        assert messages[-1]["type"] == "result"
        assert len(messages[-1]["data"]["pieces"]) == 1

    def test_stream_without_pieces_reports_error(self):
        with client.stream("POST", "/api/nest/stream", json={"fabric_width_m": 1.0}) as response:
            messages = read_stream(response)
        assert [m["type"] for m in messages] == ["error"]


class TestWorker:

    def test_logs_then_single_result(self):
        worker = NestingWorker(150, [rect_segment("A", 100, 100), rect_segment("B", 100, 100)])
        messages = list(worker.messages(timeout=30))
        worker.join(5)
        types = [m.type for m in messages]
        assert types[-1] == "result"
        assert set(types[:-1]) == {"log"}
        assert messages[-1].data["fabric_length"] == pytest.approx(200)

    def test_missing_input_is_error_message(self):
        worker = NestingWorker(150, [])
        messages = list(worker.messages(timeout=30))
        assert len(messages) == 1
        assert messages[0].type == "error"
        assert "No PLT data" in messages[0].data

    def test_cannot_start_twice(self):
        worker = NestingWorker(150, [rect_segment("A", 10, 10)]).start()
        with pytest.raises(RuntimeError):
            worker.start()
        list(worker.messages(timeout=30))
