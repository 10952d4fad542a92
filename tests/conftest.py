"""Pytest fixtures: app with in-memory registries, temp upload dir, fake vision model."""
import json
import os
import time

import httpx
import pytest
from fastapi.testclient import TestClient
from openai import OpenAI

# Must be set before the app is imported
os.environ.setdefault("INFERENCE_API_KEY", "sk-test-dummy")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("PREPROCESS_DELAY_SECONDS", "0")
os.environ.setdefault("FINALIZE_DELAY_SECONDS", "0")
os.environ.setdefault("STORE_BACKEND", "memory")

from xray_report.api.deps import build_services
from xray_report.main import app
from xray_report.services.inference import VisionClient

# Smallest valid PNG header is enough; nothing decodes the image
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

VALID_REPLY = json.dumps(
    {
        "overview": "Normal chest radiograph without acute cardiopulmonary process.",
        "detailed": [
            "Lungs are clear bilaterally",
            "Cardiac silhouette within normal limits",
            "No pleural effusion or pneumothorax",
        ],
        "recommendations": ["No further imaging required", "Clinical follow-up as needed"],
        "confidence": 88,
    }
)


def completion_body(content) -> dict:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "test-model",
        "choices": [
            {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": content}}
        ],
    }


class FakeCollaborator:
    """Stands in for the chat-completions endpoint; tests change reply/status_code."""

    def __init__(self):
        self.reply = VALID_REPLY
        self.status_code = 200
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": {"message": "upstream failure"}})
        return httpx.Response(200, json=completion_body(self.reply))

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_vision(collaborator) -> VisionClient:
    client = OpenAI(
        api_key="sk-test-dummy",
        base_url="http://inference.test/v1",
        http_client=httpx.Client(transport=httpx.MockTransport(collaborator)),
        max_retries=0,
    )
    return VisionClient(client=client, model="test-model")


@pytest.fixture
def collaborator():
    return FakeCollaborator()


@pytest.fixture
def services(tmp_path, collaborator):
    return build_services(
        vision=make_vision(collaborator),
        upload_dir=str(tmp_path / "uploads"),
        store_backend="memory",
        preprocess_delay=0,
        finalize_delay=0,
    )


@pytest.fixture
def client(services):
    """TestClient; the lifespan picks up the fixture's services."""
    app.state.services = services
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.state.services = None


def upload_png(client: TestClient, name: str = "chest.png", data: bytes = PNG_BYTES, content_type: str = "image/png"):
    return client.post("/upload", files={"file": (name, data, content_type)})


def wait_for_terminal(client: TestClient, analysis_id: str, timeout: float = 5.0) -> list[dict]:
    """Polls GET /analyze until completed/error; returns every observed record."""
    seen = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        r = client.get("/analyze", params={"id": analysis_id})
        assert r.status_code == 200
        seen.append(r.json())
        if seen[-1]["status"] in ("completed", "error"):
            return seen
        time.sleep(0.01)
    raise AssertionError(f"analysis {analysis_id} did not finish: {seen[-1]}")
