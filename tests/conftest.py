import json
from datetime import datetime, timedelta, timezone

import pytest
import requests

from beforeafter.clients.supabase import SupabaseError
from beforeafter.models.session import UploadSession
from beforeafter.models.template import Template
from beforeafter.services.credits import CreditService
from beforeafter.services.enhancement import EnhancementService
from beforeafter.services.slots import SlotStore
from beforeafter.stores.credits import InMemoryCreditStore
from beforeafter.stores.jobs import InMemoryJobStore

TEMPLATE_ROW = {
    "id": "tpl-1",
    "name": "Side by side",
    "canvas_width": 1080,
    "canvas_height": 1080,
    "layers_json": [
        {"layer": "slot-before", "x": 0, "y": 0, "width": 540, "height": 1080},
        {"layer": "slot-after", "x": 540, "y": 0, "width": 540, "height": 1080},
        {"layer": "logo", "x": 0, "y": 0, "width": 100, "height": 100},
    ],
    "theme_layers": [
        {"id": "band", "type": "shape", "x": 0, "y": 980, "width": 1080, "height": 100},
        {"id": "title", "type": "text", "text": "BEFORE", "x": 40, "y": 40, "width": 200, "height": 60, "fontSize": 40},
    ],
    "frame_overlay_url": None,
    "default_background_color": "#FFFFFF",
}


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int = 0, **kwargs) -> None:
        self.now += timedelta(milliseconds=ms, **kwargs)


class FakeResponse:
    def __init__(self, status_code: int = 200, data=None, text: str | None = None):
        self.status_code = status_code
        self._data = data
        self.text = text if text is not None else (json.dumps(data) if data is not None else "")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def content(self) -> bytes:
        return self.text.encode()

    def json(self):
        if self._data is None:
            raise requests.JSONDecodeError("Expecting value", self.text, 0)
        return self._data


class FakeFal:
    """Queue stand-in: submit returns sequential ids, status replays queued responses."""

    def __init__(self):
        self.submitted: list[tuple[str, dict]] = []
        self.responses: list = []
        self.status_calls = 0
        self.submit_error: Exception | None = None

    def submit(self, model_id: str, payload: dict) -> str:
        if self.submit_error:
            raise self.submit_error
        self.submitted.append((model_id, payload))
        return f"req-{len(self.submitted)}"

    def status(self, model_id: str, request_id: str):
        self.status_calls += 1
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FakeUploader:
    def __init__(self, fail_on: set[str] | None = None):
        self.uploads: list[tuple[str, str, bytes, str]] = []
        self.fail_on = fail_on or set()

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        if any(marker in path for marker in self.fail_on):
            raise SupabaseError(f"Supabase upload {bucket}/{path} failed: 500", status_code=500)
        self.uploads.append((bucket, path, data, content_type))
        return f"https://storage.test/{bucket}/{path}"


@pytest.fixture
def template():
    return Template.from_dict(TEMPLATE_ROW)


@pytest.fixture
def slot_store(template):
    return SlotStore(template)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def session():
    return UploadSession(user_id="user-1")


@pytest.fixture
def fal():
    return FakeFal()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def credit_store():
    return InMemoryCreditStore(monthly_allocation=10)


@pytest.fixture
def credits(credit_store, clock):
    return CreditService(credit_store, clock=clock)


@pytest.fixture
def jobs():
    return InMemoryJobStore()


@pytest.fixture
def service(fal, jobs, credits, uploader, clock):
    return EnhancementService(fal, jobs, credits, uploader, clock=clock)


@pytest.fixture
def local_image(tmp_path):
    path = tmp_path / "capture.jpg"
    path.write_bytes(b"\xff\xd8fake-jpeg")
    return f"file://{path}"
