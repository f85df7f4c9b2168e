from unittest.mock import patch

import pytest
import requests

from conftest import FakeResponse
from beforeafter.clients.fal import FalClient
from beforeafter.clients.supabase import SupabaseClient, SupabaseError
from beforeafter.errors import PermanentRemoteError, TransientRemoteError


@pytest.fixture
def fal_client():
    return FalClient(api_key="fal-key")


@pytest.fixture
def supabase():
    return SupabaseClient("https://db.test/", "service-key")


# ===== fal.ai =====

def test_submit_posts_to_model_queue(fal_client):
    with patch("beforeafter.clients.fal.requests.post", return_value=FakeResponse(200, {"request_id": "req-9"})) as post:
        assert fal_client.submit("fal-ai/birefnet/v2", {"image_url": "https://x/a.jpg"}) == "req-9"

    args, kwargs = post.call_args
    assert args[0] == "https://queue.fal.run/fal-ai/birefnet/v2"
    assert kwargs["headers"]["Authorization"] == "Key fal-key"
    assert kwargs["json"] == {"image_url": "https://x/a.jpg"}
    assert kwargs["timeout"] == 30


def test_submit_retries_rate_limits(fal_client):
    responses = [FakeResponse(429, text="slow down"), FakeResponse(200, {"request_id": "req-1"})]
    with patch("beforeafter.clients.fal.requests.post", side_effect=responses) as post, \
            patch("beforeafter.clients.fal.time.sleep") as sleep:
        assert fal_client.submit("fal-ai/creative-upscaler", {}) == "req-1"

    assert post.call_count == 2
    sleep.assert_called_once_with(1)


def test_submit_error_status_is_permanent(fal_client):
    with patch("beforeafter.clients.fal.requests.post", return_value=FakeResponse(422, text="bad input")):
        with pytest.raises(PermanentRemoteError) as excinfo:
            fal_client.submit("fal-ai/creative-upscaler", {})
    assert excinfo.value.status_code == 422


def test_submit_without_request_id(fal_client):
    with patch("beforeafter.clients.fal.requests.post", return_value=FakeResponse(200, {})):
        with pytest.raises(PermanentRemoteError):
            fal_client.submit("fal-ai/creative-upscaler", {})


@pytest.mark.parametrize("response", [FakeResponse(200, None, text="<html>gateway</html>"), FakeResponse(200, ["req-1"])])
def test_submit_unreadable_body_is_permanent(fal_client, response):
    with patch("beforeafter.clients.fal.requests.post", return_value=response):
        with pytest.raises(PermanentRemoteError):
            fal_client.submit("fal-ai/creative-upscaler", {})


def test_submit_network_error(fal_client):
    with patch("beforeafter.clients.fal.requests.post", side_effect=requests.ConnectionError("down")):
        with pytest.raises(PermanentRemoteError):
            fal_client.submit("fal-ai/creative-upscaler", {})


def test_status_fetches_request_result(fal_client):
    response = FakeResponse(200, {"status": "IN_QUEUE"})
    with patch("beforeafter.clients.fal.requests.get", return_value=response) as get:
        assert fal_client.status("fal-ai/birefnet/v2", "req-1") is response
    assert get.call_args.args[0] == "https://queue.fal.run/fal-ai/birefnet/v2/requests/req-1"


def test_status_network_error_is_transient(fal_client):
    with patch("beforeafter.clients.fal.requests.get", side_effect=requests.Timeout("slow")):
        with pytest.raises(TransientRemoteError):
            fal_client.status("fal-ai/birefnet/v2", "req-1")


# ===== Supabase =====

def test_select_builds_postgrest_query(supabase):
    with patch("beforeafter.clients.supabase.requests.request", return_value=FakeResponse(200, [{"id": "1"}])) as request:
        rows = supabase.select("drafts", {"user_id": "eq.u1"}, order="updated_at.desc", limit=5)

    assert rows == [{"id": "1"}]
    args, kwargs = request.call_args
    assert args == ("GET", "https://db.test/rest/v1/drafts")
    assert kwargs["params"] == {"select": "*", "user_id": "eq.u1", "order": "updated_at.desc", "limit": "5"}
    assert kwargs["headers"]["apikey"] == "service-key"


def test_update_returns_matched_rows(supabase):
    with patch("beforeafter.clients.supabase.requests.request", return_value=FakeResponse(200, [])) as request:
        assert supabase.update("ai_generations", {"status": "failed"}, {"id": "eq.j1"}) == []
    assert request.call_args.kwargs["headers"]["Prefer"] == "return=representation"


def test_rpc_returns_json(supabase):
    with patch("beforeafter.clients.supabase.requests.request", return_value=FakeResponse(200, True)) as request:
        assert supabase.rpc("deduct_ai_credits", {"p_user_id": "u1", "p_amount": 1}) is True
    assert request.call_args.args[1] == "https://db.test/rest/v1/rpc/deduct_ai_credits"


def test_upload_returns_public_url(supabase):
    with patch("beforeafter.clients.supabase.requests.request", return_value=FakeResponse(200, {"Key": "k"})) as request:
        url = supabase.upload("draft-images", "p1/slot-before.jpg", b"img", "image/jpeg")

    assert url == "https://db.test/storage/v1/object/public/draft-images/p1/slot-before.jpg"
    headers = request.call_args.kwargs["headers"]
    assert headers["x-upsert"] == "true"
    assert headers["Content-Type"] == "image/jpeg"
    assert request.call_args.kwargs["data"] == b"img"


def test_error_status_raises_supabase_error(supabase):
    with patch("beforeafter.clients.supabase.requests.request", return_value=FakeResponse(403, text="denied")):
        with pytest.raises(SupabaseError) as excinfo:
            supabase.delete("drafts", {"id": "eq.p1"})
    assert excinfo.value.status_code == 403


def test_network_error_raises_supabase_error(supabase):
    with patch("beforeafter.clients.supabase.requests.request", side_effect=requests.ConnectionError("down")):
        with pytest.raises(SupabaseError):
            supabase.select("drafts")
