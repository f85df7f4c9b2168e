import base64
import json
from unittest.mock import MagicMock

from conftest import FakeResponse
from beforeafter.errors import InsufficientCreditsError, NotFoundError, PermanentRemoteError
from beforeafter.handlers import credits as credits_handler
from beforeafter.handlers import enhance, poll
from beforeafter.handlers.common import parse_body, session_from_event


def _event(body, sub=None):
    event = {"body": json.dumps(body)}
    if sub:
        event["requestContext"] = {"authorizer": {"claims": {"sub": sub}}}
    return event


def _body(result):
    return json.loads(result["body"])


def test_parse_body_variants():
    payload = {"generation_id": "g1"}
    assert parse_body({"body": json.dumps(payload)}) == payload
    assert parse_body({"body": payload}) == payload
    assert parse_body({"Records": [{"body": json.dumps(payload)}]}) == payload
    encoded = base64.b64encode(json.dumps(payload).encode()).decode()
    assert parse_body({"body": encoded, "isBase64Encoded": True}) == payload


def test_session_comes_from_authorizer_claims():
    session = session_from_event(_event({"user_id": "spoofed"}, sub="user-9"))
    assert session.user_id == "user-9"


def test_body_user_id_is_not_trusted(credits):
    result = credits_handler.handler(_event({"user_id": "user-1"}), None, service=credits)
    assert result["statusCode"] == 400
    assert _body(result)["error"] == "Missing user"


# ===== enhance =====

def test_enhance_submits_job(service, fal):
    result = enhance.handler(
        _event({"feature_key": "background_replace", "image_url": "https://x/a.jpg", "solid_color": "#000000"},
               sub="user-1"),
        None,
        service=service,
    )

    assert result["statusCode"] == 200
    body = _body(result)
    assert body["success"] is True
    assert service.jobs.get(body["generationId"]).user_id == "user-1"
    assert "pure black" in fal.submitted[0][1]["prompt"]


def test_enhance_missing_fields():
    result = enhance.handler(_event({"feature_key": "auto_quality"}, sub="user-1"), None, service=MagicMock())
    assert result["statusCode"] == 400


def test_enhance_invalid_json():
    result = enhance.handler({"body": "{not json"}, None, service=MagicMock())
    assert result["statusCode"] == 400


def test_enhance_without_credits_is_402():
    service = MagicMock()
    service.submit_image.side_effect = InsufficientCreditsError(0, 1)

    result = enhance.handler(_event({"feature_key": "auto_quality", "image_url": "https://x/a.jpg"}, sub="u"),
                             None, service=service)

    assert result["statusCode"] == 402
    assert _body(result)["creditsRequired"] == 1


def test_enhance_remote_failure_is_503():
    service = MagicMock()
    service.submit_image.side_effect = PermanentRemoteError("fal.ai error: 500")

    result = enhance.handler(_event({"feature_key": "auto_quality", "image_url": "https://x/a.jpg"}, sub="u"),
                             None, service=service)

    assert result["statusCode"] == 503
    assert _body(result)["error"] == "AI service temporarily unavailable"


def test_enhance_unexpected_error_is_500():
    service = MagicMock()
    service.submit_image.side_effect = RuntimeError("connection pool exhausted")

    result = enhance.handler(_event({"feature_key": "auto_quality", "image_url": "https://x/a.jpg"}, sub="u"),
                             None, service=service)

    assert result["statusCode"] == 500
    assert _body(result) == {"error": "Internal server error"}


# ===== poll =====

def test_poll_returns_job_view(service, session, fal):
    fal.responses = [FakeResponse(200, {"image": {"url": "https://fal.test/out.png"}})]
    job_id = service.submit_image(session, "https://x/a.jpg", "auto_quality")

    result = poll.handler(_event({"generation_id": job_id}, sub="user-1"), None, service=service)

    assert result["statusCode"] == 200
    assert _body(result) == {"status": "completed", "outputUrl": "https://fal.test/out.png", "processingTimeMs": 0}


def test_poll_requires_generation_id():
    assert poll.handler(_event({}), None, service=MagicMock())["statusCode"] == 400


def test_poll_unknown_job_is_404():
    service = MagicMock()
    service.poll_enhancement.side_effect = NotFoundError("Job x not found")
    assert poll.handler(_event({"generation_id": "x"}, sub="user-1"), None, service=service)["statusCode"] == 404


def test_poll_other_users_job_is_404(service, session, fal):
    fal.responses = [FakeResponse(200, {"image": {"url": "https://fal.test/out.png"}})]
    job_id = service.submit_image(session, "https://x/a.jpg", "auto_quality")

    result = poll.handler(_event({"generation_id": job_id}, sub="user-2"), None, service=service)

    assert result["statusCode"] == 404
    assert "outputUrl" not in _body(result)
    assert fal.status_calls == 0


def test_poll_without_user_is_400(service):
    assert poll.handler(_event({"generation_id": "x"}), None, service=service)["statusCode"] == 400


# ===== credits =====

def test_credits_balance(credits):
    credits.deduct("user-1", 2)

    result = credits_handler.handler(_event({}, sub="user-1"), None, service=credits)

    assert result["statusCode"] == 200
    assert _body(result) == {
        "creditsRemaining": 8,
        "creditsUsedThisPeriod": 2,
        "monthlyAllocation": 10,
        "daysUntilReset": 17,
    }


def test_credits_check_for_feature(credits):
    result = credits_handler.handler(_event({"feature_key": "auto_quality"}, sub="user-1"), None, service=credits)
    assert _body(result)["hasCredits"] is True


def test_credits_requires_user(credits):
    assert credits_handler.handler(_event({}), None, service=credits)["statusCode"] == 400
