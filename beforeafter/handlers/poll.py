"""HTTP handler: poll an enhancement job."""

import json

from ..errors import ValidationError
from ..services.enhancement import EnhancementService
from .common import build_enhancement_service, error_response, parse_body, respond, session_from_event


def handler(event, context, service: EnhancementService | None = None):
    """
    Input payload: {"generation_id": "..."}; only the job owner may poll it.

    Output: {status, outputUrl?, error?, processingTimeMs?}
    """
    try:
        body = parse_body(event)
        job_id = body.get("generation_id")
        if not job_id:
            raise ValidationError("Missing generation_id")

        session = session_from_event(event)
        service = service or build_enhancement_service()
        view = service.poll_enhancement(job_id, user_id=session.user_id)
        return respond(200, view.to_wire())
    except json.JSONDecodeError:
        return respond(400, {"error": "Invalid JSON body"})
    except Exception as e:
        return error_response(e)


# Local testing
if __name__ == "__main__":
    import sys
    import time

    if len(sys.argv) < 3:
        print("Usage: python -m beforeafter.handlers.poll <user_id> <generation_id>")
        sys.exit(1)

    event = {
        "requestContext": {"authorizer": {"claims": {"sub": sys.argv[1]}}},
        "body": json.dumps({"generation_id": sys.argv[2]}),
    }
    while True:
        result = handler(event, None)
        body = json.loads(result["body"])
        print(json.dumps(body, indent=2), flush=True)
        if result["statusCode"] != 200 or body.get("status") in ("completed", "failed"):
            break
        time.sleep(2)
