"""HTTP handler: submit an image for AI enhancement."""

import json

from ..errors import ValidationError
from ..services.enhancement import EnhancementService
from .common import build_enhancement_service, error_response, parse_body, respond, session_from_event


def handler(event, context, service: EnhancementService | None = None):
    """
    Submit an enhancement job.

    Input payload:
    {
        "feature_key": "background_replace",
        "image_url": "https://.../temp-uploads/user/abc.jpg",
        "slot_id": "slot-after",
        "draft_id": "...",
        "solid_color": "#FFFFFF"
    }

    Output: {"success": true, "generationId": "..."}; poll it with the poll handler.
    """
    try:
        body = parse_body(event)
        if not body.get("feature_key") or not body.get("image_url"):
            raise ValidationError("Missing required fields: feature_key and image_url")

        session = session_from_event(event)
        service = service or build_enhancement_service()
        options = {
            "solid_color": body.get("solid_color"),
            "custom_prompt": body.get("custom_prompt"),
            "params": body.get("params"),
            "project_id": body.get("draft_id"),
        }
        job_id = service.submit_image(
            session,
            body["image_url"],
            body["feature_key"],
            options,
            slot_id=body.get("slot_id"),
        )
        return respond(200, {"success": True, "generationId": job_id})
    except json.JSONDecodeError:
        return respond(400, {"error": "Invalid JSON body"})
    except Exception as e:
        return error_response(e)


# Local testing
if __name__ == "__main__":
    import sys

    if len(sys.argv) < 4:
        print("Usage: python -m beforeafter.handlers.enhance <user_id> <feature_key> <image_url> [solid_color]")
        sys.exit(1)

    test_input = {"feature_key": sys.argv[2], "image_url": sys.argv[3]}
    if len(sys.argv) > 4:
        test_input["solid_color"] = sys.argv[4]

    print("Running with input:")
    print(json.dumps(test_input, indent=2))

    event = {
        "requestContext": {"authorizer": {"claims": {"sub": sys.argv[1]}}},
        "body": json.dumps(test_input),
    }
    result = handler(event, None)
    print("\nResult:")
    print(json.dumps(json.loads(result["body"]), indent=2))
