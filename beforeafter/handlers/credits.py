"""HTTP handler: read a user's AI credit balance."""

import json

from ..services.credits import CreditService
from .common import build_credit_service, error_response, parse_body, respond, session_from_event


def handler(event, context, service: CreditService | None = None):
    """
    Input payload: {"feature_key": "auto_quality"}  (optional; the user comes from the authorizer claims)

    Output: balance, plus an affordability check when feature_key is given.
    """
    try:
        body = parse_body(event)
        session = session_from_event(event)
        service = service or build_credit_service()

        if body.get("feature_key"):
            return respond(200, service.check(session.user_id, body["feature_key"]).to_wire())

        balance = service.get_balance(session.user_id)
        return respond(200, {
            "creditsRemaining": balance.credits_remaining,
            "creditsUsedThisPeriod": balance.credits_used_this_period,
            "monthlyAllocation": balance.monthly_allocation,
            "daysUntilReset": balance.days_until_reset(service.clock()),
        })
    except json.JSONDecodeError:
        return respond(400, {"error": "Invalid JSON body"})
    except Exception as e:
        return error_response(e)


# Local testing
if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python -m beforeafter.handlers.credits <user_id> [feature_key]")
        sys.exit(1)

    test_input = {}
    if len(sys.argv) > 2:
        test_input["feature_key"] = sys.argv[2]

    event = {
        "requestContext": {"authorizer": {"claims": {"sub": sys.argv[1]}}},
        "body": json.dumps(test_input),
    }
    result = handler(event, None)
    print(json.dumps(json.loads(result["body"]), indent=2))
