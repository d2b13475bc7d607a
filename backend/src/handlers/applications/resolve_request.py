"""
Resolve Application Request Handler.
POST /client/gigs/{gigId}/requests/{studentId}
Body: { "decision": "approve" | "deny" }
"""
from gigcore.applications import resolve_request
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        body = parse_body(event)
        request = resolve_request(
            actor,
            get_path_param(event, 'gigId'),
            get_path_param(event, 'studentId'),
            (body.get('decision') or '').lower()
        )
        return format_response(200, {'message': 'Request resolved', 'request': request})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error resolving application request: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
