"""
Apply To Gig Handler.
POST /student/gigs/{gigId}/applications
Body: { "message": "..." }
"""
from gigcore.applications import apply
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        body = parse_body(event)
        applicant = apply(actor, get_path_param(event, 'gigId'), body.get('message', ''))
        return format_response(201, {'message': 'Application submitted', 'applicant': applicant})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error applying to gig: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
