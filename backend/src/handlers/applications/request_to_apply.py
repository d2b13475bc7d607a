"""
Request To Apply Handler.
POST /student/gigs/{gigId}/requests
"""
from gigcore.applications import request_to_apply
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.utils import format_response, error_response, get_path_param


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        request = request_to_apply(actor, get_path_param(event, 'gigId'))
        return format_response(201, {'message': 'Request sent to the client', 'request': request})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error requesting to apply: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
