"""
Release Payment Handler (admin).
POST /admin/gigs/{gigId}/release
Completes the gig and marks the held transaction as paid out.
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.payments import finalize_release
from gigcore.utils import format_response, error_response, get_path_param


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        transaction = finalize_release(actor, get_path_param(event, 'gigId'))
        return format_response(200, {'message': 'Payment released', 'transaction': transaction})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error releasing payment: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
