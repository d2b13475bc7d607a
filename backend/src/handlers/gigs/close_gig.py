"""
Close Gig Handler.
POST /gigs/{gigId}/close  (owning client or admin)
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.gigs import close_gig
from gigcore.logging import logger, log_event
from gigcore.utils import format_response, error_response, get_path_param


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        gig = close_gig(actor, get_path_param(event, 'gigId'))
        return format_response(200, {'message': 'Gig closed', 'gigId': gig['gigId'], 'status': gig['status']})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error closing gig: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
