"""
Get Gig Handler.
GET /gigs/{gigId}
Returns the gig with the derived net payout and signed attachment links.
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.gigs import get_gig_view
from gigcore.logging import logger, log_event
from gigcore.utils import format_response, error_response, get_path_param


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        return format_response(200, {'gig': get_gig_view(actor, get_path_param(event, 'gigId'))})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error fetching gig: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
