"""
Update Gig Handler.
PUT /client/gigs/{gigId}
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.gigs import update_gig
from gigcore.logging import logger, log_event
from gigcore.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    """
    Body: any of the listing fields, and/or { "sharedResourceLink": "https://..." }
    """
    log_event(event)

    try:
        actor = get_actor(event)
        gig = update_gig(actor, get_path_param(event, 'gigId'), parse_body(event))
        return format_response(200, {'message': 'Gig updated', 'gig': gig})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating gig: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
