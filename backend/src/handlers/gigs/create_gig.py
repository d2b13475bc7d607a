"""
Create Gig Handler.
POST /client/gigs
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.gigs import create_gig
from gigcore.logging import logger, log_event
from gigcore.utils import format_response, error_response, parse_body


def handler(event, context):
    """
    Body: {
        "title": "...", "description": "...", "requiredSkills": [...],
        "budget": 1000, "currency": "INR", "deadline": "2026-12-01T00:00:00+00:00",
        "numberOfReports": 2, "reportDeadlines": ["...", "..."]
    }
    """
    log_event(event)

    try:
        actor = get_actor(event)
        gig = create_gig(actor, parse_body(event))
        return format_response(201, {'message': 'Gig created', 'gig': gig})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating gig: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
