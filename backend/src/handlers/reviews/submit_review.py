"""
Submit Review Handler.
POST /client/gigs/{gigId}/review
Body: { "rating": 1-5, "comment": "..." }
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.reviews import submit_review
from gigcore.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        body = parse_body(event)
        review = submit_review(actor, get_path_param(event, 'gigId'), body.get('rating'), body.get('comment', ''))
        return format_response(201, {'message': 'Review submitted', 'review': review})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error submitting review: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
