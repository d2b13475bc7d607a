"""
Request Payment Handler.
POST /student/gigs/{gigId}/payment-requests
"""
from gigcore.auth import get_actor
from gigcore.config import config
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.payments import request_payment
from gigcore.utils import format_response, error_response, get_path_param


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        gig = request_payment(actor, get_path_param(event, 'gigId'))
        return format_response(200, {
            'message': 'The client has been asked to pay',
            'paymentRequestsCount': gig['paymentRequestsCount'],
            'remainingRequests': config.PAYMENT_REQUEST_LIMIT - gig['paymentRequestsCount']
        })

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error requesting payment: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
