"""
Record Client Payment Handler.
POST /client/gigs/{gigId}/payment
Simulated escrow capture: records the ledger entry and moves the gig to awaiting_payout.
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.payments import record_client_payment
from gigcore.utils import format_response, error_response, get_path_param


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        transaction = record_client_payment(actor, get_path_param(event, 'gigId'))
        return format_response(201, {
            'message': 'Payment recorded and held for release',
            'transaction': transaction
        })

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error recording payment: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
