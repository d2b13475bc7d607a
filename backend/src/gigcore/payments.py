"""
Escrow / payment recorder.

Payment is simulated: the client's capture is recorded as a ledger entry
held for release, no gateway is called. The platform commission is taken
from the gross budget at release time; the net figure is never stored on
the gig.
"""
from decimal import Decimal
from typing import Any, Dict, Tuple

from . import dynamo, gigs, notifications, reports
from .config import config
from .errors import InvalidStateError, NotFoundError
from .logging import logger
from .models import Actor, GigStatus, Money, NotificationType, TransactionStatus
from .utils import new_id, utc_now


def calculate_payment_split(total_price: Decimal, rate: Decimal = None) -> Tuple[Decimal, Decimal]:
    """
    Calculate the split between student and platform.

    Args:
        total_price: The gross gig budget
        rate: Commission rate, defaults to config.COMMISSION_RATE

    Returns:
        tuple: (student_amount, platform_fee)
    """
    gross = Money(total_price, config.DEFAULT_CURRENCY)
    rate = config.COMMISSION_RATE if rate is None else rate
    platform_fee = gross.commission(rate).amount
    return gross.amount - platform_fee, platform_fee


def _ensure_payable(gig: Dict[str, Any]) -> None:
    if not reports.all_approved(gig):
        raise InvalidStateError('ReportsIncomplete', 'All progress reports must be approved first')


@dynamo.retry_on_conflict
def record_client_payment(actor: Actor, gig_id: str) -> Dict[str, Any]:
    """
    Record the client's (simulated) payment into escrow and move the gig to
    awaiting_payout. The ledger entry and the gig write commit together.
    """
    gig = gigs.load_gig(gig_id)
    gigs.require_owner(gig, actor)
    gigs.ensure_not_terminal(gig)
    _ensure_payable(gig)
    if gig['status'] != GigStatus.IN_PROGRESS:
        raise InvalidStateError('WrongStatus', 'Only an in-progress gig can be paid')

    now = utc_now()
    transaction = {
        'transactionId': new_id(),
        'clientId': gig['clientId'],
        'studentId': gig['selectedStudentId'],
        'gigId': gig_id,
        'gigTitle': gig['title'],
        'amount': Decimal(str(gig['budget'])),
        'currency': gig.get('currency') or config.DEFAULT_CURRENCY,
        'status': TransactionStatus.PENDING_RELEASE,
        'paymentId': f'sim_{new_id()}',
        'paidAt': now
    }

    gigs.transition(gig, GigStatus.AWAITING_PAYOUT)
    gig['studentPaymentRequestPending'] = False
    gig['paidAt'] = now
    gigs.save_gig(gig, extra_ops=[
        dynamo.put_op(config.TRANSACTIONS_TABLE, transaction, must_not_exist='transactionId')
    ])
    logger.info(
        f"Gig {gig_id}: payment of {transaction['currency']} {transaction['amount']} "
        f"recorded as {transaction['transactionId']}"
    )

    notifications.emit(
        gig['selectedStudentId'],
        NotificationType.PAYMENT_PROCESSED,
        f'The client has paid for "{gig["title"]}". Your payout is awaiting release.',
        related_gig_id=gig_id,
        related_gig_title=gig['title'],
        link='/student/wallet'
    )
    return transaction


@dynamo.retry_on_conflict
def request_payment(actor: Actor, gig_id: str) -> Dict[str, Any]:
    """
    Nudge the client to pay. Throttled to one outstanding request and
    config.PAYMENT_REQUEST_LIMIT requests per gig; never changes status.
    """
    gig = gigs.load_gig(gig_id)
    gigs.require_selected_student(gig, actor)
    gigs.ensure_not_terminal(gig)
    gigs.ensure_in_progress(gig)
    _ensure_payable(gig)
    if gig.get('studentPaymentRequestPending'):
        raise InvalidStateError('RequestPending', 'A payment request is already pending')
    count = int(gig.get('paymentRequestsCount') or 0)
    if count >= config.PAYMENT_REQUEST_LIMIT:
        raise InvalidStateError(
            'RequestLimitReached',
            f'You can request payment at most {config.PAYMENT_REQUEST_LIMIT} times'
        )

    gig['paymentRequestsCount'] = count + 1
    gig['studentPaymentRequestPending'] = True
    gig['lastPaymentRequestedAt'] = utc_now()
    gigs.save_gig(gig)
    logger.info(f"Gig {gig_id}: payment request {count + 1} from {actor.user_id}")

    notifications.emit(
        gig['clientId'],
        NotificationType.PAYMENT_REQUESTED,
        f'The student has requested payment for "{gig["title"]}".',
        related_gig_id=gig_id,
        related_gig_title=gig['title'],
        link=f'/client/gigs/{gig_id}/manage',
        actor_id=actor.user_id
    )
    return gig


def find_pending_transaction(gig: Dict[str, Any]) -> Dict[str, Any]:
    """
    The held ledger entry paid for the gig's current selection. Entries left
    behind by an earlier, reset selection never match.
    """
    gig_id = gig['gigId']
    held = [
        t for t in dynamo.query_by_field(
            config.TRANSACTIONS_TABLE, config.TRANSACTION_GIG_INDEX, 'gigId', gig_id
        )
        if t.get('status') == TransactionStatus.PENDING_RELEASE
        and t.get('studentId') == gig.get('selectedStudentId')
    ]
    if not held:
        raise NotFoundError('TransactionNotFound', f'No held payment for gig {gig_id}')
    if len(held) > 1:
        raise InvalidStateError(
            'AmbiguousTransaction',
            f'{len(held)} held payments for gig {gig_id} and student {gig["selectedStudentId"]}'
        )
    return held[0]


@dynamo.retry_on_conflict
def finalize_release(actor: Actor, gig_id: str) -> Dict[str, Any]:
    """
    Admin release of a held payment: reconcile the commission on the ledger
    entry and complete the gig in one batch.
    """
    gigs.require_admin(actor)
    gig = gigs.load_gig(gig_id)
    gigs.ensure_not_terminal(gig)
    if gig['status'] != GigStatus.AWAITING_PAYOUT:
        raise InvalidStateError('WrongStatus', 'Only a gig awaiting payout can be released')

    transaction = find_pending_transaction(gig)
    net_amount, platform_fee = calculate_payment_split(transaction['amount'])
    now = utc_now()

    gigs.transition(gig, GigStatus.COMPLETED)
    gig['completedAt'] = now
    gigs.save_gig(gig, extra_ops=[
        dynamo.update_op(
            config.TRANSACTIONS_TABLE,
            {'transactionId': transaction['transactionId']},
            {
                'status': TransactionStatus.PAYOUT_SUCCEEDED,
                'platformFee': platform_fee,
                'netAmount': net_amount,
                'releasedAt': now,
                'releasedBy': actor.user_id
            },
            expected={'status': TransactionStatus.PENDING_RELEASE}
        )
    ])
    transaction.update(status=TransactionStatus.PAYOUT_SUCCEEDED, platformFee=platform_fee,
                       netAmount=net_amount, releasedAt=now, releasedBy=actor.user_id)
    logger.info(f"Gig {gig_id}: released {net_amount} to {gig['selectedStudentId']} (fee {platform_fee})")

    notifications.emit(
        gig['selectedStudentId'],
        NotificationType.PAYMENT_RELEASED,
        f'{transaction["currency"]} {net_amount} for "{gig["title"]}" has been released to you.',
        related_gig_id=gig_id,
        related_gig_title=gig['title'],
        link='/student/wallet'
    )
    return transaction
