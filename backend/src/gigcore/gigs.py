"""
Gig lifecycle controller.

Owns the gig's top-level status and the only legal ways to move it:

    open ──accept──▶ in-progress ──client payment──▶ awaiting_payout ──admin release──▶ completed
      │                  │   ▲                            │
      │                  │   └────── student banned ──────┘ (back to open)
      └──────────────────┴──▶ closed (client banned / explicit close)

closed and completed are terminal. This module also holds the gig record
helpers every other component uses (load, ownership checks, versioned save)
and the CRUD glue for creating, editing, closing and viewing gigs.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from . import dynamo, notifications
from .config import config
from .errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from .logging import logger
from .models import Actor, ApplicantStatus, GigStatus, Money, NotificationType, Role
from .s3_utils import sign_attachments
from .utils import new_id, utc_now

VALID_TRANSITIONS = {
    GigStatus.OPEN: (GigStatus.IN_PROGRESS, GigStatus.CLOSED),
    GigStatus.IN_PROGRESS: (GigStatus.AWAITING_PAYOUT, GigStatus.OPEN, GigStatus.CLOSED),
    GigStatus.AWAITING_PAYOUT: (GigStatus.COMPLETED, GigStatus.OPEN),
    GigStatus.COMPLETED: (),
    GigStatus.CLOSED: (),
}

# Fields a client may edit only while the gig is open and nobody is selected
EDITABLE_FIELDS = (
    'title', 'description', 'requiredSkills', 'budget', 'currency',
    'deadline', 'numberOfReports', 'reportDeadlines'
)


# =============================================================================
# Record access
# =============================================================================

def load_gig(gig_id: str) -> Dict[str, Any]:
    """Read a gig or raise GigNotFound."""
    gig = dynamo.get_item(config.GIGS_TABLE, {'gigId': gig_id}) if gig_id else None
    if not gig:
        raise NotFoundError('GigNotFound', f'Gig {gig_id} not found')
    gig.setdefault('applicationRequests', [])
    gig.setdefault('applicants', [])
    gig.setdefault('progressReports', [])
    return gig


def load_account(user_id: str) -> Dict[str, Any]:
    """Read a user account or raise AccountNotFound."""
    account = dynamo.get_item(config.USERS_TABLE, {'userId': user_id}) if user_id else None
    if not account:
        raise NotFoundError('AccountNotFound', f'Account {user_id} not found')
    return account


def require_active(actor: Actor, role: str) -> Dict[str, Any]:
    """Check the caller has ``role`` and is not suspended; return the account."""
    if actor.role != role:
        raise PermissionDeniedError('WrongRole', f'Only a {role} may do this')
    account = load_account(actor.user_id)
    if account.get('isBanned'):
        raise PermissionDeniedError('AccountSuspended', 'Your account is suspended')
    return account


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise PermissionDeniedError('AdminOnly', 'Only an admin may do this')


def require_owner(gig: Dict[str, Any], actor: Actor) -> None:
    if actor.role != Role.CLIENT or gig.get('clientId') != actor.user_id:
        raise PermissionDeniedError('NotGigOwner', 'Only the gig owner may do this')


def require_selected_student(gig: Dict[str, Any], actor: Actor) -> None:
    if actor.role != Role.STUDENT or not gig.get('selectedStudentId') \
            or gig.get('selectedStudentId') != actor.user_id:
        raise PermissionDeniedError('NotSelectedStudent', 'Only the selected student may do this')


def ensure_not_terminal(gig: Dict[str, Any]) -> None:
    """No mutator may act on a closed or completed gig."""
    status = gig.get('status')
    if status == GigStatus.CLOSED:
        raise InvalidStateError('GigClosed', 'This gig has been closed')
    if status == GigStatus.COMPLETED:
        raise InvalidStateError('GigCompleted', 'This gig is already completed')


def ensure_open(gig: Dict[str, Any]) -> None:
    if gig.get('status') != GigStatus.OPEN:
        raise InvalidStateError('GigNotOpen', 'This gig is no longer accepting applications')


def ensure_in_progress(gig: Dict[str, Any]) -> None:
    if gig.get('status') != GigStatus.IN_PROGRESS:
        raise InvalidStateError('GigNotInProgress', 'This gig is not in progress')


def prepare_for_write(gig: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the versioned item for a conditional write and return the
    expected-values condition. Derived fields are recomputed here so they
    always land in the same write as the facts they summarize.
    """
    expected_version = gig.get('version')
    gig['applicantIds'] = [a['studentId'] for a in gig.get('applicants', [])]
    gig['version'] = (expected_version or 0) + 1
    gig['updatedAt'] = utc_now()
    # Sparse GSI keys must be absent rather than NULL
    item = {k: v for k, v in gig.items() if v is not None}
    return dynamo.put_op(config.GIGS_TABLE, item, expected={'version': expected_version})


def save_gig(gig: Dict[str, Any], extra_ops: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Persist a gig conditioned on the version it was read at.
    ``extra_ops`` are committed atomically with it.
    """
    op = prepare_for_write(gig)
    if extra_ops:
        dynamo.transact_write([op] + list(extra_ops))
    else:
        dynamo.put_item(op['table'], op['item'], expected=op['expected'])
    return gig


# =============================================================================
# Transitions
# =============================================================================

def transition(gig: Dict[str, Any], new_status: str) -> None:
    """Move the gig to ``new_status`` if the state machine allows it."""
    current = gig.get('status')
    ensure_not_terminal(gig)
    if new_status not in VALID_TRANSITIONS.get(current, ()):
        raise InvalidStateError('InvalidTransition', f'Cannot move gig from {current} to {new_status}')
    gig['status'] = new_status
    logger.info(f"Gig {gig.get('gigId')}: {current} -> {new_status}")


def build_placeholders(gig: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Fresh, ordered progress report entries 1..numberOfReports."""
    count = int(gig.get('numberOfReports') or 0)
    deadlines = gig.get('reportDeadlines') or []
    return [
        {
            'reportNumber': number,
            'deadline': deadlines[number - 1] if number <= len(deadlines) else None,
            'studentSubmission': None,
            'clientStatus': None,
            'clientFeedback': None,
            'reviewedAt': None
        }
        for number in range(1, count + 1)
    ]


def select_student(gig: Dict[str, Any], student_id: str) -> None:
    """open → in-progress with the given student selected."""
    transition(gig, GigStatus.IN_PROGRESS)
    gig['selectedStudentId'] = student_id
    count = int(gig.get('numberOfReports') or 0)
    if count > 0 and len(gig.get('progressReports') or []) != count:
        gig['progressReports'] = build_placeholders(gig)


def reset_selection(gig: Dict[str, Any]) -> None:
    """Return a gig to open after its selected student is removed."""
    transition(gig, GigStatus.OPEN)
    gig['selectedStudentId'] = None
    gig['progressReports'] = build_placeholders(gig)
    gig['paymentRequestsCount'] = 0
    gig['studentPaymentRequestPending'] = False
    gig['lastPaymentRequestedAt'] = None


def close(gig: Dict[str, Any], reason: str) -> None:
    transition(gig, GigStatus.CLOSED)
    gig['closedReason'] = reason
    gig['closedAt'] = utc_now()


# =============================================================================
# Gig CRUD glue
# =============================================================================

def _parse_time(value, field: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (TypeError, ValueError):
        raise ValidationFailedError('InvalidDate', f'{field} must be an ISO-8601 date')
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_gig_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize and validate the editable gig fields."""
    title = (data.get('title') or '').strip()
    description = (data.get('description') or '').strip()
    if not title:
        raise ValidationFailedError('TitleRequired', 'A title is required')
    if not description:
        raise ValidationFailedError('DescriptionRequired', 'A description is required')

    try:
        budget = Decimal(str(data.get('budget')))
    except (InvalidOperation, ValueError):
        raise ValidationFailedError('InvalidBudget', 'Budget must be a number')
    if not budget.is_finite() or budget <= 0:
        raise ValidationFailedError('InvalidBudget', 'Budget must be a positive number')

    if not data.get('deadline'):
        raise ValidationFailedError('DeadlineRequired', 'A deadline is required')
    deadline = _parse_time(data['deadline'], 'deadline')

    try:
        number_of_reports = int(data.get('numberOfReports') or 0)
    except (TypeError, ValueError):
        raise ValidationFailedError('InvalidNumberOfReports', 'numberOfReports must be an integer')
    if number_of_reports < 0 or number_of_reports > config.MAX_REPORTS:
        raise ValidationFailedError(
            'InvalidNumberOfReports',
            f'numberOfReports must be between 0 and {config.MAX_REPORTS}'
        )

    report_deadlines = data.get('reportDeadlines') or []
    if report_deadlines:
        if number_of_reports == 0:
            raise ValidationFailedError('InvalidReportDeadlines', 'Report deadlines need at least one report')
        if len(report_deadlines) != number_of_reports:
            raise ValidationFailedError('InvalidReportDeadlines', 'One deadline per report is required')
        previous = None
        for index, value in enumerate(report_deadlines, start=1):
            if value is None:
                continue
            parsed = _parse_time(value, f'reportDeadlines[{index}]')
            if parsed > deadline:
                raise ValidationFailedError(
                    'InvalidReportDeadlines',
                    f'Report deadline {index} cannot be after the main gig deadline'
                )
            if previous is not None and parsed < previous:
                raise ValidationFailedError(
                    'InvalidReportDeadlines',
                    f'Report deadline {index} cannot be before report deadline {index - 1}'
                )
            previous = parsed

    skills = [s.strip() for s in (data.get('requiredSkills') or []) if s and s.strip()]

    return {
        'title': title,
        'description': description,
        'requiredSkills': skills,
        'budget': budget,
        'currency': data.get('currency') or config.DEFAULT_CURRENCY,
        'deadline': str(data['deadline']),
        'numberOfReports': number_of_reports,
        'reportDeadlines': list(report_deadlines)
    }


def create_gig(actor: Actor, data: Dict[str, Any]) -> Dict[str, Any]:
    """Create a new open gig owned by the calling client."""
    account = require_active(actor, Role.CLIENT)
    fields = validate_gig_fields(data)
    now = utc_now()

    gig = {
        'gigId': new_id(),
        'clientId': actor.user_id,
        'clientUsername': account.get('username'),
        **fields,
        'status': GigStatus.OPEN,
        'applicationRequests': [],
        'applicants': [],
        'progressReports': [],
        'sharedResourceLink': None,
        'paymentRequestsCount': 0,
        'studentPaymentRequestPending': False,
        'createdAt': now
    }
    op = prepare_for_write(gig)
    dynamo.put_item(op['table'], op['item'], must_not_exist='gigId')
    logger.info(f"Gig {gig['gigId']} created by client {actor.user_id}")
    return gig


@dynamo.retry_on_conflict
def update_gig(actor: Actor, gig_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Edit a gig. Listing fields change only while the gig is open with no
    accepted applicant; the shared resource link may change on any live gig.
    """
    gig = load_gig(gig_id)
    require_owner(gig, actor)
    ensure_not_terminal(gig)

    listing_changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
    if listing_changes:
        accepted = any(a.get('status') == ApplicantStatus.ACCEPTED for a in gig['applicants'])
        if gig['status'] != GigStatus.OPEN or accepted:
            raise InvalidStateError('GigNotEditable', f"This gig is {gig['status']} and can no longer be edited")
        merged = {field: gig.get(field) for field in EDITABLE_FIELDS}
        merged.update(listing_changes)
        gig.update(validate_gig_fields(merged))

    link_changed = False
    if 'sharedResourceLink' in changes:
        link = (changes.get('sharedResourceLink') or '').strip() or None
        link_changed = link != gig.get('sharedResourceLink')
        gig['sharedResourceLink'] = link

    save_gig(gig)

    if link_changed and gig.get('selectedStudentId') and gig.get('sharedResourceLink'):
        notifications.emit(
            gig['selectedStudentId'],
            NotificationType.GIG_STATUS_UPDATE,
            f'The client shared a resource link for "{gig["title"]}".',
            related_gig_id=gig_id,
            related_gig_title=gig['title']
        )
    return gig


@dynamo.retry_on_conflict
def close_gig(actor: Actor, gig_id: str) -> Dict[str, Any]:
    """Explicit close by the owning client or an admin."""
    gig = load_gig(gig_id)
    if not actor.is_admin:
        require_owner(gig, actor)
    ensure_not_terminal(gig)
    if gig['status'] not in (GigStatus.OPEN, GigStatus.IN_PROGRESS):
        raise InvalidStateError('WrongStatus', 'Only open or in-progress gigs can be closed')

    close(gig, 'closed_by_admin' if actor.is_admin else 'closed_by_client')
    save_gig(gig)

    if gig.get('selectedStudentId'):
        notifications.emit(
            gig['selectedStudentId'],
            NotificationType.GIG_STATUS_UPDATE,
            f'The gig "{gig["title"]}" has been closed.',
            related_gig_id=gig_id,
            related_gig_title=gig['title']
        )
    return gig


def get_gig_view(actor: Actor, gig_id: str) -> Dict[str, Any]:
    """
    Gig as shown to ``actor``: derived payout figures, signed attachment
    links, and participant-only fields hidden from everyone else.
    """
    gig = load_gig(gig_id)
    if not actor.is_admin:
        client = dynamo.get_item(config.USERS_TABLE, {'userId': gig['clientId']})
        if not client or client.get('isBanned'):
            raise NotFoundError('GigNotFound', 'This gig is currently unavailable')

    gross = Money(gig['budget'], gig.get('currency') or config.DEFAULT_CURRENCY)
    view = dict(gig)
    view.pop('applicantIds', None)
    view['commission'] = gross.commission(config.COMMISSION_RATE).amount
    view['netPayout'] = gross.net_of_commission(config.COMMISSION_RATE).amount

    is_participant = actor.is_admin or actor.user_id in (gig.get('clientId'), gig.get('selectedStudentId'))
    if is_participant:
        view['progressReports'] = [
            {
                **report,
                'studentSubmission': {
                    **report['studentSubmission'],
                    'attachments': sign_attachments(report['studentSubmission'].get('attachments'))
                } if report.get('studentSubmission') else None
            }
            for report in gig['progressReports']
        ]
    else:
        view['applicants'] = [a for a in gig['applicants'] if a['studentId'] == actor.user_id]
        view['applicationRequests'] = [
            r for r in gig['applicationRequests'] if r['studentId'] == actor.user_id
        ]
        for hidden in ('progressReports', 'sharedResourceLink', 'paymentRequestsCount',
                       'studentPaymentRequestPending', 'lastPaymentRequestedAt'):
            view.pop(hidden, None)
    return view
