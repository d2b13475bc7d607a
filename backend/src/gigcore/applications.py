"""
Application gate.

Two-phase admission: a student first asks permission to apply
(ApplicationRequest, resolved once by the client), then submits a full
application (Applicant) which the client accepts or rejects. Accepting an
applicant is what moves a gig from open to in-progress.

Many students race on the same gig here, so every operation is a
read-modify-write retried on version conflicts; the duplicate checks run
again on each attempt against the fresh record.
"""
from typing import Any, Dict, Optional

from . import dynamo, gigs, notifications
from .config import config
from .errors import DuplicateError, InvalidStateError, NotFoundError, ValidationFailedError
from .logging import logger
from .models import Actor, ApplicantStatus, NotificationType, RequestStatus, Role
from .utils import utc_now

REQUEST_DECISIONS = {
    'approve': RequestStatus.APPROVED,
    'deny': RequestStatus.DENIED,
}

APPLICANT_DECISIONS = {
    'accept': ApplicantStatus.ACCEPTED,
    'reject': ApplicantStatus.REJECTED,
}


def find_request(gig: Dict[str, Any], student_id: str) -> Optional[Dict[str, Any]]:
    return next((r for r in gig['applicationRequests'] if r['studentId'] == student_id), None)


def find_applicant(gig: Dict[str, Any], student_id: str) -> Optional[Dict[str, Any]]:
    return next((a for a in gig['applicants'] if a['studentId'] == student_id), None)


def _username(account: Dict[str, Any]) -> str:
    return account.get('username') or 'Unknown Student'


@dynamo.retry_on_conflict
def request_to_apply(actor: Actor, gig_id: str) -> Dict[str, Any]:
    """Ask the client for permission to apply."""
    account = gigs.require_active(actor, Role.STUDENT)
    gig = gigs.load_gig(gig_id)
    gigs.ensure_not_terminal(gig)
    gigs.ensure_open(gig)

    if find_request(gig, actor.user_id):
        raise DuplicateError('AlreadyRequested', 'You have already requested to apply to this gig')

    request = {
        'studentId': actor.user_id,
        'username': _username(account),
        'requestedAt': utc_now(),
        'status': RequestStatus.PENDING
    }
    gig['applicationRequests'].append(request)
    gigs.save_gig(gig)
    logger.info(f"Gig {gig_id}: application request from {actor.user_id}")

    notifications.emit(
        gig['clientId'],
        NotificationType.NEW_APPLICATION_REQUEST,
        f'"{request["username"]}" has asked to apply to your gig "{gig["title"]}".',
        related_gig_id=gig_id,
        related_gig_title=gig['title'],
        link=f'/client/gigs/{gig_id}/manage',
        actor_id=actor.user_id
    )
    return request


@dynamo.retry_on_conflict
def resolve_request(actor: Actor, gig_id: str, student_id: str, decision: str) -> Dict[str, Any]:
    """Approve or deny a pending request to apply. Resolution is one-shot."""
    if decision not in REQUEST_DECISIONS:
        raise ValidationFailedError('InvalidDecision', 'Decision must be approve or deny')

    gig = gigs.load_gig(gig_id)
    gigs.require_owner(gig, actor)
    gigs.ensure_not_terminal(gig)

    request = find_request(gig, student_id)
    if not request:
        raise NotFoundError('RequestNotFound', 'Application request not found')
    if request['status'] != RequestStatus.PENDING:
        raise InvalidStateError('NotPending', 'This request has already been resolved')

    request['status'] = REQUEST_DECISIONS[decision]
    request['resolvedAt'] = utc_now()
    gigs.save_gig(gig)
    logger.info(f"Gig {gig_id}: request from {student_id} -> {request['status']}")

    verdict = 'approved' if decision == 'approve' else 'denied'
    notifications.emit(
        student_id,
        NotificationType.APPLICATION_REQUEST_UPDATE,
        f'Your request to apply to "{gig["title"]}" was {verdict}.',
        related_gig_id=gig_id,
        related_gig_title=gig['title']
    )
    return request


@dynamo.retry_on_conflict
def apply(actor: Actor, gig_id: str, message: str = '') -> Dict[str, Any]:
    """
    Submit a full application. Whether an approved request is required
    first is governed by config.REQUIRE_APPROVED_REQUEST.
    """
    account = gigs.require_active(actor, Role.STUDENT)
    gig = gigs.load_gig(gig_id)
    gigs.ensure_not_terminal(gig)
    gigs.ensure_open(gig)

    if find_applicant(gig, actor.user_id):
        raise DuplicateError('DuplicateApplication', 'You have already applied to this gig')

    if config.REQUIRE_APPROVED_REQUEST:
        request = find_request(gig, actor.user_id)
        if not request or request['status'] != RequestStatus.APPROVED:
            raise InvalidStateError(
                'RequestNotApproved',
                'The client must approve your request to apply first'
            )

    applicant = {
        'studentId': actor.user_id,
        'username': _username(account),
        'message': (message or '').strip(),
        'appliedAt': utc_now(),
        'status': ApplicantStatus.PENDING
    }
    gig['applicants'].append(applicant)
    gigs.save_gig(gig)
    logger.info(f"Gig {gig_id}: application from {actor.user_id}")

    notifications.emit(
        gig['clientId'],
        NotificationType.NEW_APPLICANT,
        f'"{applicant["username"]}" has applied to your gig "{gig["title"]}".',
        related_gig_id=gig_id,
        related_gig_title=gig['title'],
        link=f'/client/gigs/{gig_id}/manage',
        actor_id=actor.user_id
    )
    return applicant


@dynamo.retry_on_conflict
def decide_applicant(actor: Actor, gig_id: str, student_id: str, decision: str) -> Dict[str, Any]:
    """
    Accept or reject an applicant. Accepting selects the student and starts
    the gig; competing applicants are auto-rejected only when
    config.AUTO_REJECT_OTHER_APPLICANTS is set.
    """
    if decision not in APPLICANT_DECISIONS:
        raise ValidationFailedError('InvalidDecision', 'Decision must be accept or reject')

    gig = gigs.load_gig(gig_id)
    gigs.require_owner(gig, actor)
    gigs.ensure_not_terminal(gig)

    applicant = find_applicant(gig, student_id)
    if not applicant:
        raise NotFoundError('ApplicantNotFound', 'Applicant not found')

    auto_rejected = []
    if decision == 'accept':
        gigs.ensure_open(gig)
        applicant['status'] = ApplicantStatus.ACCEPTED
        applicant['decidedAt'] = utc_now()
        gigs.select_student(gig, student_id)
        if config.AUTO_REJECT_OTHER_APPLICANTS:
            for other in gig['applicants']:
                if other is not applicant and other['status'] == ApplicantStatus.PENDING:
                    other['status'] = ApplicantStatus.REJECTED
                    other['decidedAt'] = applicant['decidedAt']
                    auto_rejected.append(other['studentId'])
    else:
        if applicant['status'] == ApplicantStatus.ACCEPTED:
            raise InvalidStateError(
                'ApplicantAlreadyAccepted',
                'The selected student cannot be rejected; close the gig instead'
            )
        applicant['status'] = ApplicantStatus.REJECTED
        applicant['decidedAt'] = utc_now()

    gigs.save_gig(gig)
    logger.info(f"Gig {gig_id}: applicant {student_id} -> {applicant['status']}")

    for recipient in [student_id] + auto_rejected:
        status = applicant['status'] if recipient == student_id else ApplicantStatus.REJECTED
        notifications.emit(
            recipient,
            NotificationType.APPLICATION_STATUS_UPDATE,
            f'Your application for the gig "{gig["title"]}" has been {status}.',
            related_gig_id=gig_id,
            related_gig_title=gig['title']
        )
    return applicant
