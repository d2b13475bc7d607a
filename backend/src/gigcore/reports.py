"""
Progress report tracker.

A gig with N reports carries exactly N ordered entries once a student is
selected. Report k may only be submitted once report k-1 is approved, and
the gig can only be paid once every report is approved.
"""
from typing import Any, Dict, List, Optional

from . import dynamo, gigs, notifications
from .config import config
from .errors import InvalidStateError, NotFoundError, ValidationFailedError
from .logging import logger
from .models import Actor, NotificationType, ReportStatus, Role
from .utils import utc_now

REVIEW_DECISIONS = {
    'approve': ReportStatus.APPROVED,
    'reject': ReportStatus.REJECTED,
}


def get_report(gig: Dict[str, Any], report_number: int) -> Dict[str, Any]:
    reports = gig.get('progressReports') or []
    if not isinstance(report_number, int) or not 1 <= report_number <= len(reports):
        raise NotFoundError('ReportNotFound', f'Report {report_number} not found')
    return reports[report_number - 1]


def can_submit(gig: Dict[str, Any], report_number: int) -> bool:
    """Report 1 is always open; report k needs report k-1 approved."""
    if report_number == 1:
        return True
    previous = get_report(gig, report_number - 1)
    return previous.get('clientStatus') == ReportStatus.APPROVED


def all_approved(gig: Dict[str, Any]) -> bool:
    """
    True iff every report is approved; vacuously true with no reports.
    Placeholders must be materialized for a gig with reports to qualify.
    """
    expected = int(gig.get('numberOfReports') or 0)
    reports = gig.get('progressReports') or []
    if len(reports) != expected:
        return False
    return all(r.get('clientStatus') == ReportStatus.APPROVED for r in reports)


def _normalize_attachments(attachments: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Attachments are opaque storage references; only the shape is checked."""
    normalized = []
    for attachment in attachments or []:
        if isinstance(attachment, str):
            attachment = {'url': attachment}
        if not isinstance(attachment, dict) or not attachment.get('url'):
            raise ValidationFailedError('InvalidAttachment', 'Each attachment needs a url')
        normalized.append(dict(attachment))
    return normalized


@dynamo.retry_on_conflict
def submit_report(
    actor: Actor,
    gig_id: str,
    report_number: int,
    text: str,
    attachments: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """
    Submit a deliverable, or resubmit one the client rejected. Resubmitting
    resets the report to pending_review and discards earlier feedback.
    """
    gig = gigs.load_gig(gig_id)
    gigs.require_selected_student(gig, actor)
    gigs.require_active(actor, Role.STUDENT)
    gigs.ensure_not_terminal(gig)
    gigs.ensure_in_progress(gig)

    text = (text or '').strip()
    if not text:
        raise ValidationFailedError('DescriptionRequired', 'Please provide a description for your report')
    files = _normalize_attachments(attachments)

    report = get_report(gig, report_number)
    if not can_submit(gig, report_number):
        raise InvalidStateError(
            'OutOfSequence',
            f'Report #{report_number - 1} must be approved before submitting report #{report_number}'
        )
    if report.get('clientStatus') not in (None, ReportStatus.REJECTED):
        raise InvalidStateError(
            'AlreadySubmitted',
            f'Report #{report_number} is {report["clientStatus"]}; only a rejected report can be resubmitted'
        )

    report['studentSubmission'] = {
        'text': text,
        'attachments': files,
        'submittedAt': utc_now()
    }
    report['clientStatus'] = ReportStatus.PENDING_REVIEW
    report['clientFeedback'] = None
    report['reviewedAt'] = None
    gigs.save_gig(gig)
    logger.info(f"Gig {gig_id}: report #{report_number} submitted by {actor.user_id}")

    notifications.emit(
        gig['clientId'],
        NotificationType.REPORT_SUBMITTED,
        f'Report #{report_number} for "{gig["title"]}" was submitted for your review.',
        related_gig_id=gig_id,
        related_gig_title=gig['title'],
        link=f'/client/gigs/{gig_id}/manage',
        actor_id=actor.user_id
    )
    return report


@dynamo.retry_on_conflict
def review_report(
    actor: Actor,
    gig_id: str,
    report_number: int,
    decision: str,
    feedback: Optional[str] = None
) -> Dict[str, Any]:
    """Approve or reject a submitted report. Rejection needs a reason."""
    if decision not in REVIEW_DECISIONS:
        raise ValidationFailedError('InvalidDecision', 'Decision must be approve or reject')

    gig = gigs.load_gig(gig_id)
    gigs.require_owner(gig, actor)
    gigs.ensure_not_terminal(gig)
    gigs.ensure_in_progress(gig)

    report = get_report(gig, report_number)
    if not report.get('studentSubmission'):
        raise InvalidStateError('NoSubmission', f'Report #{report_number} has not been submitted yet')
    if report.get('clientStatus') != ReportStatus.PENDING_REVIEW:
        raise InvalidStateError('NotPendingReview', f'Report #{report_number} has already been reviewed')

    feedback = (feedback or '').strip()
    if decision == 'reject' and not feedback:
        raise ValidationFailedError('FeedbackRequired', 'Please explain why the report is rejected')

    report['clientStatus'] = REVIEW_DECISIONS[decision]
    report['clientFeedback'] = feedback or config.APPROVAL_FEEDBACK
    report['reviewedAt'] = utc_now()
    gigs.save_gig(gig)
    logger.info(f"Gig {gig_id}: report #{report_number} -> {report['clientStatus']}")

    notifications.emit(
        gig['selectedStudentId'],
        NotificationType.REPORT_REVIEWED,
        f'Report #{report_number} for "{gig["title"]}" was {report["clientStatus"]}.',
        related_gig_id=gig_id,
        related_gig_title=gig['title'],
        actor_id=actor.user_id
    )
    return report
