"""
Data models and status constants for the gig marketplace.
Based on the gig lifecycle: open → in-progress → awaiting_payout → completed (closed at any point before payout)
"""
from decimal import Decimal, ROUND_DOWN


class GigStatus:
    """Gig lifecycle statuses."""
    OPEN = 'open'
    IN_PROGRESS = 'in-progress'
    AWAITING_PAYOUT = 'awaiting_payout'
    COMPLETED = 'completed'
    CLOSED = 'closed'

    TERMINAL = (COMPLETED, CLOSED)
    # Statuses in which selectedStudentId must be set
    WITH_SELECTION = (IN_PROGRESS, AWAITING_PAYOUT, COMPLETED)


class RequestStatus:
    """Application request (request-to-apply) statuses."""
    PENDING = 'pending'
    APPROVED = 'approved_to_apply'
    DENIED = 'denied_to_apply'


class ApplicantStatus:
    """Full application statuses."""
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'


class ReportStatus:
    """Client review statuses of a progress report. None means not yet submitted."""
    PENDING_REVIEW = 'pending_review'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class TransactionStatus:
    """Escrow ledger statuses."""
    PENDING_RELEASE = 'pending_release_to_student'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    PAYOUT_SUCCEEDED = 'payout_to_student_succeeded'


class Role:
    """Account roles supplied by the identity provider."""
    STUDENT = 'student'
    CLIENT = 'client'
    ADMIN = 'admin'

    ALL = (STUDENT, CLIENT, ADMIN)


class NotificationType:
    """Notification types written to the notification sink."""
    GIG_CLOSED_DUE_TO_BAN = 'gig_closed_due_to_ban'
    STUDENT_REMOVED_DUE_TO_BAN = 'student_removed_due_to_ban'
    APPLICANT_REMOVED_DUE_TO_BAN = 'applicant_removed_due_to_ban'
    GIG_STATUS_UPDATE = 'gig_status_update'
    NEW_APPLICATION_REQUEST = 'new_application_request'
    APPLICATION_REQUEST_UPDATE = 'application_request_update'
    NEW_APPLICANT = 'new_applicant'
    APPLICATION_STATUS_UPDATE = 'application_status_update'
    REVIEW_RECEIVED = 'review_received'
    PAYMENT_PROCESSED = 'payment_processed'
    PAYMENT_REQUESTED = 'payment_requested'
    PAYMENT_RELEASED = 'payment_released'
    REPORT_SUBMITTED = 'report_submitted'
    REPORT_REVIEWED = 'report_reviewed'


class Actor:
    """Authenticated caller as supplied by the identity provider."""

    def __init__(self, user_id: str, role: str):
        self.user_id = user_id
        self.role = role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_client(self) -> bool:
        return self.role == Role.CLIENT

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    def __repr__(self):
        return f"Actor({self.user_id!r}, {self.role!r})"


class Money:
    """
    Amount in a currency, with the platform commission rule.

    The net payout is always derived from the gross amount at the time it is
    needed; it is never stored on the gig.
    """

    CENT = Decimal('0.01')

    def __init__(self, amount, currency: str):
        self.amount = Decimal(str(amount))
        self.currency = currency

    def commission(self, rate: Decimal) -> 'Money':
        fee = (self.amount * rate).quantize(self.CENT, rounding=ROUND_DOWN)
        return Money(fee, self.currency)

    def net_of_commission(self, rate: Decimal) -> 'Money':
        return Money(self.amount - self.commission(rate).amount, self.currency)

    def __eq__(self, other):
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount == other.amount and self.currency == other.currency

    def __repr__(self):
        return f"Money({self.amount}, {self.currency!r})"
