"""
Configuration module for the gig core and its Lambda handlers.
Loads all environment variables needed by the platform.
"""
import os
from decimal import Decimal


def _flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes')


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # DynamoDB Tables
    GIGS_TABLE = os.environ.get('GIGS_TABLE', 'gigs')
    USERS_TABLE = os.environ.get('USERS_TABLE', 'users')
    TRANSACTIONS_TABLE = os.environ.get('TRANSACTIONS_TABLE', 'transactions')
    NOTIFICATIONS_TABLE = os.environ.get('NOTIFICATIONS_TABLE', 'notifications')
    POSTS_TABLE = os.environ.get('POSTS_TABLE', 'posts')
    REVIEWS_TABLE = os.environ.get('REVIEWS_TABLE', 'reviews')

    # DynamoDB Global Secondary Indexes
    GIG_CLIENT_INDEX = os.environ.get('GIG_CLIENT_INDEX', 'ClientIndex')
    GIG_SELECTED_STUDENT_INDEX = os.environ.get('GIG_SELECTED_STUDENT_INDEX', 'SelectedStudentIndex')
    TRANSACTION_GIG_INDEX = os.environ.get('TRANSACTION_GIG_INDEX', 'GigIndex')
    POST_AUTHOR_INDEX = os.environ.get('POST_AUTHOR_INDEX', 'AuthorIndex')

    # SQS Queues
    NOTIFICATION_QUEUE_URL = os.environ.get('NOTIFICATION_QUEUE_URL', '')

    # S3 Buckets
    MEDIA_BUCKET = os.environ.get('MEDIA_BUCKET', '')
    ATTACHMENT_URL_TTL = int(os.environ.get('ATTACHMENT_URL_TTL', '3600'))

    # Escrow / payments
    COMMISSION_RATE = Decimal(os.environ.get('COMMISSION_RATE', '0.02'))
    DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY', 'INR')
    PAYMENT_REQUEST_LIMIT = int(os.environ.get('PAYMENT_REQUEST_LIMIT', '5'))

    # Gig shape
    MAX_REPORTS = int(os.environ.get('MAX_REPORTS', '10'))
    APPROVAL_FEEDBACK = os.environ.get('APPROVAL_FEEDBACK', 'Approved.')

    # Optimistic concurrency
    MAX_WRITE_RETRIES = int(os.environ.get('MAX_WRITE_RETRIES', '3'))

    # Admission policy
    REQUIRE_APPROVED_REQUEST = _flag('REQUIRE_APPROVED_REQUEST')
    AUTO_REJECT_OTHER_APPLICANTS = _flag('AUTO_REJECT_OTHER_APPLICANTS')


config = Config()
