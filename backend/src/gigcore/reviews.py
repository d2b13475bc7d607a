"""
Client reviews of the selected student, unlocked once a gig is completed.
The review and the student's rating aggregate are written together.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict

from . import dynamo, gigs, notifications
from .config import config
from .errors import DuplicateError, InvalidStateError, ValidationFailedError
from .logging import logger
from .models import Actor, GigStatus, NotificationType
from .utils import utc_now


def review_id_for(gig_id: str) -> str:
    """One review per gig."""
    return f'gig#{gig_id}'


def updated_rating(average, total, rating: int):
    """Fold one more rating into a running average."""
    total = int(total or 0)
    average = Decimal(str(average or 0))
    new_total = total + 1
    new_average = (average * total + rating) / new_total
    return new_average.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP), new_total


@dynamo.retry_on_conflict
def submit_review(actor: Actor, gig_id: str, rating, comment: str = '') -> Dict[str, Any]:
    """Rate the student who completed the gig (1-5 stars)."""
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationFailedError('RatingRequired', 'Please select a star rating')
    if not 1 <= rating <= 5:
        raise ValidationFailedError('RatingRequired', 'Rating must be between 1 and 5')

    gig = gigs.load_gig(gig_id)
    gigs.require_owner(gig, actor)
    if gig['status'] != GigStatus.COMPLETED:
        raise InvalidStateError('ReviewLocked', 'Reviews open once the payment has been released')

    review_id = review_id_for(gig_id)
    if dynamo.get_item(config.REVIEWS_TABLE, {'reviewId': review_id}):
        raise DuplicateError('AlreadyReviewed', 'You have already reviewed this gig')

    student = gigs.load_account(gig['selectedStudentId'])
    new_average, new_total = updated_rating(student.get('averageRating'), student.get('totalRatings'), rating)

    review = {
        'reviewId': review_id,
        'gigId': gig_id,
        'gigTitle': gig['title'],
        'clientId': actor.user_id,
        'studentId': gig['selectedStudentId'],
        'rating': rating,
        'comment': (comment or '').strip(),
        'createdAt': utc_now()
    }
    dynamo.transact_write([
        dynamo.put_op(config.REVIEWS_TABLE, review, must_not_exist='reviewId'),
        dynamo.update_op(
            config.USERS_TABLE,
            {'userId': student['userId']},
            {'averageRating': new_average, 'totalRatings': new_total},
            expected={'totalRatings': student.get('totalRatings')}
        )
    ])
    logger.info(f"Gig {gig_id}: {rating}-star review for {student['userId']}")

    notifications.emit(
        student['userId'],
        NotificationType.REVIEW_RECEIVED,
        f'You received a {rating}-star review for "{gig["title"]}".',
        related_gig_id=gig_id,
        related_gig_title=gig['title'],
        link='/student/reviews'
    )
    return review
