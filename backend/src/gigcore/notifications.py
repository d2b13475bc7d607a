"""
Notification sink.

Notifications are write-once records in the notifications table; only
``isRead`` ever changes. Emission is fire-and-forget: a failure is logged
and never undoes the state change that triggered it. The moderation
cascade is the exception and writes its notifications inside its own batch
via build_notification().
"""
from typing import Any, Dict, List, Optional

from . import dynamo, sqs
from .config import config
from .errors import NotFoundError, PermissionDeniedError
from .logging import logger
from .models import Actor
from .utils import new_id, utc_now


def build_notification(
    recipient_id: str,
    notification_type: str,
    message: str,
    related_gig_id: Optional[str] = None,
    related_gig_title: Optional[str] = None,
    link: Optional[str] = None,
    actor_id: Optional[str] = None
) -> Dict[str, Any]:
    """Build a notification record ready to be written."""
    item = {
        'notificationId': new_id(),
        'recipientId': recipient_id,
        'type': notification_type,
        'message': message,
        'isRead': False,
        'createdAt': utc_now(),
        'link': link or (f'/gigs/{related_gig_id}' if related_gig_id else '/notifications')
    }
    if related_gig_id:
        item['relatedGigId'] = related_gig_id
    if related_gig_title:
        item['relatedGigTitle'] = related_gig_title
    if actor_id:
        item['actorId'] = actor_id
    return item


def push(notification: Dict[str, Any]) -> None:
    """Hand a stored notification to the real-time push queue, if configured."""
    if config.NOTIFICATION_QUEUE_URL:
        sqs.publish_notification(config.NOTIFICATION_QUEUE_URL, notification)


def push_all(notifications: List[Dict[str, Any]]) -> None:
    """Batch variant of push() for notifications committed together."""
    if config.NOTIFICATION_QUEUE_URL and notifications:
        sqs.publish_notifications(config.NOTIFICATION_QUEUE_URL, notifications)


def emit(
    recipient_id: str,
    notification_type: str,
    message: str,
    related_gig_id: Optional[str] = None,
    related_gig_title: Optional[str] = None,
    link: Optional[str] = None,
    actor_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Write a notification, best-effort.

    Returns:
        The stored notification, or None if it could not be written
    """
    item = build_notification(
        recipient_id, notification_type, message,
        related_gig_id=related_gig_id,
        related_gig_title=related_gig_title,
        link=link,
        actor_id=actor_id
    )
    try:
        dynamo.put_item(config.NOTIFICATIONS_TABLE, item)
    except Exception as e:
        logger.warning(f"Notification {notification_type} for {recipient_id} not written (non-critical): {e}")
        return None

    logger.info(f"Notification of type {notification_type} created for {recipient_id}")
    push(item)
    return item


def mark_read(actor: Actor, notification_id: str) -> Dict[str, Any]:
    """Flip isRead for the notification's recipient."""
    item = dynamo.get_item(config.NOTIFICATIONS_TABLE, {'notificationId': notification_id})
    if not item:
        raise NotFoundError('NotificationNotFound')
    if item.get('recipientId') != actor.user_id:
        raise PermissionDeniedError('NotRecipient')

    if not item.get('isRead'):
        dynamo.update_item(
            config.NOTIFICATIONS_TABLE,
            {'notificationId': notification_id},
            {'isRead': True}
        )
        item['isRead'] = True
    return item
