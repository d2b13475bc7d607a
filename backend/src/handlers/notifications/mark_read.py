"""
Mark Notification Read Handler.
POST /notifications/{notificationId}/read
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.notifications import mark_read
from gigcore.utils import format_response, error_response, get_path_param


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        notification = mark_read(actor, get_path_param(event, 'notificationId'))
        return format_response(200, {'notificationId': notification['notificationId'], 'isRead': True})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error marking notification read: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
