"""
SQS fan-out of stored notifications to the real-time push service.

Each message carries the recipient and notification type as message
attributes so the consumer can route without parsing the body.
"""
import json
from typing import Any, Dict, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .logging import logger
from .utils import DecimalEncoder

# SQS SendMessageBatch limit
SQS_BATCH_LIMIT = 10

_sqs_client = None


def get_sqs_client():
    """Get or create SQS client."""
    global _sqs_client
    if _sqs_client is None:
        _sqs_client = boto3.client('sqs', region_name=config.AWS_REGION)
    return _sqs_client


def _attributes(notification: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'recipientId': {'DataType': 'String', 'StringValue': str(notification['recipientId'])},
        'type': {'DataType': 'String', 'StringValue': str(notification['type'])}
    }


def publish_notification(queue_url: str, notification: Dict[str, Any]) -> bool:
    """
    Publish one notification.

    Returns:
        True if sent successfully, False otherwise
    """
    try:
        get_sqs_client().send_message(
            QueueUrl=queue_url,
            MessageBody=json.dumps(notification, cls=DecimalEncoder),
            MessageAttributes=_attributes(notification)
        )
        return True
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error publishing notification {notification.get('notificationId')}: {e}")
        return False


def publish_notifications(queue_url: str, notifications: List[Dict[str, Any]]) -> int:
    """
    Publish notifications in batches of SQS_BATCH_LIMIT.

    Returns:
        Number of notifications that could not be published
    """
    failed = 0
    for start in range(0, len(notifications), SQS_BATCH_LIMIT):
        batch = notifications[start:start + SQS_BATCH_LIMIT]
        entries = [
            {
                'Id': str(index),
                'MessageBody': json.dumps(notification, cls=DecimalEncoder),
                'MessageAttributes': _attributes(notification)
            }
            for index, notification in enumerate(batch)
        ]
        try:
            response = get_sqs_client().send_message_batch(QueueUrl=queue_url, Entries=entries)
            failed += len(response.get('Failed', []))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error publishing notification batch: {e}")
            failed += len(batch)

    if failed:
        logger.warning(f"{failed} of {len(notifications)} notifications were not published")
    return failed
