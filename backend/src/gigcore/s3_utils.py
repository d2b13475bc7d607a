"""
Download links for progress report attachments.

Submissions store opaque references: either a key under ``attachments/``
in the media bucket or an arbitrary external URL. References into our own
bucket are turned into short-lived presigned GET links when a participant
views the gig; anything else is passed through untouched.
"""
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .logging import logger

ATTACHMENT_PREFIX = 'attachments/'

_s3_client = None


def get_s3_client():
    """Get or create S3 client with the signature version presigned URLs need."""
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client(
            's3',
            region_name=config.AWS_REGION,
            config=BotoConfig(signature_version='s3v4')
        )
    return _s3_client


def object_key(reference: str) -> Optional[str]:
    """Bucket key for a reference to our own media, or None for external URLs."""
    if not reference:
        return None
    if reference.startswith(ATTACHMENT_PREFIX):
        return reference

    bucket = config.MEDIA_BUCKET
    if bucket:
        for bucket_url in (
            f"https://{bucket}.s3.amazonaws.com/",
            f"https://{bucket}.s3.{config.AWS_REGION}.amazonaws.com/"
        ):
            if reference.startswith(bucket_url):
                return reference[len(bucket_url):]
    return None


def download_url(reference: str) -> str:
    """Presigned GET link for our own objects; the reference itself otherwise."""
    key = object_key(reference)
    if key is None:
        return reference
    if not config.MEDIA_BUCKET:
        logger.warning("No MEDIA_BUCKET configured, returning attachment key unsigned")
        return reference

    try:
        return get_s3_client().generate_presigned_url(
            'get_object',
            Params={'Bucket': config.MEDIA_BUCKET, 'Key': key},
            ExpiresIn=config.ATTACHMENT_URL_TTL
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error signing attachment {key}: {e}")
        return reference


def sign_attachments(attachments: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Return copies of attachment records with a downloadUrl added."""
    signed = []
    for attachment in attachments or []:
        entry = dict(attachment)
        entry['downloadUrl'] = download_url(entry.get('url'))
        signed.append(entry)
    return signed
