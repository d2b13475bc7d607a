"""
Logging for the gig core and its Lambda handlers.
"""
import json
import logging

from .config import config

logger = logging.getLogger('gigcore')
logger.setLevel(config.LOG_LEVEL)

# Lambda reuses the module between invocations
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)


def log_event(event: dict) -> None:
    """Log the route and caller of an API Gateway event. Bodies and tokens are never logged."""
    try:
        request_context = event.get('requestContext') or {}
        claims = (request_context.get('authorizer') or {}).get('claims') or {}
        summary = {
            'method': event.get('httpMethod'),
            'path': event.get('path'),
            'pathParameters': event.get('pathParameters'),
            'requestId': request_context.get('requestId'),
            'caller': claims.get('sub')
        }
        logger.info(f"Lambda event: {json.dumps(summary, default=str)}")
    except Exception as e:
        logger.warning(f"Could not log event: {e}")
