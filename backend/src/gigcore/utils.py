"""
Common utility functions for Lambda handlers.
"""
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from .errors import GigCoreError, NotFoundError, PermissionDeniedError, ValidationFailedError


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types from DynamoDB."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Convert to int if it's a whole number, otherwise float
            if o % 1 == 0:
                return int(o)
            return float(o)
        return super().default(o)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def error_response(error: GigCoreError) -> Dict[str, Any]:
    """
    Render a core error for the caller.

    NotFound and PermissionDenied get a generic message so that callers
    cannot probe for records they are not allowed to see.
    """
    if isinstance(error, NotFoundError):
        body = {'error': error.kind, 'message': 'Not found'}
    elif isinstance(error, PermissionDeniedError):
        body = {'error': error.kind, 'message': 'Access denied'}
    else:
        body = {'error': error.kind, 'code': error.code, 'message': error.message}
    return format_response(error.status_code, body)


def parse_body(event: dict) -> dict:
    """
    Parse the JSON object body of an API Gateway event.
    Floats are read as Decimal so amounts can be stored as-is.

    Raises:
        ValidationFailedError: the body is not a JSON object
    """
    body = event.get('body')
    if not body:
        return {}
    if isinstance(body, dict):
        return body
    try:
        parsed = json.loads(body, parse_float=Decimal)
    except (json.JSONDecodeError, TypeError):
        raise ValidationFailedError('MalformedBody', 'Request body must be valid JSON')
    if not isinstance(parsed, dict):
        raise ValidationFailedError('MalformedBody', 'Request body must be a JSON object')
    return parsed


def get_path_param(event: dict, param_name: str) -> str:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())
