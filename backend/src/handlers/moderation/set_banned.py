"""
Set Banned Handler (admin).
POST /admin/users/{userId}/ban
Body: { "banned": true | false }
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.moderation import set_banned
from gigcore.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        body = parse_body(event)
        if not isinstance(body.get('banned'), bool):
            return format_response(400, {'error': 'ValidationFailed', 'message': 'banned must be true or false'})

        result = set_banned(actor, get_path_param(event, 'userId'), body['banned'])
        return format_response(200, result)

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating ban status: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
