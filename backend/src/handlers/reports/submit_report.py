"""
Submit Progress Report Handler.
POST /student/gigs/{gigId}/reports/{reportNumber}
Body: { "text": "...", "attachments": [{"url": "attachments/...", "fileName": "..."}] }
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.reports import submit_report
from gigcore.utils import format_response, error_response, get_path_param, parse_body


def handler(event, context):
    log_event(event)

    try:
        actor = get_actor(event)
        try:
            report_number = int(get_path_param(event, 'reportNumber'))
        except (TypeError, ValueError):
            return format_response(400, {'error': 'ValidationFailed', 'message': 'Invalid report number'})

        body = parse_body(event)
        report = submit_report(
            actor,
            get_path_param(event, 'gigId'),
            report_number,
            body.get('text'),
            body.get('attachments')
        )
        return format_response(200, {'message': f'Report #{report_number} submitted', 'report': report})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error submitting report: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
