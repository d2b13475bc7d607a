"""
Review Progress Report Handler.
POST /client/gigs/{gigId}/reports/{reportNumber}/review
Body: { "decision": "approve" | "reject", "feedback": "..." }
"""
from gigcore.auth import get_actor
from gigcore.errors import GigCoreError
from gigcore.logging import logger, log_event
from gigcore.reports import review_report
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
        report = review_report(
            actor,
            get_path_param(event, 'gigId'),
            report_number,
            (body.get('decision') or '').lower(),
            body.get('feedback')
        )
        return format_response(200, {'message': f"Report #{report_number} {report['clientStatus']}", 'report': report})

    except GigCoreError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error reviewing report: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
