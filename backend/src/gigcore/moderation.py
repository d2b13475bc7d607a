"""
Moderation cascade.

Banning an account reaches into every gig the account touches. The
cascade reads all affected records first, computes every write (account
flag, gigs, post deletions, notifications) and commits them as a single
transaction, so observers see either the whole cascade or none of it.
Unbanning only clears the flag; nothing is restored.
"""
from typing import Any, Dict, List

from . import dynamo, gigs, notifications
from .config import config
from .errors import CascadeFailedError
from .logging import logger
from .models import Actor, GigStatus, NotificationType, Role

CLIENT_BAN_STATUSES = (GigStatus.OPEN, GigStatus.IN_PROGRESS)
STUDENT_BAN_STATUSES = (GigStatus.IN_PROGRESS, GigStatus.AWAITING_PAYOUT)


class CascadePlan:
    """Accumulates the writes of one cascade."""

    def __init__(self, account: Dict[str, Any], banned: bool):
        self.account = account
        self.banned = banned
        self.gigs = {}
        self.deletes = []
        self.notifications = []
        self.summary = {
            'closedGigs': [],
            'resetGigs': [],
            'removedApplications': [],
            'removedPosts': []
        }

    def touch(self, gig: Dict[str, Any]) -> None:
        self.gigs[gig['gigId']] = gig

    def notify(self, recipient_id: str, notification_type: str, message: str, gig: Dict[str, Any]) -> None:
        self.notifications.append(notifications.build_notification(
            recipient_id, notification_type, message,
            related_gig_id=gig['gigId'],
            related_gig_title=gig.get('title')
        ))

    def operations(self) -> List[Dict[str, Any]]:
        ops = [dynamo.update_op(
            config.USERS_TABLE,
            {'userId': self.account['userId']},
            {'isBanned': self.banned},
            expected={'isBanned': self.account.get('isBanned')}
        )]
        ops.extend(gigs.prepare_for_write(gig) for gig in self.gigs.values())
        ops.extend(self.deletes)
        ops.extend(dynamo.put_op(config.NOTIFICATIONS_TABLE, n) for n in self.notifications)
        return ops


def _reload(matches: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Index and scan hits only name the gigs; each one is read again in full
    with a consistent read before a rewrite is planned.
    """
    return [gigs.load_gig(gig_id) for gig_id in sorted({m['gigId'] for m in matches})]


def _plan_client_ban(plan: CascadePlan, client_id: str) -> None:
    owned = dynamo.query_by_field(config.GIGS_TABLE, config.GIG_CLIENT_INDEX, 'clientId', client_id)
    for gig in _reload(owned):
        if gig.get('status') not in CLIENT_BAN_STATUSES or gig['clientId'] != client_id:
            continue
        gigs.close(gig, 'client_banned')
        plan.touch(gig)
        plan.summary['closedGigs'].append(gig['gigId'])
        if gig.get('selectedStudentId'):
            plan.notify(
                gig['selectedStudentId'],
                NotificationType.GIG_CLOSED_DUE_TO_BAN,
                f'The gig "{gig.get("title")}" has been closed because the client account was suspended.',
                gig
            )


def _plan_student_ban(plan: CascadePlan, student_id: str) -> None:
    selected = dynamo.query_by_field(
        config.GIGS_TABLE, config.GIG_SELECTED_STUDENT_INDEX, 'selectedStudentId', student_id
    )
    for gig in _reload(selected):
        if gig.get('status') not in STUDENT_BAN_STATUSES or gig.get('selectedStudentId') != student_id:
            continue
        gigs.reset_selection(gig)
        gig['applicants'] = [a for a in gig['applicants'] if a['studentId'] != student_id]
        plan.touch(gig)
        plan.summary['resetGigs'].append(gig['gigId'])
        plan.notify(
            gig['clientId'],
            NotificationType.STUDENT_REMOVED_DUE_TO_BAN,
            f'The student working on "{gig.get("title")}" was suspended. The gig is open for applications again.',
            gig
        )

    applied = [
        g for g in dynamo.scan_contains(config.GIGS_TABLE, 'applicantIds', student_id)
        if g['gigId'] not in plan.gigs
    ]
    for gig in _reload(applied):
        if gig.get('status') != GigStatus.OPEN or not any(
                a['studentId'] == student_id for a in gig['applicants']):
            continue
        gig['applicants'] = [a for a in gig['applicants'] if a['studentId'] != student_id]
        plan.touch(gig)
        plan.summary['removedApplications'].append(gig['gigId'])
        plan.notify(
            gig['clientId'],
            NotificationType.APPLICANT_REMOVED_DUE_TO_BAN,
            f'An applicant to "{gig.get("title")}" was suspended and their application removed.',
            gig
        )

    for post in dynamo.query_by_field(config.POSTS_TABLE, config.POST_AUTHOR_INDEX, 'authorId', student_id):
        plan.deletes.append(dynamo.delete_op(config.POSTS_TABLE, {'postId': post['postId']}))
        plan.summary['removedPosts'].append(post['postId'])


def set_banned(actor: Actor, user_id: str, banned: bool) -> Dict[str, Any]:
    """
    Ban or unban an account, applying the consistency cascade on ban.

    Raises:
        CascadeFailedError: the batch could not be committed; nothing was
            written and the whole call may be retried.
    """
    gigs.require_admin(actor)
    account = gigs.load_account(user_id)
    banned = bool(banned)

    plan = CascadePlan(account, banned)
    try:
        if banned and account.get('role') == Role.CLIENT:
            _plan_client_ban(plan, user_id)
        elif banned and account.get('role') == Role.STUDENT:
            _plan_student_ban(plan, user_id)

        operations = plan.operations()
        if len(operations) > dynamo.TRANSACT_MAX_ITEMS:
            raise CascadeFailedError(
                f'Cascade needs {len(operations)} writes; a single batch allows {dynamo.TRANSACT_MAX_ITEMS}'
            )
        dynamo.transact_write(operations)
    except CascadeFailedError:
        logger.error(f"Moderation cascade for {user_id} aborted")
        raise
    except Exception as e:
        logger.error(f"Moderation cascade for {user_id} failed, nothing applied: {e}")
        raise CascadeFailedError() from e

    logger.info(
        f"Account {user_id} {'banned' if banned else 'unbanned'}: "
        f"{len(plan.summary['closedGigs'])} closed, {len(plan.summary['resetGigs'])} reset, "
        f"{len(plan.summary['removedApplications'])} applications and "
        f"{len(plan.summary['removedPosts'])} posts removed"
    )

    notifications.push_all(plan.notifications)

    return {'userId': user_id, 'isBanned': banned, **plan.summary}
