"""
Shared fixtures: an in-memory stand-in for the gigcore.dynamo store
functions, plus account and gig builders.
"""
import copy
from decimal import Decimal

import pytest

from gigcore import dynamo, gigs
from gigcore.config import config
from gigcore.errors import ConcurrentModificationError
from gigcore.models import Actor, ApplicantStatus, GigStatus, Role

KEY_NAMES = {
    config.GIGS_TABLE: 'gigId',
    config.USERS_TABLE: 'userId',
    config.TRANSACTIONS_TABLE: 'transactionId',
    config.NOTIFICATIONS_TABLE: 'notificationId',
    config.POSTS_TABLE: 'postId',
    config.REVIEWS_TABLE: 'reviewId',
}

CLIENT = Actor('client-1', Role.CLIENT)
OTHER_CLIENT = Actor('client-2', Role.CLIENT)
STUDENT = Actor('student-1', Role.STUDENT)
OTHER_STUDENT = Actor('student-2', Role.STUDENT)
ADMIN = Actor('admin-1', Role.ADMIN)


class FakeDynamo:
    """
    Dict-backed tables honouring the same expected-value conditions as the
    real store. ``fail_next_transaction`` makes the next batch blow up
    before anything is applied; ``before_write`` runs once ahead of the
    next conditional write so a test can slip in a competing update.
    """

    def __init__(self):
        self.tables = {name: {} for name in KEY_NAMES}
        self.transactions = []
        self.write_count = 0
        self.fail_next_transaction = None
        self.before_write = None

    # -- helpers used by tests -------------------------------------------

    def seed(self, table, item):
        self.tables[table][item[KEY_NAMES[table]]] = copy.deepcopy(item)
        return item

    def load(self, table, key_value):
        item = self.tables[table].get(key_value)
        return copy.deepcopy(item) if item is not None else None

    def all(self, table):
        return [copy.deepcopy(i) for i in self.tables[table].values()]

    def notifications_for(self, recipient_id, notification_type=None):
        return [
            n for n in self.all(config.NOTIFICATIONS_TABLE)
            if n['recipientId'] == recipient_id
            and (notification_type is None or n['type'] == notification_type)
        ]

    # -- store interface ---------------------------------------------------

    def get_item(self, table_name, key):
        return self.load(table_name, next(iter(key.values())))

    def query_by_field(self, table_name, index_name, field, value):
        return [copy.deepcopy(i) for i in self.tables[table_name].values() if i.get(field) == value]

    def scan_contains(self, table_name, field, value):
        return [copy.deepcopy(i) for i in self.tables[table_name].values() if value in (i.get(field) or [])]

    def put_item(self, table_name, item, expected=None, must_not_exist=None):
        self._commit([dynamo.put_op(table_name, item, expected, must_not_exist)])

    def update_item(self, table_name, key, updates, expected=None):
        self._commit([dynamo.update_op(table_name, key, updates, expected)])

    def transact_write(self, operations):
        if not operations:
            return
        if len(operations) > dynamo.TRANSACT_MAX_ITEMS:
            raise ValueError(f"Transaction too large: {len(operations)}")
        if self.fail_next_transaction is not None:
            error, self.fail_next_transaction = self.fail_next_transaction, None
            raise error
        self._commit(operations)
        self.transactions.append(operations)

    # -- internals ---------------------------------------------------------

    def _key_value(self, op):
        if op['type'] == 'put':
            return op['item'][KEY_NAMES[op['table']]]
        return next(iter(op['key'].values()))

    def _check(self, op):
        current = self.tables[op['table']].get(self._key_value(op))
        if op.get('must_not_exist') and current is not None:
            raise ConcurrentModificationError()
        for attr, value in (op.get('expected') or {}).items():
            if value is None:
                if current is not None and attr in current:
                    raise ConcurrentModificationError()
            elif current is None or current.get(attr) != value:
                raise ConcurrentModificationError()

    def _commit(self, operations):
        if self.before_write is not None:
            hook, self.before_write = self.before_write, None
            hook(self)
        for op in operations:
            self._check(op)
        for op in operations:
            table = self.tables[op['table']]
            key_value = self._key_value(op)
            if op['type'] == 'put':
                table[key_value] = copy.deepcopy(op['item'])
            elif op['type'] == 'update':
                item = table.setdefault(key_value, dict(op['key']))
                item.update(copy.deepcopy(op['updates']))
            else:
                table.pop(key_value, None)
            self.write_count += 1


@pytest.fixture
def store(monkeypatch):
    fake = FakeDynamo()
    for name in ('get_item', 'query_by_field', 'scan_contains', 'put_item', 'update_item', 'transact_write'):
        monkeypatch.setattr(dynamo, name, getattr(fake, name))
    return fake


def make_account(user_id, role, **extra):
    account = {
        'userId': user_id,
        'role': role,
        'username': user_id.replace('-', ' ').title(),
        'isBanned': False,
        'blockedIds': [],
        'averageRating': Decimal('0'),
        'totalRatings': 0
    }
    account.update(extra)
    return account


@pytest.fixture
def marketplace(store):
    """Store seeded with two clients, two students and an admin."""
    for actor in (CLIENT, OTHER_CLIENT, STUDENT, OTHER_STUDENT, ADMIN):
        store.seed(config.USERS_TABLE, make_account(actor.user_id, actor.role))
    return store


def make_gig(gig_id='gig-1', client_id=CLIENT.user_id, status=GigStatus.OPEN,
             number_of_reports=2, selected=None, report_statuses=None, **extra):
    """
    Build a gig record. ``selected`` accepts the student and materializes
    placeholders; ``report_statuses`` fills in clientStatus per report.
    """
    gig = {
        'gigId': gig_id,
        'clientId': client_id,
        'title': f'Gig {gig_id}',
        'description': 'Build a landing page',
        'requiredSkills': ['html'],
        'budget': Decimal('1000'),
        'currency': 'INR',
        'deadline': '2030-01-31T00:00:00+00:00',
        'status': status,
        'numberOfReports': number_of_reports,
        'reportDeadlines': [],
        'applicationRequests': [],
        'applicants': [],
        'progressReports': [],
        'paymentRequestsCount': 0,
        'studentPaymentRequestPending': False,
        'version': 1
    }
    gig.update(extra)
    if selected:
        gig['selectedStudentId'] = selected
        gig['applicants'].append({
            'studentId': selected,
            'username': selected,
            'message': '',
            'appliedAt': '2030-01-01T00:00:00+00:00',
            'status': ApplicantStatus.ACCEPTED
        })
        gig['progressReports'] = gigs.build_placeholders(gig)
    for report, status in zip(gig['progressReports'], report_statuses or []):
        if status:
            report['studentSubmission'] = {
                'text': f"Report {report['reportNumber']}",
                'attachments': [],
                'submittedAt': '2030-01-02T00:00:00+00:00'
            }
            report['clientStatus'] = status
    gig['applicantIds'] = [a['studentId'] for a in gig['applicants']]
    return gig


@pytest.fixture
def seed_gig(marketplace):
    def _seed(**kwargs):
        return marketplace.seed(config.GIGS_TABLE, make_gig(**kwargs))
    return _seed
