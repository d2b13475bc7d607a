"""
Tests for the gig state machine and the gig create/edit/close/view glue.
"""
import pytest
from decimal import Decimal

from conftest import ADMIN, CLIENT, OTHER_CLIENT, OTHER_STUDENT, STUDENT, make_gig
from gigcore import gigs
from gigcore.config import config
from gigcore.errors import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationFailedError
from gigcore.models import GigStatus, NotificationType, ReportStatus

NEW_GIG = {
    'title': 'Logo design',
    'description': 'A logo for a bakery',
    'requiredSkills': ['illustrator', ' '],
    'budget': '1500',
    'deadline': '2030-03-01T00:00:00Z',
    'numberOfReports': 2,
    'reportDeadlines': ['2030-02-01T00:00:00Z', '2030-02-15T00:00:00Z']
}


class TestTransitions:
    """Tests for the transition table."""

    @pytest.mark.parametrize('current,target', [
        (GigStatus.OPEN, GigStatus.IN_PROGRESS),
        (GigStatus.OPEN, GigStatus.CLOSED),
        (GigStatus.IN_PROGRESS, GigStatus.AWAITING_PAYOUT),
        (GigStatus.IN_PROGRESS, GigStatus.OPEN),
        (GigStatus.IN_PROGRESS, GigStatus.CLOSED),
        (GigStatus.AWAITING_PAYOUT, GigStatus.COMPLETED),
        (GigStatus.AWAITING_PAYOUT, GigStatus.OPEN),
    ])
    def test_allowed(self, current, target):
        gig = make_gig(status=current)
        gigs.transition(gig, target)
        assert gig['status'] == target

    @pytest.mark.parametrize('current,target', [
        (GigStatus.OPEN, GigStatus.AWAITING_PAYOUT),
        (GigStatus.OPEN, GigStatus.COMPLETED),
        (GigStatus.IN_PROGRESS, GigStatus.COMPLETED),
        (GigStatus.AWAITING_PAYOUT, GigStatus.CLOSED),
    ])
    def test_refused(self, current, target):
        gig = make_gig(status=current)
        with pytest.raises(InvalidStateError) as exc:
            gigs.transition(gig, target)
        assert exc.value.code == 'InvalidTransition'
        assert gig['status'] == current

    @pytest.mark.parametrize('status,code', [
        (GigStatus.CLOSED, 'GigClosed'),
        (GigStatus.COMPLETED, 'GigCompleted'),
    ])
    def test_terminal_states(self, status, code):
        gig = make_gig(status=status)
        with pytest.raises(InvalidStateError) as exc:
            gigs.transition(gig, GigStatus.OPEN)
        assert exc.value.code == code

    def test_reset_selection_clears_reports_and_counters(self):
        gig = make_gig(status=GigStatus.IN_PROGRESS, selected=STUDENT.user_id, number_of_reports=3,
                       report_statuses=[ReportStatus.APPROVED, ReportStatus.PENDING_REVIEW],
                       paymentRequestsCount=2, studentPaymentRequestPending=True)

        gigs.reset_selection(gig)

        assert gig['status'] == GigStatus.OPEN
        assert gig['selectedStudentId'] is None
        assert len(gig['progressReports']) == 3
        assert all(r['studentSubmission'] is None and r['clientStatus'] is None for r in gig['progressReports'])
        assert gig['paymentRequestsCount'] == 0
        assert gig['studentPaymentRequestPending'] is False

    def test_prepare_for_write_bumps_version_and_drops_nulls(self):
        gig = make_gig(selectedStudentId=None)
        op = gigs.prepare_for_write(gig)

        assert op['expected'] == {'version': 1}
        assert op['item']['version'] == 2
        assert 'selectedStudentId' not in op['item']


class TestCreateGig:
    """Tests for create_gig."""

    def test_creates_open_gig(self, marketplace):
        gig = gigs.create_gig(CLIENT, NEW_GIG)

        stored = marketplace.load(config.GIGS_TABLE, gig['gigId'])
        assert stored['status'] == GigStatus.OPEN
        assert stored['version'] == 1
        assert stored['budget'] == Decimal('1500')
        assert stored['currency'] == config.DEFAULT_CURRENCY
        assert stored['requiredSkills'] == ['illustrator']
        assert stored['applicants'] == [] and stored['progressReports'] == []
        assert stored['paymentRequestsCount'] == 0

    def test_students_cannot_post(self, marketplace):
        with pytest.raises(PermissionDeniedError):
            gigs.create_gig(STUDENT, NEW_GIG)

    @pytest.mark.parametrize('changes,code', [
        ({'title': '  '}, 'TitleRequired'),
        ({'description': ''}, 'DescriptionRequired'),
        ({'budget': '0'}, 'InvalidBudget'),
        ({'budget': 'lots'}, 'InvalidBudget'),
        ({'deadline': None}, 'DeadlineRequired'),
        ({'deadline': 'next week'}, 'InvalidDate'),
        ({'numberOfReports': 11, 'reportDeadlines': []}, 'InvalidNumberOfReports'),
        ({'reportDeadlines': ['2030-02-01T00:00:00Z']}, 'InvalidReportDeadlines'),
        ({'reportDeadlines': ['2030-02-15T00:00:00Z', '2030-02-01T00:00:00Z']}, 'InvalidReportDeadlines'),
        ({'reportDeadlines': ['2030-02-01T00:00:00Z', '2030-04-01T00:00:00Z']}, 'InvalidReportDeadlines'),
    ])
    def test_validation(self, marketplace, changes, code):
        with pytest.raises(ValidationFailedError) as exc:
            gigs.create_gig(CLIENT, {**NEW_GIG, **changes})
        assert exc.value.code == code


class TestUpdateGig:
    """Tests for update_gig."""

    def test_edit_open_gig(self, seed_gig, marketplace):
        seed_gig()
        gigs.update_gig(CLIENT, 'gig-1', {'title': 'New title', 'budget': '2000'})

        stored = marketplace.load(config.GIGS_TABLE, 'gig-1')
        assert stored['title'] == 'New title'
        assert stored['budget'] == Decimal('2000')
        assert stored['version'] == 2

    def test_listing_locked_once_in_progress(self, seed_gig):
        seed_gig(status=GigStatus.IN_PROGRESS, selected=STUDENT.user_id)
        with pytest.raises(InvalidStateError) as exc:
            gigs.update_gig(CLIENT, 'gig-1', {'title': 'Too late'})
        assert exc.value.code == 'GigNotEditable'

    def test_shared_link_notifies_selected_student(self, seed_gig, marketplace):
        seed_gig(status=GigStatus.IN_PROGRESS, selected=STUDENT.user_id)
        gigs.update_gig(CLIENT, 'gig-1', {'sharedResourceLink': 'https://drive.example/brief'})

        assert marketplace.load(config.GIGS_TABLE, 'gig-1')['sharedResourceLink'] == 'https://drive.example/brief'
        assert marketplace.notifications_for(STUDENT.user_id, NotificationType.GIG_STATUS_UPDATE)

    def test_non_owner(self, seed_gig):
        seed_gig()
        with pytest.raises(PermissionDeniedError):
            gigs.update_gig(OTHER_CLIENT, 'gig-1', {'title': 'Mine now'})


class TestCloseGig:
    """Tests for close_gig."""

    def test_client_closes_in_progress_gig(self, seed_gig, marketplace):
        seed_gig(status=GigStatus.IN_PROGRESS, selected=STUDENT.user_id)

        gigs.close_gig(CLIENT, 'gig-1')

        stored = marketplace.load(config.GIGS_TABLE, 'gig-1')
        assert stored['status'] == GigStatus.CLOSED
        assert stored['closedReason'] == 'closed_by_client'
        assert len(marketplace.notifications_for(STUDENT.user_id, NotificationType.GIG_STATUS_UPDATE)) == 1

    def test_admin_closes_any_gig(self, seed_gig, marketplace):
        seed_gig()
        gigs.close_gig(ADMIN, 'gig-1')
        assert marketplace.load(config.GIGS_TABLE, 'gig-1')['closedReason'] == 'closed_by_admin'

    def test_awaiting_payout_cannot_close(self, seed_gig):
        seed_gig(status=GigStatus.AWAITING_PAYOUT, selected=STUDENT.user_id)
        with pytest.raises(InvalidStateError) as exc:
            gigs.close_gig(CLIENT, 'gig-1')
        assert exc.value.code == 'WrongStatus'

    def test_closed_is_terminal(self, seed_gig):
        seed_gig(status=GigStatus.CLOSED)
        with pytest.raises(InvalidStateError) as exc:
            gigs.close_gig(CLIENT, 'gig-1')
        assert exc.value.code == 'GigClosed'


class TestGigView:
    """Tests for get_gig_view."""

    def test_net_payout_is_derived(self, seed_gig, marketplace):
        seed_gig()

        view = gigs.get_gig_view(STUDENT, 'gig-1')

        assert view['netPayout'] == Decimal('980.00')
        assert view['commission'] == Decimal('20.00')
        assert 'netPayout' not in marketplace.load(config.GIGS_TABLE, 'gig-1')

    def test_outsiders_see_only_their_own_application(self, seed_gig):
        seed_gig(status=GigStatus.IN_PROGRESS, selected=STUDENT.user_id, sharedResourceLink='https://x')

        view = gigs.get_gig_view(OTHER_STUDENT, 'gig-1')

        assert view['applicants'] == []
        assert 'progressReports' not in view
        assert 'sharedResourceLink' not in view

    def test_participants_get_download_links(self, seed_gig, marketplace):
        gig = make_gig(status=GigStatus.IN_PROGRESS, selected=STUDENT.user_id,
                       report_statuses=[ReportStatus.PENDING_REVIEW])
        gig['progressReports'][0]['studentSubmission']['attachments'] = [{'url': 'https://elsewhere.example/a.png'}]
        marketplace.seed(config.GIGS_TABLE, gig)

        view = gigs.get_gig_view(CLIENT, 'gig-1')

        attachment = view['progressReports'][0]['studentSubmission']['attachments'][0]
        assert attachment['downloadUrl'] == 'https://elsewhere.example/a.png'
        # stored record is untouched
        stored = marketplace.load(config.GIGS_TABLE, 'gig-1')
        assert 'downloadUrl' not in stored['progressReports'][0]['studentSubmission']['attachments'][0]

    def test_banned_clients_gig_hidden_from_non_admins(self, seed_gig, marketplace):
        seed_gig()
        marketplace.tables[config.USERS_TABLE][CLIENT.user_id]['isBanned'] = True

        with pytest.raises(NotFoundError):
            gigs.get_gig_view(STUDENT, 'gig-1')
        assert gigs.get_gig_view(ADMIN, 'gig-1')['gigId'] == 'gig-1'
