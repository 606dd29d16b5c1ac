"""Unit tests for the membership state machine."""

from datetime import datetime, timezone

import pytest

from core.exceptions import (
    InvalidStateError,
    LastAdminProtectedError,
    NotAuthorizedError,
)
from domain.entities.group import Group, GroupPrivacy, GroupRole, MembershipState
from domain.entities.join_request import JoinRequest, RequestStatus
from domain.repositories.group_store import Abort
from domain.services import transitions

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def public() -> Group:
    return Group.new("Runners", "creator", GroupPrivacy.PUBLIC)


@pytest.fixture
def private() -> Group:
    return Group.new("Chess", "creator", GroupPrivacy.PRIVATE)


def _with_pending(group: Group, user_id: str) -> Group:
    result = transitions.request_join(group, user_id, NOW)
    assert isinstance(result, Group)
    return result


def _with_member(group: Group, user_id: str, role: GroupRole = GroupRole.MEMBER) -> Group:
    draft = group.clone()
    draft.add_member(user_id, role, NOW)
    return draft


class TestJoinPublic:
    def test_adds_member_and_increments_count(self, public: Group):
        result = transitions.join_public(public, "alice", NOW)

        assert isinstance(result, Group)
        assert result.state_of("alice") == MembershipState.MEMBER
        assert result.member_count == 2
        assert result.members["alice"].role == GroupRole.MEMBER
        assert result.members["alice"].joined_at == NOW

    def test_does_not_mutate_input(self, public: Group):
        transitions.join_public(public, "alice", NOW)

        assert "alice" not in public.members
        assert public.member_count == 1

    def test_existing_member_is_noop(self, public: Group):
        joined = transitions.join_public(public, "alice", NOW)

        result = transitions.join_public(joined, "alice", NOW)

        assert isinstance(result, Abort)
        assert result.reason == transitions.ALREADY_MEMBER
        assert result.group.member_count == 2

    @pytest.mark.parametrize("privacy", [GroupPrivacy.PRIVATE, GroupPrivacy.RESTRICTED])
    def test_gated_group_raises_invalid_state(self, privacy: GroupPrivacy):
        group = Group.new("Gated", "creator", privacy)

        with pytest.raises(InvalidStateError):
            transitions.join_public(group, "alice", NOW)


class TestRequestJoin:
    def test_creates_pending_request(self, private: Group):
        result = transitions.request_join(private, "bob", NOW)

        assert isinstance(result, Group)
        assert result.state_of("bob") == MembershipState.PENDING
        assert result.requests["bob"] == JoinRequest(
            status=RequestStatus.PENDING, requested_at=NOW
        )
        assert result.member_count == 1

    def test_repeat_while_pending_is_noop(self, private: Group):
        pending = _with_pending(private, "bob")

        result = transitions.request_join(pending, "bob", NOW)

        assert isinstance(result, Abort)
        assert result.reason == transitions.ALREADY_PENDING

    def test_member_is_noop(self, private: Group):
        result = transitions.request_join(private, "creator", NOW)

        assert isinstance(result, Abort)
        assert result.reason == transitions.ALREADY_MEMBER

    def test_public_group_raises_invalid_state(self, public: Group):
        with pytest.raises(InvalidStateError):
            transitions.request_join(public, "bob", NOW)

    def test_rejected_user_may_request_again(self, private: Group):
        rejected = transitions.reject(_with_pending(private, "bob"), "bob", "creator", NOW)
        assert isinstance(rejected, Group)

        result = transitions.request_join(rejected, "bob", NOW)

        assert isinstance(result, Group)
        assert result.requests["bob"].status == RequestStatus.PENDING
        assert result.requests["bob"].processed_by is None


class TestCancelRequest:
    def test_marks_request_cancelled(self, private: Group):
        result = transitions.cancel_request(_with_pending(private, "bob"), "bob", "bob", NOW)

        assert isinstance(result, Group)
        assert result.requests["bob"].status == RequestStatus.CANCELLED
        assert result.state_of("bob") == MembershipState.NOT_MEMBER

    def test_repeat_is_noop(self, private: Group):
        cancelled = transitions.cancel_request(_with_pending(private, "bob"), "bob", "bob", NOW)

        result = transitions.cancel_request(cancelled, "bob", "bob", NOW)

        assert isinstance(result, Abort)

    def test_other_actor_is_not_authorized(self, private: Group):
        with pytest.raises(NotAuthorizedError):
            transitions.cancel_request(_with_pending(private, "bob"), "bob", "creator", NOW)

    def test_missing_request_raises_invalid_state(self, private: Group):
        with pytest.raises(InvalidStateError):
            transitions.cancel_request(private, "bob", "bob", NOW)

    def test_accepted_request_raises_invalid_state(self, private: Group):
        approved = transitions.approve(_with_pending(private, "bob"), "bob", "creator", NOW)

        with pytest.raises(InvalidStateError) as exc_info:
            transitions.cancel_request(approved, "bob", "bob", NOW)

        assert exc_info.value.details["request_status"] == "accepted"


class TestApprove:
    def test_moves_request_to_member(self, private: Group):
        result = transitions.approve(_with_pending(private, "bob"), "bob", "creator", NOW)

        assert isinstance(result, Group)
        assert result.state_of("bob") == MembershipState.MEMBER
        assert result.member_count == 2
        request = result.requests["bob"]
        assert request.status == RequestStatus.ACCEPTED
        assert request.processed_by == "creator"
        assert request.processed_at == NOW

    def test_repeat_is_noop(self, private: Group):
        approved = transitions.approve(_with_pending(private, "bob"), "bob", "creator", NOW)

        result = transitions.approve(approved, "bob", "creator", NOW)

        assert isinstance(result, Abort)
        assert result.group.member_count == 2

    def test_non_admin_is_not_authorized(self, private: Group):
        group = _with_member(_with_pending(private, "bob"), "carol")

        with pytest.raises(NotAuthorizedError):
            transitions.approve(group, "bob", "carol", NOW)

    def test_authorization_checked_before_state(self, private: Group):
        with pytest.raises(NotAuthorizedError):
            transitions.approve(private, "nobody", "stranger", NOW)

    def test_no_request_raises_invalid_state(self, private: Group):
        with pytest.raises(InvalidStateError):
            transitions.approve(private, "bob", "creator", NOW)

    @pytest.mark.parametrize("status", [RequestStatus.REJECTED, RequestStatus.CANCELLED])
    def test_closed_request_raises_invalid_state(self, private: Group, status: RequestStatus):
        group = private.clone()
        group.requests["bob"] = JoinRequest(status=status, requested_at=NOW)

        with pytest.raises(InvalidStateError):
            transitions.approve(group, "bob", "creator", NOW)

    def test_admin_with_stale_pending_request_keeps_role(self, private: Group):
        group = _with_member(private, "mod", GroupRole.ADMIN)
        group.requests["mod"] = JoinRequest(status=RequestStatus.PENDING, requested_at=NOW)

        result = transitions.approve(group, "mod", "creator", NOW)

        assert isinstance(result, Group)
        assert result.members["mod"].role == GroupRole.ADMIN
        assert result.admins == {"creator", "mod"}
        assert result.member_count == 2
        assert result.requests["mod"].status == RequestStatus.ACCEPTED


class TestReject:
    def test_marks_request_rejected(self, private: Group):
        result = transitions.reject(_with_pending(private, "bob"), "bob", "creator", NOW)

        assert isinstance(result, Group)
        assert result.requests["bob"].status == RequestStatus.REJECTED
        assert "bob" not in result.members

    def test_repeat_is_noop(self, private: Group):
        rejected = transitions.reject(_with_pending(private, "bob"), "bob", "creator", NOW)

        assert isinstance(transitions.reject(rejected, "bob", "creator", NOW), Abort)

    def test_accepted_request_cannot_be_rejected(self, private: Group):
        approved = transitions.approve(_with_pending(private, "bob"), "bob", "creator", NOW)

        with pytest.raises(InvalidStateError):
            transitions.reject(approved, "bob", "creator", NOW)


class TestLeave:
    def test_member_leaves(self, public: Group):
        group = _with_member(public, "alice")

        result = transitions.leave(group, "alice")

        assert isinstance(result, Group)
        assert result.member_count == 1
        assert result.state_of("alice") == MembershipState.NOT_MEMBER

    def test_non_member_is_noop(self, public: Group):
        result = transitions.leave(public, "alice")

        assert isinstance(result, Abort)
        assert result.reason == transitions.NOT_A_MEMBER

    def test_creator_cannot_leave(self, public: Group):
        with pytest.raises(LastAdminProtectedError) as exc_info:
            transitions.leave(public, "creator")

        assert exc_info.value.details["reason"] == "creator"

    def test_sole_admin_cannot_leave(self, public: Group):
        group = _with_member(public, "alice", GroupRole.ADMIN)
        group.set_role("creator", GroupRole.MEMBER)

        with pytest.raises(LastAdminProtectedError) as exc_info:
            transitions.leave(group, "alice")

        assert exc_info.value.details["reason"] == "last_admin"

    def test_one_of_two_admins_can_leave(self, public: Group):
        group = _with_member(public, "alice", GroupRole.ADMIN)

        result = transitions.leave(group, "alice")

        assert isinstance(result, Group)
        assert result.admins == {"creator"}


class TestRemoveMember:
    def test_admin_removes_member(self, public: Group):
        group = _with_member(public, "alice")

        result = transitions.remove_member(group, "alice", "creator")

        assert isinstance(result, Group)
        assert "alice" not in result.members
        assert result.member_count == 1

    def test_non_admin_is_not_authorized(self, public: Group):
        group = _with_member(_with_member(public, "alice"), "bob")

        with pytest.raises(NotAuthorizedError):
            transitions.remove_member(group, "alice", "bob")

    def test_absent_user_is_noop(self, public: Group):
        assert isinstance(transitions.remove_member(public, "ghost", "creator"), Abort)

    def test_creator_cannot_be_removed(self, public: Group):
        group = _with_member(public, "alice", GroupRole.ADMIN)

        with pytest.raises(LastAdminProtectedError):
            transitions.remove_member(group, "creator", "alice")


class TestRoles:
    def test_promote_adds_admin(self, public: Group):
        group = _with_member(public, "alice")

        result = transitions.promote(group, "alice", "creator")

        assert isinstance(result, Group)
        assert result.admins == {"creator", "alice"}
        assert result.members["alice"].role == GroupRole.ADMIN

    def test_promote_admin_is_noop(self, public: Group):
        result = transitions.promote(public, "creator", "creator")

        assert isinstance(result, Abort)
        assert result.reason == transitions.ALREADY_ADMIN

    def test_promote_non_member_raises_invalid_state(self, public: Group):
        with pytest.raises(InvalidStateError):
            transitions.promote(public, "stranger", "creator")

    def test_demote_returns_admin_to_member(self, public: Group):
        group = _with_member(public, "alice", GroupRole.ADMIN)

        result = transitions.demote(group, "alice", "creator")

        assert isinstance(result, Group)
        assert result.admins == {"creator"}
        assert result.members["alice"].role == GroupRole.MEMBER

    def test_demote_member_is_noop(self, public: Group):
        group = _with_member(public, "alice")

        assert isinstance(transitions.demote(group, "alice", "creator"), Abort)

    def test_demote_creator_is_protected(self, public: Group):
        group = _with_member(public, "alice", GroupRole.ADMIN)

        with pytest.raises(LastAdminProtectedError):
            transitions.demote(group, "creator", "alice")
