"""Lock Audit — pure tests for the at-rest slot/lock invariant checker.

Tests cover:
    - A clean pending swap produces no violations
    - Each rule reports the entity it found broken
"""

from types import SimpleNamespace
from uuid import uuid4

from slotswap.core.lock_audit import find_lock_violations


def _slot(owner_id=None, status="offerable", lock_ref=None):
    return SimpleNamespace(
        id=uuid4(), owner_id=owner_id or uuid4(), status=status, lock_ref=lock_ref,
    )


def _request(requester_slot, target_slot, status="pending"):
    return SimpleNamespace(
        id=uuid4(),
        requester_slot_id=requester_slot.id,
        target_slot_id=target_slot.id,
        status=status,
    )


def _locked_pair():
    mine, theirs = _slot(), _slot()
    request = _request(mine, theirs)
    for slot in (mine, theirs):
        slot.status, slot.lock_ref = "locked", request.id
    return mine, theirs, request


def _rules(violations):
    return {v.rule for v in violations}


def test_empty_stores_are_consistent():
    assert find_lock_violations([], []) == []


def test_pending_swap_with_both_locks_is_consistent():
    mine, theirs, request = _locked_pair()
    assert find_lock_violations([mine, theirs], [request]) == []


def test_locked_without_lock_ref():
    slot = _slot(status="locked")
    violations = find_lock_violations([slot], [])
    assert _rules(violations) == {"locked_iff_lock_ref"}
    assert violations[0].entity_id == str(slot.id)


def test_lock_ref_on_offerable_slot():
    assert _rules(find_lock_violations([_slot(lock_ref=uuid4())], [])) == {
        "locked_iff_lock_ref",
    }


def test_lock_ref_to_missing_request():
    slot = _slot(status="locked", lock_ref=uuid4())
    assert _rules(find_lock_violations([slot], [])) == {"lock_ref_pending"}


def test_lock_ref_to_request_not_naming_slot():
    mine, theirs, request = _locked_pair()
    stray = _slot(status="locked", lock_ref=request.id)
    assert _rules(find_lock_violations([mine, theirs, stray], [request])) == {
        "lock_ref_contains_slot",
    }


def test_two_pending_requests_on_one_slot():
    mine, theirs, request = _locked_pair()
    other = _slot()
    second = _request(other, theirs)
    violations = find_lock_violations([mine, theirs, other], [request, second])
    assert "single_pending_per_slot" in _rules(violations)


def test_pending_request_between_same_owner():
    owner = uuid4()
    mine, theirs = _slot(owner), _slot(owner)
    request = _request(mine, theirs)
    for slot in (mine, theirs):
        slot.status, slot.lock_ref = "locked", request.id
    assert _rules(find_lock_violations([mine, theirs], [request])) == {
        "distinct_owners",
    }


def test_terminal_request_still_holding_lock():
    mine, theirs, request = _locked_pair()
    request.status = "rejected"
    violations = find_lock_violations([mine, theirs], [request])
    assert "terminal_request_holds_lock" in _rules(violations)
    assert "lock_ref_pending" in _rules(violations)


def test_violation_to_dict():
    violation = find_lock_violations([_slot(status="locked")], [])[0]
    assert set(violation.to_dict()) == {"rule", "entity_id", "detail"}
