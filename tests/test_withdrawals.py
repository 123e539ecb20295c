from decimal import Decimal

import pytest

from extensions import db
from models import Withdrawal
from blueprints.withdraw_helpers import (
    InvalidStatusTransition,
    ValidationError,
    WithdrawalNotFoundError,
    WithdrawalProcessor,
    WithdrawalValidator,
)
from referrals.ledger import InsufficientBalanceError, UserNotFoundError, credit_balances, debit_source


MOBILE = dict(country="kenya", operator="mpesa-kenya", phone="+254700000000")


def test_validator_rules(make_user):
    user = make_user("payee", withdrawable_balance="3000", youtube_balance="400")
    check = WithdrawalValidator.validate_withdrawal_request

    assert check(user, Decimal("2500"), "main", **MOBILE)[0] is True
    assert check(user, Decimal("2000"), "main", **MOBILE) == (False, "Minimum withdrawal is 2500")
    assert check(user, Decimal("3500"), "main", **MOBILE) == (False, "Insufficient balance")
    assert check(user, Decimal("450"), "youtube", **MOBILE) == (False, "Minimum withdrawal is 500")
    assert check(user, Decimal("2500"), "crypto", **MOBILE)[0] is False
    assert check(user, Decimal("2500"), "main", "kenya", "mtn-benin", "+254700000000")[0] is False
    assert check(user, Decimal("2500"), "main", "atlantis", "mpesa-kenya", "+254700000000")[0] is False
    assert check(None, Decimal("2500"), "main", **MOBILE) == (False, "User not found")


def test_request_debits_balance(make_user):
    user = make_user("payee", balance="5000", withdrawable_balance="5000")

    withdrawal = WithdrawalProcessor.request_withdrawal(user.id, Decimal("3000"), "main", **MOBILE)

    assert withdrawal.status == "pending"
    db.session.refresh(user)
    assert user.withdrawable_balance == Decimal("2000")
    assert user.total_withdrawals == Decimal("3000")
    assert user.balance == Decimal("5000")
    assert [w.id for w in WithdrawalProcessor.history(user.id)] == [withdrawal.id]


def test_request_rejected_when_short(make_user):
    user = make_user("payee", withdrawable_balance="1000")

    with pytest.raises(ValidationError):
        WithdrawalProcessor.request_withdrawal(user.id, Decimal("2500"), "main", **MOBILE)

    assert WithdrawalProcessor.history(user.id) == []


def test_reject_refunds_and_is_final(make_user):
    user = make_user("payee", tiktok_balance="800")
    withdrawal = WithdrawalProcessor.request_withdrawal(user.id, Decimal("600"), "tiktok", **MOBILE)

    WithdrawalProcessor.update_status(withdrawal.id, "rejected")

    db.session.refresh(user)
    assert user.tiktok_balance == Decimal("800")
    assert user.total_withdrawals == Decimal("0")

    with pytest.raises(InvalidStatusTransition):
        WithdrawalProcessor.update_status(withdrawal.id, "completed")


def test_confirm_stamps_admin_time(make_user):
    user = make_user("payee", withdrawable_balance="2500")
    withdrawal = WithdrawalProcessor.request_withdrawal(user.id, Decimal("2500"), "main", **MOBILE)

    completed = WithdrawalProcessor.update_status(withdrawal.id, "completed")
    assert completed.admin_confirmed_at is None

    updated = WithdrawalProcessor.update_status(withdrawal.id, "confirmed")

    assert updated.status == "confirmed"
    assert updated.admin_confirmed_at is not None
    assert updated.processed_at is not None
    assert [w.id for w in WithdrawalProcessor.list_all("confirmed")] == [withdrawal.id]


def test_update_status_errors(make_user):
    with pytest.raises(WithdrawalNotFoundError):
        WithdrawalProcessor.update_status(42, "completed")
    with pytest.raises(ValidationError):
        WithdrawalProcessor.update_status(42, "pending")


def test_ledger_guards(make_user):
    user = make_user("payee", youtube_balance="100")

    with pytest.raises(InsufficientBalanceError):
        debit_source(user.id, "youtube", Decimal("150"))
    with pytest.raises(UserNotFoundError):
        debit_source(999, "youtube", Decimal("1"))
    with pytest.raises(UserNotFoundError):
        credit_balances(999, Decimal("1"))
    db.session.rollback()

    db.session.refresh(user)
    assert user.youtube_balance == Decimal("100")


def test_completed_payout_cannot_be_rejected(make_user):
    user = make_user("payee", withdrawable_balance="3000")
    withdrawal = WithdrawalProcessor.request_withdrawal(user.id, Decimal("3000"), "main", **MOBILE)
    WithdrawalProcessor.update_status(withdrawal.id, "completed")

    with pytest.raises(InvalidStatusTransition):
        WithdrawalProcessor.update_status(withdrawal.id, "rejected")

    db.session.refresh(user)
    assert user.withdrawable_balance == Decimal("0")
    assert user.total_withdrawals == Decimal("3000")
    assert db.session.get(Withdrawal, withdrawal.id).status == "completed"


@pytest.mark.parametrize("path", [
    ["confirmed"],
    ["completed", "completed"],
    ["completed", "confirmed", "rejected"],
    ["completed", "confirmed", "completed"],
    ["rejected", "rejected"],
])
def test_disallowed_transitions(make_user, path):
    user = make_user("payee", withdrawable_balance="2500")
    withdrawal = WithdrawalProcessor.request_withdrawal(user.id, Decimal("2500"), "main", **MOBILE)

    for status in path[:-1]:
        WithdrawalProcessor.update_status(withdrawal.id, status)
    before = db.session.get(Withdrawal, withdrawal.id).status

    with pytest.raises(InvalidStatusTransition):
        WithdrawalProcessor.update_status(withdrawal.id, path[-1])

    assert db.session.get(Withdrawal, withdrawal.id).status == before
    db.session.refresh(user)
    expected = Decimal("2500") if "rejected" in path[:-1] else Decimal("0")
    assert user.withdrawable_balance == expected
