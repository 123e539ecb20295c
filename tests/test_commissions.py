from decimal import Decimal
import logging

import pytest

from extensions import db
from models import Referral
from referrals import commissions
from referrals.accounts import activate_account, register_user
from referrals.commissions import DUPLICATE, FAILED, PAID, distribute_commissions
from referrals.config import CommissionConfigHelper, get_commission
from referrals.ledger import LedgerError


@pytest.fixture
def chain(make_user):
    """a <- b <- c: c recruited by b, b recruited by a."""
    a = make_user("a")
    b = make_user("b", referred_by=a)
    c = make_user("c", referred_by=b)
    return a, b, c


def _balances(user):
    db.session.refresh(user)
    return user.balance, user.withdrawable_balance


def test_commission_schedule():
    assert get_commission(1) == Decimal("1800")
    assert get_commission(2) == Decimal("900")
    assert get_commission(3) == Decimal("500")
    assert get_commission(0) == Decimal("0")
    assert get_commission(4) == Decimal("0")
    assert CommissionConfigHelper.total_commission() == Decimal("3200")


def test_validate_commission_schedule():
    assert CommissionConfigHelper.validate_commission_schedule(4000)[0] is True
    assert CommissionConfigHelper.validate_commission_schedule(3000)[0] is False
    assert CommissionConfigHelper.validate_commission_schedule("free")[0] is False


def test_three_level_chain_is_paid(chain, make_user):
    a, b, c = chain
    d = make_user("d", referred_by=c)

    payouts = distribute_commissions(c.referral_code, d.id)

    assert [(p.level, p.referrer_id, p.status) for p in payouts] == [
        (1, c.id, PAID),
        (2, b.id, PAID),
        (3, a.id, PAID),
    ]
    assert _balances(c) == (Decimal("1800"), Decimal("1800"))
    assert _balances(b) == (Decimal("900"), Decimal("900"))
    assert _balances(a) == (Decimal("500"), Decimal("500"))

    edges = Referral.query.filter_by(referred_id=d.id).order_by(Referral.level).all()
    assert [(e.referrer_id, e.level, e.commission, e.paid) for e in edges] == [
        (c.id, 1, Decimal("1800"), True),
        (b.id, 2, Decimal("900"), True),
        (a.id, 3, Decimal("500"), True),
    ]


def test_single_level_chain_pays_only_direct_recruiter(make_user):
    root = make_user("root")
    new = make_user("new", referred_by=root)

    payouts = distribute_commissions(root.referral_code, new.id)

    assert [(p.level, p.status) for p in payouts] == [(1, PAID)]
    assert _balances(root) == (Decimal("1800"), Decimal("1800"))
    assert Referral.query.count() == 1


def test_unknown_code_pays_nobody(make_user):
    new = make_user("new")

    assert distribute_commissions("DOESNOTEXIST", new.id) == []
    assert distribute_commissions(None, new.id) == []
    assert Referral.query.count() == 0


def test_repeated_distribution_does_not_double_credit(chain, make_user):
    a, b, c = chain
    d = make_user("d", referred_by=c)

    distribute_commissions(c.referral_code, d.id)
    payouts = distribute_commissions(c.referral_code, d.id)

    assert [p.status for p in payouts] == [DUPLICATE, DUPLICATE, DUPLICATE]
    assert Referral.query.filter_by(referred_id=d.id).count() == 3
    assert _balances(c) == (Decimal("1800"), Decimal("1800"))
    assert _balances(a) == (Decimal("500"), Decimal("500"))


def test_failed_level_does_not_stop_the_others(chain, make_user, monkeypatch):
    a, b, c = chain
    d = make_user("d", referred_by=c)
    failing_id = b.id
    real_credit = commissions.credit_balances

    def flaky_credit(user_id, amount, include_welcome=False):
        if user_id == failing_id:
            raise LedgerError("ledger unavailable")
        return real_credit(user_id, amount, include_welcome)

    monkeypatch.setattr(commissions, "credit_balances", flaky_credit)

    payouts = distribute_commissions(c.referral_code, d.id)

    assert [(p.level, p.status) for p in payouts] == [(1, PAID), (2, FAILED), (3, PAID)]
    assert _balances(c) == (Decimal("1800"), Decimal("1800"))
    assert _balances(b) == (Decimal("0"), Decimal("0"))
    assert _balances(a) == (Decimal("500"), Decimal("500"))
    # the level-2 edge was rolled back with its credit
    assert [e.level for e in Referral.query.filter_by(referred_id=d.id).order_by(Referral.level)] == [1, 3]


def test_registration_pays_upline(app, chain):
    a, b, c = chain

    user, payouts = register_user("dave", "dave@example.com", "secret123", referral_code="c")

    assert user.account_active is False
    assert user.referred_by_code == "C"
    assert user.affiliation_fee == Decimal("4000")
    assert [p.level for p in payouts if p.status == PAID] == [1, 2, 3]
    assert _balances(c)[0] == Decimal("1800")


def test_activation_trigger_defers_payment(app, chain):
    a, b, c = chain
    app.config["COMMISSION_TRIGGER"] = "activation"

    user, payouts = register_user("erin", "erin@example.com", "secret123", referral_code="C")
    assert payouts == []
    assert _balances(c)[0] == Decimal("0")

    user, payouts = activate_account(user.id, payment_method="manual", transaction_reference="TX1")
    assert user.account_active is True
    assert [p.status for p in payouts] == [PAID, PAID, PAID]
    assert _balances(c)[0] == Decimal("1800")

    # a second activation is a no-op
    _, payouts = activate_account(user.id)
    assert payouts == []
    assert _balances(c)[0] == Decimal("1800")


def test_unexpected_error_is_contained(chain, make_user, monkeypatch):
    a, b, c = chain
    d = make_user("d", referred_by=c)

    def broken_credit(user_id, amount, include_welcome=False):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(commissions, "credit_balances", broken_credit)

    assert distribute_commissions(c.referral_code, d.id) == []
    assert _balances(c) == (Decimal("0"), Decimal("0"))
    assert Referral.query.filter_by(referred_id=d.id).count() == 0


def test_failed_level_reaches_the_log_file(chain, make_user, monkeypatch):
    a, b, c = chain
    d = make_user("d", referred_by=c)

    def failing_credit(user_id, amount, include_welcome=False):
        raise LedgerError("ledger unavailable")

    monkeypatch.setattr(commissions, "credit_balances", failing_credit)
    distribute_commissions(c.referral_code, d.id)

    parent = logging.getLogger("referrals")
    files = [h for h in parent.handlers if isinstance(h, logging.FileHandler)]
    assert files
    for handler in files:
        handler.flush()
    with open(files[0].baseFilename, encoding="utf-8") as fh:
        assert "Level 1 commission failed" in fh.read()
