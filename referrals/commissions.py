from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import List, Optional
import logging
import traceback

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from logger import ledger_logger
from models import Referral
from referrals.config import CommissionConfigHelper
from referrals.ledger import LedgerError, atomic, credit_balances
from referrals.referral_tree import ReferralTreeHelper


logger = logging.getLogger(__name__)

PAID = "paid"
DUPLICATE = "duplicate"
FAILED = "failed"


@dataclass
class CommissionPayout:
    level: int
    referrer_id: int
    commission: Decimal
    status: str

    def to_dict(self):
        data = asdict(self)
        data['commission'] = float(self.commission)
        return data


def _pay_level(referrer_id: int, new_user_id: int, level: int, commission: Decimal) -> None:
    """Edge insert and balance credit for one level, committed or rolled back together."""
    with atomic():
        db.session.add(Referral(
            referrer_id=referrer_id,
            referred_id=new_user_id,
            level=level,
            commission=commission,
            paid=True,
        ))
        db.session.flush()
        credit_balances(referrer_id, commission)


def distribute_commissions(referrer_code: Optional[str], new_user_id: int) -> List[CommissionPayout]:
    """
    Pay the fixed commission schedule to up to three ancestors of a new user.

    Best effort: an unknown code pays nobody, a failed level is logged and
    skipped without undoing the levels already paid, and nothing is raised
    to the caller, so account creation never fails because of a payout.
    Each (referrer, referred, level) edge is unique, so a repeated call
    for the same user does not credit anyone twice.
    """
    payouts: List[CommissionPayout] = []

    if not referrer_code:
        return payouts

    try:
        upline = ReferralTreeHelper.walk_upline(referrer_code)
        for level, ancestor in upline:
            referrer_id = ancestor.id
            commission = CommissionConfigHelper.get_commission(level)

            try:
                _pay_level(referrer_id, new_user_id, level, commission)
            except IntegrityError:
                logger.warning(
                    f"Level {level} commission already recorded: referrer={referrer_id} referred={new_user_id}"
                )
                payouts.append(CommissionPayout(level, referrer_id, commission, DUPLICATE))
                continue
            except (SQLAlchemyError, LedgerError) as e:
                logger.error(
                    f"Level {level} commission failed for referrer={referrer_id} referred={new_user_id}: {e}"
                )
                payouts.append(CommissionPayout(level, referrer_id, commission, FAILED))
                continue

            ledger_logger.info(
                f"COMMISSION level={level} referrer={referrer_id} referred={new_user_id} amount={commission}"
            )
            payouts.append(CommissionPayout(level, referrer_id, commission, PAID))

    except Exception:
        db.session.rollback()
        logger.error("Commission distribution aborted:\n" + traceback.format_exc())

    if not payouts:
        logger.info(f"Referral code {referrer_code!r} does not resolve, no commissions for user {new_user_id}")

    return payouts
