from dataclasses import dataclass
from decimal import Decimal
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from logger import ledger_logger
from models import ClaimedBonus, BonusType
from referrals.ledger import atomic, credit_balances
from referrals.referral_tree import ReferralTreeHelper
from referrals.settings import get_bonus_settings


logger = logging.getLogger(__name__)


class BonusClaimError(Exception):
    """Base bonus claim exception"""
    pass


class BonusAlreadyClaimedError(BonusClaimError):
    pass


class BonusNotEligibleError(BonusClaimError):
    pass


@dataclass
class BonusEligibility:
    current_referrals: int
    bonus_eligible: bool
    bonus_amount: Decimal
    remaining_referrals: int
    target_referrals: int
    bonus_disabled: bool

    def to_dict(self):
        return {
            "currentReferrals": self.current_referrals,
            "bonusEligible": self.bonus_eligible,
            "bonusAmount": float(self.bonus_amount),
            "remainingReferrals": self.remaining_referrals,
            "targetReferrals": self.target_referrals,
            "bonusDisabled": self.bonus_disabled,
        }


def evaluate_bonus(user_id: int) -> BonusEligibility:
    """
    Compare the user's active direct referrals with the configured target.

    Only level-1 edges count, and only while the referred account is active
    at query time: a referral deactivated after the edge was written drops
    out. When the bonus is switched off globally nothing is counted.
    """
    settings = get_bonus_settings()
    target = settings.referral_target

    if not settings.bonus_enabled:
        return BonusEligibility(
            current_referrals=0,
            bonus_eligible=False,
            bonus_amount=settings.welcome_bonus_amount,
            remaining_referrals=target,
            target_referrals=target,
            bonus_disabled=True,
        )

    try:
        current = ReferralTreeHelper.count_active_direct_referrals(user_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error calculating bonus eligibility for user {user_id}: {e}")
        return BonusEligibility(
            current_referrals=0,
            bonus_eligible=False,
            bonus_amount=settings.welcome_bonus_amount,
            remaining_referrals=target,
            target_referrals=target,
            bonus_disabled=False,
        )

    return BonusEligibility(
        current_referrals=current,
        bonus_eligible=current >= target,
        bonus_amount=settings.welcome_bonus_amount,
        remaining_referrals=max(0, target - current),
        target_referrals=target,
        bonus_disabled=False,
    )


def has_claimed_bonus(user_id: int, bonus_type: str = BonusType.WELCOME.value) -> bool:
    return ClaimedBonus.query.filter_by(user_id=user_id, type=bonus_type).first() is not None


def claim_welcome_bonus(user_id: int) -> ClaimedBonus:
    """
    Record the one-time welcome bonus and credit it to welcome_bonus, balance
    and withdrawable_balance in a single transaction.
    """
    if has_claimed_bonus(user_id):
        raise BonusAlreadyClaimedError("Welcome bonus already claimed")

    eligibility = evaluate_bonus(user_id)
    if eligibility.bonus_disabled:
        raise BonusNotEligibleError("Bonus system is disabled")
    if not eligibility.bonus_eligible:
        raise BonusNotEligibleError(
            f"{eligibility.remaining_referrals} more active referrals needed"
        )

    claim = ClaimedBonus(
        user_id=user_id,
        type=BonusType.WELCOME.value,
        amount=eligibility.bonus_amount,
    )
    try:
        with atomic():
            db.session.add(claim)
            db.session.flush()
            credit_balances(user_id, eligibility.bonus_amount, include_welcome=True)
    except IntegrityError:
        raise BonusAlreadyClaimedError("Welcome bonus already claimed")

    ledger_logger.info(f"WELCOME_BONUS user={user_id} amount={eligibility.bonus_amount}")
    return claim
