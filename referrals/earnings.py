from decimal import Decimal
from typing import Dict, Optional
import logging

from sqlalchemy import func

from extensions import db
from models import User, Referral, UserFormation


logger = logging.getLogger(__name__)


def _referral_earnings(user_id: int) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(Referral.commission), 0))
        .filter(Referral.referrer_id == user_id, Referral.paid.is_(True))
        .scalar()
    )
    return Decimal(str(total or 0))


def _formation_earnings(user_id: int) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(UserFormation.rewards_amount), 0))
        .filter(UserFormation.user_id == user_id)
        .scalar()
    )
    return Decimal(str(total or 0))


def calculate_total_earnings(user_id: Optional[int]) -> Decimal:
    """
    Total of every earning source: video channels, welcome bonus, formation
    rewards and paid referral commissions.
    """
    if not user_id:
        return Decimal('0')

    user = db.session.get(User, user_id)
    if user is None:
        return Decimal('0')

    total = (
        Decimal(str(user.tiktok_balance or 0))
        + Decimal(str(user.youtube_balance or 0))
        + Decimal(str(user.welcome_bonus or 0))
        + _formation_earnings(user_id)
        + _referral_earnings(user_id)
    )
    logger.debug(f"Total earnings for user {user_id}: {total}")
    return total


def get_earnings_breakdown(user_id: Optional[int]) -> Optional[Dict]:
    if not user_id:
        return None

    user = db.session.get(User, user_id)
    if user is None:
        return {"total": 0.0, "breakdown": {}}

    breakdown = {
        "tiktok": float(user.tiktok_balance or 0),
        "youtube": float(user.youtube_balance or 0),
        "welcome": float(user.welcome_bonus or 0),
        "formations": float(_formation_earnings(user_id)),
        "referrals": float(_referral_earnings(user_id)),
    }
    return {
        "total": float(calculate_total_earnings(user_id)),
        "breakdown": breakdown,
    }
