# referrals/config.py
from decimal import Decimal
from typing import Dict, Any, Tuple
import logging


logger = logging.getLogger(__name__)


class CommissionConfigHelper:
    """
    Fixed three-level commission schedule paid out of each affiliation:
    Level 1: 1800, Level 2: 900, Level 3: 500 (base currency units).
    The amounts do not scale with the affiliation fee actually paid.
    """

    COMMISSION_SCHEDULE = {
        1: Decimal('1800'),
        2: Decimal('900'),
        3: Decimal('500'),
    }

    MAX_LEVEL = 3

    @staticmethod
    def get_commission(level: int) -> Decimal:
        """Commission for a level, zero outside 1..MAX_LEVEL."""
        if not isinstance(level, int) or level < 1 or level > CommissionConfigHelper.MAX_LEVEL:
            return Decimal('0')
        return CommissionConfigHelper.COMMISSION_SCHEDULE[level]

    @staticmethod
    def total_commission() -> Decimal:
        return sum(CommissionConfigHelper.COMMISSION_SCHEDULE.values(), Decimal('0'))

    @staticmethod
    def get_commission_schedule_summary() -> Dict[str, Any]:
        """Summary of the payout per level, used by the admin console"""
        return {
            'distribution': {
                level: float(amount)
                for level, amount in CommissionConfigHelper.COMMISSION_SCHEDULE.items()
            },
            'total': float(CommissionConfigHelper.total_commission()),
            'max_level': CommissionConfigHelper.MAX_LEVEL,
        }

    @staticmethod
    def validate_commission_schedule(affiliation_fee) -> Tuple[bool, str]:
        """Check that one affiliation can fund the whole upline payout"""
        try:
            fee = Decimal(str(affiliation_fee))
        except Exception:
            return False, f"Invalid affiliation fee: {affiliation_fee!r}"

        total = CommissionConfigHelper.total_commission()
        if fee <= 0:
            return False, "Affiliation fee must be positive"
        if total > fee:
            return False, f"Commission total {total} exceeds affiliation fee {fee}"
        return True, f"Commission schedule valid: {total} of {fee} paid across {CommissionConfigHelper.MAX_LEVEL} levels"


def get_commission(level: int) -> Decimal:
    return CommissionConfigHelper.get_commission(level)
