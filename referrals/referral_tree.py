from typing import Dict, Iterator, List, Optional, Tuple
import logging

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import User, Referral
from referrals.config import CommissionConfigHelper


logger = logging.getLogger(__name__)

MAX_REFERRAL_DEPTH = CommissionConfigHelper.MAX_LEVEL


class ReferralTreeHelper:
    """
    Three-level referral graph built from the referred_by_code back-pointers.
    Walking up resolves codes hop by hop; walking down reads the referral edges.
    """

    @staticmethod
    def find_user_by_referral_code(code: Optional[str]) -> Optional[User]:
        """
        Return the user owning `code`, or None. An unknown code is not an error,
        it just ends the chain at that hop.
        """
        if not code:
            return None
        return User.query.filter_by(referral_code=code.strip()).first()

    @staticmethod
    def walk_upline(referrer_code: Optional[str], max_levels: int = MAX_REFERRAL_DEPTH) -> Iterator[Tuple[int, User]]:
        """
        Yield (level, user) from the direct recruiter upwards. Resolution is lazy,
        so level n+1 is only looked up once the caller is done with level n.
        Stops at the first code that does not resolve and never goes past
        max_levels hops, which also keeps a corrupted cyclic chain bounded.
        """
        code = referrer_code
        for level in range(1, max_levels + 1):
            ancestor = ReferralTreeHelper.find_user_by_referral_code(code)
            if ancestor is None:
                if level > 1:
                    logger.debug(f"Upline ends at level {level - 1}: code {code!r} does not resolve")
                return
            yield level, ancestor
            code = ancestor.referred_by_code
            if not code:
                return

    @staticmethod
    def validate_referral_code(own_code: str, referred_by_code: Optional[str]) -> Tuple[bool, str]:
        """
        Validate the recruiter code a new user submits.
        Returns: (is_valid, error_message)
        """
        if not referred_by_code:
            return True, "No referral code"
        if own_code and referred_by_code.strip().upper() == own_code.strip().upper():
            return False, "Cannot use your own referral code"
        return True, "Valid referral code"

    @staticmethod
    def get_user_referrals(user_id: int) -> List[Dict]:
        """
        All edges where the user is the referrer, newest first, each carrying
        the referred user's current summary.
        """
        try:
            rows = (
                db.session.query(Referral, User)
                .outerjoin(User, Referral.referred_id == User.id)
                .filter(Referral.referrer_id == user_id)
                .order_by(Referral.created_at.desc(), Referral.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error fetching referrals for user {user_id}: {str(e)}")
            return []

        referrals = []
        for edge, referred in rows:
            data = edge.to_dict()
            if referred is not None:
                data['referred_user'] = referred.summary()
            else:
                data['referred_user'] = {
                    'id': edge.referred_id,
                    'name': f"User {edge.referred_id}",
                    'username': f"user{edge.referred_id}",
                    'email': None,
                    'account_active': False,
                }
            referrals.append(data)
        return referrals

    @staticmethod
    def get_active_referral_counts(user_id: Optional[int]) -> Dict[str, int]:
        """
        Per-level count of referred users that are active right now.
        Display only; bonus eligibility has its own level-1 query.
        """
        counts = {f"level{level}": 0 for level in range(1, MAX_REFERRAL_DEPTH + 1)}
        if not user_id:
            return counts

        try:
            rows = (
                db.session.query(Referral.level, func.count(Referral.id))
                .join(User, Referral.referred_id == User.id)
                .filter(
                    Referral.referrer_id == user_id,
                    User.account_active.is_(True),
                )
                .group_by(Referral.level)
                .all()
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error counting active referrals for user {user_id}: {str(e)}")
            return counts

        for level, count in rows:
            key = f"level{level}"
            if key in counts:
                counts[key] = count
        return counts

    @staticmethod
    def count_active_direct_referrals(user_id: int) -> int:
        """Level-1 referrals whose referred user is currently active"""
        return (
            db.session.query(func.count(Referral.id))
            .join(User, Referral.referred_id == User.id)
            .filter(
                Referral.referrer_id == user_id,
                Referral.level == 1,
                User.account_active.is_(True),
            )
            .scalar()
        ) or 0
