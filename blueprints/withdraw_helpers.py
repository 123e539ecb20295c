from decimal import Decimal
from datetime import datetime, timezone
import logging
from typing import Tuple, Optional

from flask import current_app

from models import db, User, Withdrawal, WithdrawalStatus, BalanceSource
from referrals.ledger import atomic, debit_source, refund_source, InsufficientBalanceError, UserNotFoundError


logger = logging.getLogger(__name__)

# ==========================================================
#                  CONFIGURATION
# ==========================================================
class WithdrawalConfig:
    DEFAULT_MIN_MAIN_WITHDRAWAL = Decimal("2500")
    DEFAULT_MIN_VIDEO_WITHDRAWAL = Decimal("500")

    # Mobile-money operators accepted per country
    COUNTRY_OPERATORS = {
        'benin': ['mtn-benin'],
        'burkina-faso': ['moov-burkina', 'orange-burkina'],
        'cameroon': ['mtn-cameroon', 'orange-cameroon'],
        'congo-brazza': ['mtn-congo', 'airtel-congo'],
        'drc-congo': ['orange-drc', 'vodacom-drc', 'airtel-drc'],
        'cote-ivoire': ['mtn-ci', 'wave-ci', 'moov-ci', 'orange-ci'],
        'gabon': ['airtel-gabon', 'libertis-gabon'],
        'togo': ['moov-togo', 'tmoney-togo'],
        'kenya': ['mpesa-kenya'],
        'rwanda': ['mtn-rwanda'],
        'senegal': ['free-senegal', 'wave-senegal'],
        'niger': ['airtel-niger', 'mtn-niger', 'mauritel-niger'],
    }

    ADMIN_STATUSES = {
        WithdrawalStatus.COMPLETED.value,
        WithdrawalStatus.CONFIRMED.value,
        WithdrawalStatus.REJECTED.value,
    }

    # Admin review flow: pay out or reject a pending request, then confirm a payout.
    # Anything not listed here, including every move out of rejected or confirmed, is refused.
    ALLOWED_TRANSITIONS = {
        WithdrawalStatus.PENDING.value: {
            WithdrawalStatus.COMPLETED.value,
            WithdrawalStatus.REJECTED.value,
        },
        WithdrawalStatus.COMPLETED.value: {
            WithdrawalStatus.CONFIRMED.value,
        },
    }

    @staticmethod
    def minimum_for(source: str) -> Decimal:
        if source == BalanceSource.MAIN.value:
            return Decimal(str(current_app.config.get(
                "MIN_MAIN_WITHDRAWAL", WithdrawalConfig.DEFAULT_MIN_MAIN_WITHDRAWAL)))
        return Decimal(str(current_app.config.get(
            "MIN_VIDEO_WITHDRAWAL", WithdrawalConfig.DEFAULT_MIN_VIDEO_WITHDRAWAL)))

    @staticmethod
    def available_for(user: User, source: str) -> Decimal:
        if source == BalanceSource.YOUTUBE.value:
            return Decimal(str(user.youtube_balance or 0))
        if source == BalanceSource.TIKTOK.value:
            return Decimal(str(user.tiktok_balance or 0))
        return Decimal(str(user.withdrawable_balance or 0))

# ==========================================================
#                  EXCEPTIONS
# ==========================================================
class WithdrawalException(Exception):
    """Base withdrawal exception"""
    pass


class ValidationError(WithdrawalException):
    pass


class WithdrawalNotFoundError(WithdrawalException):
    pass


class InvalidStatusTransition(WithdrawalException):
    pass

# ==========================================================
#                  WITHDRAWAL VALIDATOR
# ==========================================================
class WithdrawalValidator:
    @staticmethod
    def validate_withdrawal_request(user: Optional[User], amount, source: str, country: str,
                                    operator: str, phone: str) -> Tuple[bool, str]:
        """
        Validate a payout request against the user's balance for the chosen channel.
        Returns: (is_valid, message)
        """
        # 1️⃣ Required fields
        if amount is None or not country or not operator or not phone:
            return False, "Amount, country, operator and phone are required"

        if source not in {s.value for s in BalanceSource}:
            return False, f"Unknown balance source: {source}"

        # 2️⃣ Operator must serve the country
        operators = WithdrawalConfig.COUNTRY_OPERATORS.get(country)
        if operators is None:
            return False, f"Unsupported country: {country}"
        if operator not in operators:
            return False, f"Operator {operator} is not available in {country}"

        # 3️⃣ Amount validation
        try:
            amount_dec = Decimal(str(amount))
        except Exception:
            return False, "Invalid amount format"

        if not amount_dec.is_finite() or amount_dec <= 0:
            return False, "Enter a valid amount"

        minimum = WithdrawalConfig.minimum_for(source)
        if amount_dec < minimum:
            return False, f"Minimum withdrawal is {minimum}"

        # 4️⃣ User and balance
        if user is None:
            return False, "User not found"

        if amount_dec > WithdrawalConfig.available_for(user, source):
            return False, "Insufficient balance"

        return True, "Validation passed"

# ==========================================================
#                  WITHDRAWAL PROCESSOR
# ==========================================================
class WithdrawalProcessor:
    @staticmethod
    def request_withdrawal(user_id: int, amount, source: str, country: str,
                           operator: str, phone: str) -> Withdrawal:
        """
        Record a pending withdrawal and take the amount out of the chosen
        channel balance in one transaction.
        """
        user = db.session.get(User, user_id)
        is_valid, message = WithdrawalValidator.validate_withdrawal_request(
            user, amount, source, country, operator, phone
        )
        if not is_valid:
            raise ValidationError(message)

        amount_dec = Decimal(str(amount))
        withdrawal = Withdrawal(
            user_id=user_id,
            amount=amount_dec,
            country=country,
            method=operator,
            phone=phone.strip(),
            source=source,
            status=WithdrawalStatus.PENDING.value,
            requested_at=datetime.now(timezone.utc),
        )

        try:
            with atomic():
                db.session.add(withdrawal)
                debit_source(user_id, source, amount_dec)
        except (InsufficientBalanceError, UserNotFoundError) as e:
            raise ValidationError(str(e))

        logger.info(f"Withdrawal {withdrawal.id} requested: user={user_id} amount={amount_dec} source={source}")
        return withdrawal

    @staticmethod
    def update_status(withdrawal_id: int, new_status: str) -> Withdrawal:
        """
        Admin decision on a withdrawal: pending -> completed | rejected, then
        completed -> confirmed. Only rejecting a pending request gives the money
        back to the channel it came from; a completed payout has left the platform.
        """
        if new_status not in WithdrawalConfig.ADMIN_STATUSES:
            raise ValidationError(f"Invalid status: {new_status}")

        withdrawal = db.session.get(Withdrawal, withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError(f"Withdrawal {withdrawal_id} not found")

        allowed = WithdrawalConfig.ALLOWED_TRANSITIONS.get(withdrawal.status, set())
        if new_status not in allowed:
            raise InvalidStatusTransition(
                f"Cannot move withdrawal {withdrawal_id} from {withdrawal.status} to {new_status}"
            )

        now = datetime.now(timezone.utc)
        with atomic():
            if withdrawal.status == WithdrawalStatus.PENDING.value and new_status == WithdrawalStatus.REJECTED.value:
                refund_source(withdrawal.user_id, withdrawal.source, withdrawal.amount)
            if new_status == WithdrawalStatus.CONFIRMED.value:
                withdrawal.admin_confirmed_at = now
            withdrawal.status = new_status
            withdrawal.processed_at = now

        logger.info(f"Withdrawal {withdrawal_id} set to {new_status}")
        return withdrawal

    @staticmethod
    def history(user_id: int, status: str = None):
        query = Withdrawal.query.filter_by(user_id=user_id)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Withdrawal.requested_at.desc(), Withdrawal.id.desc()).all()

    @staticmethod
    def list_all(status: str = None):
        query = Withdrawal.query
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Withdrawal.requested_at.desc(), Withdrawal.id.desc()).all()
