from datetime import datetime, timezone
from typing import List, Optional, Tuple
import logging
import re

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import User
from referrals.commissions import CommissionPayout, distribute_commissions
from referrals.referral_tree import ReferralTreeHelper
from referrals.settings import get_affiliation_fee
from utils import validate_email, validate_phone


logger = logging.getLogger(__name__)

TRIGGER_REGISTRATION = "registration"
TRIGGER_ACTIVATION = "activation"


class RegistrationError(Exception):
    """Base registration exception"""
    pass


class DuplicateUserError(RegistrationError):
    pass


class AccountNotFoundError(Exception):
    pass


def generate_referral_code(username: str) -> str:
    return re.sub(r'\s+', '', username or '').upper()


def commission_trigger() -> str:
    return current_app.config.get("COMMISSION_TRIGGER", TRIGGER_REGISTRATION)


def register_user(username: str, email: str, password: str, name: str = None,
                  phone: str = None, country: str = None, country_code: str = None,
                  currency: str = None, referral_code: str = None) -> Tuple[User, List[CommissionPayout]]:
    """
    Create an inactive account and, when commissions are paid at registration,
    credit the upline. A referral code that matches nobody is accepted silently.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    phone = (phone or "").strip() or None
    referred_by_code = (referral_code or "").strip().upper() or None

    if not username or not email or not password:
        raise RegistrationError("Username, email and password are required")
    if not validate_email(email):
        raise RegistrationError("Invalid email address")
    if phone and not validate_phone(phone):
        raise RegistrationError("Invalid phone number")
    if len(password) < 6:
        raise RegistrationError("Password must be at least 6 characters")

    own_code = generate_referral_code(username)
    is_valid, message = ReferralTreeHelper.validate_referral_code(own_code, referred_by_code)
    if not is_valid:
        raise RegistrationError(message)

    exists = User.query.filter(
        (User.email == email) | (User.username == username) | (User.referral_code == own_code)
    ).first()
    if exists:
        raise DuplicateUserError("Email or username already taken")

    user = User(
        username=username,
        name=name,
        email=email,
        phone=phone,
        country=country,
        country_code=country_code,
        currency=currency or 'XOF',
        referral_code=own_code,
        referred_by_code=referred_by_code,
        account_active=False,
        affiliation_fee=get_affiliation_fee(),
        balance=0,
        withdrawable_balance=0,
        youtube_balance=0,
        tiktok_balance=0,
        welcome_bonus=0,
        total_withdrawals=0,
    )
    user.set_password(password)

    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateUserError("Email or username already taken")

    logger.info(f"Registered user {user.id} ({user.referral_code}), referred_by={referred_by_code}")

    payouts = []
    if referred_by_code and commission_trigger() == TRIGGER_REGISTRATION:
        payouts = distribute_commissions(referred_by_code, user.id)

    return user, payouts


def activate_account(user_id: int, payment_method: str = None,
                     transaction_reference: str = None) -> Tuple[User, List[CommissionPayout]]:
    """Mark the affiliation fee as paid."""
    user = db.session.get(User, user_id)
    if user is None:
        raise AccountNotFoundError(f"User {user_id} not found")

    if user.account_active:
        return user, []

    user.account_active = True
    user.activated_at = datetime.now(timezone.utc)
    user.payment_method = payment_method
    user.transaction_reference = transaction_reference
    db.session.commit()

    current_app.logger.info(f"Account {user.id} activated via {payment_method} ({transaction_reference})")

    payouts = []
    if user.referred_by_code and commission_trigger() == TRIGGER_ACTIVATION:
        payouts = distribute_commissions(user.referred_by_code, user.id)

    return user, payouts


def set_account_status(user_id: int, active: bool) -> User:
    """
    Admin toggle. A deactivated account stops counting towards its
    recruiters' bonus targets straight away.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise AccountNotFoundError(f"User {user_id} not found")

    user.account_active = bool(active)
    if active and user.activated_at is None:
        user.activated_at = datetime.now(timezone.utc)
    db.session.commit()
    current_app.logger.info(f"Account {user.id} status set to active={user.account_active}")
    return user


def promote_to_admin(identifier: str) -> Optional[User]:
    """Give the admin role to the user matching an email, username or phone."""
    user = User.query.filter(
        (User.email == identifier.lower()) | (User.username == identifier) | (User.phone == identifier)
    ).first()
    if user is None:
        return None

    user.role = "admin"
    db.session.commit()
    logger.info(f"User {user.id} promoted to admin")
    return user
