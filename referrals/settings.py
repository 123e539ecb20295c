# referrals/settings.py
"""
Bonus settings provider.

The settings live in a single ``bonus_settings`` row edited from the admin
console. Reads never fail: a missing table, an empty table or a broken
connection all fall back to the hardcoded defaults so registration and the
dashboard keep working. Settings are fetched fresh on every call.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation
from typing import Optional
import logging

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import BonusSettings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BonusSettingsValue:
    welcome_bonus_amount: Decimal
    referral_target: int
    bonus_enabled: bool
    affiliation_fee: Decimal

    def to_dict(self):
        data = asdict(self)
        data['welcome_bonus_amount'] = float(self.welcome_bonus_amount)
        data['affiliation_fee'] = float(self.affiliation_fee)
        return data


DEFAULT_BONUS_SETTINGS = BonusSettingsValue(
    welcome_bonus_amount=Decimal('700'),
    referral_target=15,
    bonus_enabled=True,
    affiliation_fee=Decimal('4000'),
)


@dataclass(frozen=True)
class SettingsLoadResult:
    settings: BonusSettingsValue
    from_defaults: bool
    error: Optional[str] = None


class SettingsValidationError(ValueError):
    pass


def _from_row(row: BonusSettings) -> BonusSettingsValue:
    # Null or zero numeric fields fall back one by one; only an explicit False disables the bonus.
    return BonusSettingsValue(
        welcome_bonus_amount=Decimal(str(row.welcome_bonus_amount)) if row.welcome_bonus_amount else DEFAULT_BONUS_SETTINGS.welcome_bonus_amount,
        referral_target=int(row.referral_target) if row.referral_target else DEFAULT_BONUS_SETTINGS.referral_target,
        bonus_enabled=row.bonus_enabled is not False,
        affiliation_fee=Decimal(str(row.affiliation_fee)) if row.affiliation_fee else DEFAULT_BONUS_SETTINGS.affiliation_fee,
    )


def load_bonus_settings() -> SettingsLoadResult:
    """Read the singleton settings row, falling back to defaults. Never raises."""
    try:
        row = db.session.query(BonusSettings).order_by(BonusSettings.id).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"Bonus settings unavailable, using defaults: {e}")
        return SettingsLoadResult(DEFAULT_BONUS_SETTINGS, from_defaults=True, error=str(e))

    if row is None:
        logger.info("No bonus settings row found, using defaults")
        return SettingsLoadResult(DEFAULT_BONUS_SETTINGS, from_defaults=True)

    return SettingsLoadResult(_from_row(row), from_defaults=False)


def get_bonus_settings() -> BonusSettingsValue:
    return load_bonus_settings().settings


def get_affiliation_fee() -> Decimal:
    return get_bonus_settings().affiliation_fee


def _parse_decimal(name, value) -> Decimal:
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise SettingsValidationError(f"{name} must be a number")
    if not parsed.is_finite() or parsed <= 0:
        raise SettingsValidationError(f"{name} must be positive")
    return parsed


def save_bonus_settings(welcome_bonus_amount=None, referral_target=None,
                        bonus_enabled=None, affiliation_fee=None) -> BonusSettingsValue:
    """
    Upsert the singleton row from the admin console.
    Fields left as None keep their stored value.
    """
    changes = {}
    if welcome_bonus_amount is not None:
        changes['welcome_bonus_amount'] = _parse_decimal("welcome_bonus_amount", welcome_bonus_amount)

    if referral_target is not None:
        try:
            target = int(referral_target)
        except (TypeError, ValueError):
            raise SettingsValidationError("referral_target must be an integer")
        if target < 1:
            raise SettingsValidationError("referral_target must be at least 1")
        changes['referral_target'] = target

    if bonus_enabled is not None:
        changes['bonus_enabled'] = bool(bonus_enabled)

    if affiliation_fee is not None:
        changes['affiliation_fee'] = _parse_decimal("affiliation_fee", affiliation_fee)

    row = db.session.query(BonusSettings).order_by(BonusSettings.id).first()
    if row is None:
        row = BonusSettings(
            welcome_bonus_amount=DEFAULT_BONUS_SETTINGS.welcome_bonus_amount,
            referral_target=DEFAULT_BONUS_SETTINGS.referral_target,
            bonus_enabled=DEFAULT_BONUS_SETTINGS.bonus_enabled,
            affiliation_fee=DEFAULT_BONUS_SETTINGS.affiliation_fee,
        )
        db.session.add(row)

    for field, value in changes.items():
        setattr(row, field, value)

    db.session.commit()
    saved = _from_row(row)
    logger.info(f"Bonus settings saved: {saved}")
    return saved
