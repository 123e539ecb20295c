# models.py - Flask-SQLAlchemy models for users, referral edges and the bonus ledger
from datetime import datetime, timezone
from enum import Enum
from flask_login import UserMixin
from sqlalchemy import UniqueConstraint, Index, CheckConstraint, text
from extensions import db
from werkzeug.security import check_password_hash, generate_password_hash

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class BalanceSource(Enum):
    MAIN = "main"
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"


class WithdrawalStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class BonusType(Enum):
    WELCOME = "welcome"


def _money(value) -> float:
    return float(value) if value is not None else 0.0


# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime(timezone=True), default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=db.func.now(),
                           onupdate=db.func.now())

# ===========================================================
# USER MODEL
# ===========================================================

class User(UserMixin, db.Model, BaseMixin):
    """Core user entity. Owns its balances and its referral code."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    name = db.Column(db.String(150), nullable=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(10), nullable=True)
    country_code = db.Column(db.String(40), nullable=True)
    currency = db.Column(db.String(10), default='XOF')
    role = db.Column(db.String(20), nullable=False, default="user", index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    referral_code = db.Column(db.String(80), unique=True, nullable=False)  # User's own referral code
    referred_by_code = db.Column(db.String(80), nullable=True, index=True)  # Recruiter's code, None for organic signups

    account_active = db.Column(db.Boolean, nullable=False, default=False)  # Flipped once the affiliation fee is paid
    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_method = db.Column(db.String(50), nullable=True)
    transaction_reference = db.Column(db.String(128), nullable=True)
    affiliation_fee = db.Column(db.Numeric(18, 2), nullable=True)

    balance = db.Column(db.Numeric(18, 2), nullable=False, default=0, server_default=text("0"))
    withdrawable_balance = db.Column(db.Numeric(18, 2), nullable=False, default=0, server_default=text("0"))
    youtube_balance = db.Column(db.Numeric(18, 2), nullable=False, default=0, server_default=text("0"))
    tiktok_balance = db.Column(db.Numeric(18, 2), nullable=False, default=0, server_default=text("0"))
    welcome_bonus = db.Column(db.Numeric(18, 2), nullable=False, default=0, server_default=text("0"))
    total_withdrawals = db.Column(db.Numeric(18, 2), nullable=False, default=0, server_default=text("0"))

    referrals = db.relationship('Referral', back_populates='referrer', foreign_keys='Referral.referrer_id',
                                lazy='dynamic')
    withdrawals = db.relationship('Withdrawal', back_populates='user', lazy='dynamic')

    __table_args__ = (
        CheckConstraint(
            'referred_by_code IS NULL OR referred_by_code <> referral_code',
            name='chk_no_self_referral'
        ),
    )

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def referral_link(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/register?ref={self.referral_code}"

    def to_dict(self, base_url: str = None):
        """Serialize user for JSON responses."""
        result = {
            "id": self.id,
            "role": self.role,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "country": self.country,
            "countryCode": self.country_code,
            "currency": self.currency,
            "referralCode": self.referral_code,
            "referredByCode": self.referred_by_code,
            "accountActive": self.account_active,
            "activatedAt": self.activated_at.isoformat() if self.activated_at else None,
            "balance": _money(self.balance),
            "withdrawableBalance": _money(self.withdrawable_balance),
            "youtubeBalance": _money(self.youtube_balance),
            "tiktokBalance": _money(self.tiktok_balance),
            "welcomeBonus": _money(self.welcome_bonus),
            "totalWithdrawals": _money(self.total_withdrawals),
            "memberSince": self.created_at.isoformat() if self.created_at else None,
        }
        if base_url:
            result["referralLink"] = self.referral_link(base_url)
        return result

    def summary(self):
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "account_active": bool(self.account_active),
        }

    def __repr__(self):
        return f'<User {self.id} {self.referral_code}>'

# ===========================================================
# REFERRAL EDGES
# ===========================================================

class Referral(db.Model):
    """Append-only commission edge: one row per (referrer, referred, level)."""
    __tablename__ = 'referrals'

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    referred_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    level = db.Column(db.Integer, nullable=False)  # 1-3
    commission = db.Column(db.Numeric(18, 2), nullable=False)
    paid = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    referrer = db.relationship('User', foreign_keys=[referrer_id], back_populates='referrals')
    referred_user = db.relationship('User', foreign_keys=[referred_id])

    __table_args__ = (
        UniqueConstraint('referrer_id', 'referred_id', 'level', name='uq_referral_edge'),
        CheckConstraint('level >= 1 AND level <= 3', name='chk_referral_level_range'),
        Index('idx_referral_referrer_level', 'referrer_id', 'level'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "referrer_id": self.referrer_id,
            "referred_id": self.referred_id,
            "level": self.level,
            "commission": _money(self.commission),
            "paid": self.paid,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

# ===========================================================
# BONUS SETTINGS & CLAIMS
# ===========================================================

class BonusSettings(db.Model, BaseMixin):
    """Singleton row edited from the admin console."""
    __tablename__ = 'bonus_settings'

    id = db.Column(db.Integer, primary_key=True)
    welcome_bonus_amount = db.Column(db.Numeric(18, 2), nullable=True)
    referral_target = db.Column(db.Integer, nullable=True)
    bonus_enabled = db.Column(db.Boolean, nullable=True, default=True)
    affiliation_fee = db.Column(db.Numeric(18, 2), nullable=True)


class ClaimedBonus(db.Model):
    __tablename__ = 'claimed_bonuses'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(30), nullable=False, default=BonusType.WELCOME.value)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint('user_id', 'type', name='uq_claimed_bonus_user_type'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "amount": _money(self.amount),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

# ===========================================================
# WITHDRAWALS
# ===========================================================

class Withdrawal(db.Model, BaseMixin):
    __tablename__ = 'withdrawals'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), nullable=False, index=True)
    amount = db.Column(db.Numeric(precision=18, scale=2), nullable=False)
    country = db.Column(db.String(40), nullable=False)
    method = db.Column(db.String(40), nullable=False)  # mobile-money operator
    phone = db.Column(db.String(20), nullable=False)
    source = db.Column(db.String(20), nullable=False, default=BalanceSource.MAIN.value)
    status = db.Column(db.String(20), nullable=False, default=WithdrawalStatus.PENDING.value, index=True)
    requested_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    admin_confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship('User', back_populates='withdrawals')

    __table_args__ = (
        Index('idx_withdrawal_user_status', 'user_id', 'status'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": _money(self.amount),
            "country": self.country,
            "method": self.method,
            "phone": self.phone,
            "source": self.source,
            "status": self.status,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }



# ===========================================================
# VIDEO AND FORMATION REWARDS
# ===========================================================

class Video(db.Model, BaseMixin):
    """A rewarded video. `platform` names the channel balance it pays into."""
    __tablename__ = 'videos'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    url = db.Column(db.String(500), nullable=True)
    platform = db.Column(db.String(20), nullable=False)  # youtube | tiktok
    earnings = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("platform IN ('youtube', 'tiktok')", name='chk_video_platform'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "platform": self.platform,
            "earnings": _money(self.earnings),
            "is_active": self.is_active,
        }


class VideoWatch(db.Model):
    """One rewarded watch per (user, video)."""
    __tablename__ = 'video_watches'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    video_id = db.Column(db.Integer, db.ForeignKey('videos.id', ondelete='CASCADE'), nullable=False)
    earnings_claimed = db.Column(db.Numeric(18, 2), nullable=False)
    watched_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint('user_id', 'video_id', name='uq_video_watch_user_video'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "video_id": self.video_id,
            "earnings_claimed": _money(self.earnings_claimed),
            "watched_at": self.watched_at.isoformat() if self.watched_at else None,
        }


class Formation(db.Model, BaseMixin):
    """Downloadable training material; rewards_amount is paid once per user."""
    __tablename__ = 'formations'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    file_url = db.Column(db.String(500), nullable=True)
    rewards_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    download_count = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "file_url": self.file_url,
            "rewards_amount": _money(self.rewards_amount),
            "download_count": self.download_count,
            "is_active": self.is_active,
        }


class UserFormation(db.Model):
    __tablename__ = 'user_formations'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    formation_id = db.Column(db.Integer, db.ForeignKey('formations.id', ondelete='CASCADE'), nullable=False)
    rewards_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    downloaded_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint('user_id', 'formation_id', name='uq_user_formation'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "formation_id": self.formation_id,
            "rewards_amount": _money(self.rewards_amount),
            "downloaded_at": self.downloaded_at.isoformat() if self.downloaded_at else None,
        }
