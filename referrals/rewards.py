from decimal import Decimal, InvalidOperation
from typing import List, Set
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import Video, VideoWatch, Formation, UserFormation, BalanceSource
from referrals.ledger import atomic, credit_channel_reward, credit_withdrawable


logger = logging.getLogger(__name__)


class RewardError(Exception):
    """Base reward exception"""
    pass


class RewardNotFoundError(RewardError):
    pass


class AlreadyRewardedError(RewardError):
    pass


class RewardValidationError(RewardError):
    pass


def _reward_amount(value, field) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise RewardValidationError(f"{field} must be a number")
    if not amount.is_finite() or amount < 0:
        raise RewardValidationError(f"{field} must be zero or more")
    return amount


def create_video(title: str, platform: str, earnings, url: str = None) -> Video:
    if not title:
        raise RewardValidationError("title is required")
    if platform not in (BalanceSource.YOUTUBE.value, BalanceSource.TIKTOK.value):
        raise RewardValidationError("platform must be youtube or tiktok")

    video = Video(title=title, url=url, platform=platform, earnings=_reward_amount(earnings, "earnings"))
    with atomic():
        db.session.add(video)
    logger.info(f"Video created: {title} ({platform}, {video.earnings})")
    return video


def create_formation(title: str, rewards_amount, file_url: str = None) -> Formation:
    if not title:
        raise RewardValidationError("title is required")

    formation = Formation(title=title, file_url=file_url,
                          rewards_amount=_reward_amount(rewards_amount, "rewards_amount"))
    with atomic():
        db.session.add(formation)
    logger.info(f"Formation created: {title} ({formation.rewards_amount})")
    return formation


def list_videos(platform: str = None) -> List[Video]:
    query = Video.query.filter_by(is_active=True)
    if platform:
        query = query.filter_by(platform=platform)
    return query.order_by(Video.id.desc()).all()


def watched_video_ids(user_id: int) -> Set[int]:
    rows = db.session.query(VideoWatch.video_id).filter(VideoWatch.user_id == user_id).all()
    return {video_id for (video_id,) in rows}


def record_video_watch(user_id: int, video_id: int) -> VideoWatch:
    """
    Pay a video's earnings into the matching channel balance. The watch row and
    the credit commit together; the (user, video) unique key pays each video once.
    """
    video = db.session.get(Video, video_id)
    if video is None or not video.is_active:
        raise RewardNotFoundError(f"Video {video_id} not found")

    amount = Decimal(str(video.earnings or 0))
    platform = video.platform
    watch = VideoWatch(user_id=user_id, video_id=video_id, earnings_claimed=amount)
    try:
        with atomic():
            db.session.add(watch)
            db.session.flush()
            if amount > 0:
                credit_channel_reward(user_id, platform, amount)
    except IntegrityError:
        raise AlreadyRewardedError("Video already watched")

    logger.info(f"Video {video_id} watched by user {user_id}, {amount} credited to {platform}")
    return watch


def list_formations() -> List[Formation]:
    return Formation.query.filter_by(is_active=True).order_by(Formation.id.desc()).all()


def _bump_download_count(formation_id: int) -> None:
    db.session.execute(
        update(Formation)
        .where(Formation.id == formation_id)
        .values(download_count=Formation.download_count + 1)
        .execution_options(synchronize_session=False)
    )


def record_formation_download(user_id: int, formation_id: int) -> UserFormation:
    """
    Record a formation download and pay its reward into withdrawable_balance,
    once per (user, formation). Repeat downloads only bump the counter.
    """
    formation = db.session.get(Formation, formation_id)
    if formation is None or not formation.is_active:
        raise RewardNotFoundError(f"Formation {formation_id} not found")

    amount = Decimal(str(formation.rewards_amount or 0))
    download = UserFormation(user_id=user_id, formation_id=formation_id, rewards_amount=amount)
    try:
        with atomic():
            db.session.add(download)
            db.session.flush()
            _bump_download_count(formation_id)
            if amount > 0:
                credit_withdrawable(user_id, amount)
    except IntegrityError:
        with atomic():
            _bump_download_count(formation_id)
        raise AlreadyRewardedError("Formation reward already paid")

    logger.info(f"Formation {formation_id} downloaded by user {user_id}, reward {amount}")
    return download
