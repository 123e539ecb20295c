from decimal import Decimal

import pytest

from extensions import db
from models import Formation, VideoWatch
from referrals.ledger import LedgerError, credit_channel_reward
from referrals.rewards import (
    AlreadyRewardedError,
    RewardNotFoundError,
    RewardValidationError,
    create_formation,
    create_video,
    record_formation_download,
    record_video_watch,
)


def _refresh(user):
    db.session.refresh(user)
    return user


def test_channel_reward_stays_locked_below_threshold(make_user):
    user = make_user("viewer", tiktok_balance="300")

    credit_channel_reward(user.id, "tiktok", Decimal("150"))
    db.session.commit()

    _refresh(user)
    assert user.tiktok_balance == Decimal("450")
    assert user.balance == Decimal("150")
    assert user.withdrawable_balance == Decimal("0")


def test_crossing_threshold_unlocks_only_current_reward(make_user):
    user = make_user("viewer", tiktok_balance="450")

    credit_channel_reward(user.id, "tiktok", Decimal("100"))
    db.session.commit()

    _refresh(user)
    assert user.tiktok_balance == Decimal("550")
    assert user.withdrawable_balance == Decimal("100")

    credit_channel_reward(user.id, "tiktok", Decimal("40"))
    db.session.commit()
    assert _refresh(user).withdrawable_balance == Decimal("140")


def test_channel_reward_rejects_main_balance(make_user):
    user = make_user("viewer")

    with pytest.raises(LedgerError):
        credit_channel_reward(user.id, "main", Decimal("10"))


def test_video_watch_pays_once(make_user):
    user = make_user("viewer", youtube_balance="480")
    video = create_video("Intro", "youtube", "50", url="https://youtube.example.com/v/1")

    watch = record_video_watch(user.id, video.id)
    assert watch.earnings_claimed == Decimal("50")

    with pytest.raises(AlreadyRewardedError):
        record_video_watch(user.id, video.id)

    _refresh(user)
    assert user.youtube_balance == Decimal("530")
    assert user.withdrawable_balance == Decimal("50")
    assert VideoWatch.query.filter_by(user_id=user.id).count() == 1


def test_inactive_or_missing_video(make_user):
    user = make_user("viewer")
    video = create_video("Old", "tiktok", "20")
    video.is_active = False
    db.session.commit()

    with pytest.raises(RewardNotFoundError):
        record_video_watch(user.id, video.id)
    with pytest.raises(RewardNotFoundError):
        record_video_watch(user.id, 999)


def test_formation_reward_paid_once(make_user):
    user = make_user("reader")
    formation = create_formation("Guide", "200", file_url="https://files.example.com/guide.pdf")

    record_formation_download(user.id, formation.id)
    with pytest.raises(AlreadyRewardedError):
        record_formation_download(user.id, formation.id)

    assert _refresh(user).withdrawable_balance == Decimal("200")
    assert user.balance == Decimal("0")
    assert db.session.get(Formation, formation.id).download_count == 2


def test_create_validation(app):
    with pytest.raises(RewardValidationError):
        create_video("", "youtube", "10")
    with pytest.raises(RewardValidationError):
        create_video("Clip", "vimeo", "10")
    with pytest.raises(RewardValidationError):
        create_formation("Guide", "-5")
    with pytest.raises(RewardValidationError):
        create_formation("Guide", "lots")


def test_video_endpoints(client, make_user, login):
    user = make_user("viewer")
    video = create_video("Intro", "tiktok", "25")
    login(user)

    listing = client.get("/api/videos?platform=tiktok").get_json()
    assert [(v["id"], v["watched"]) for v in listing["videos"]] == [(video.id, False)]
    assert client.get("/api/videos?platform=youtube").get_json()["videos"] == []

    response = client.post(f"/api/videos/{video.id}/watch")
    assert response.status_code == 200
    assert response.get_json()["user"]["tiktokBalance"] == 25.0

    assert client.post(f"/api/videos/{video.id}/watch").status_code == 409
    assert client.post("/api/videos/999/watch").status_code == 404
    assert client.get("/api/videos").get_json()["videos"][0]["watched"] is True


def test_formation_endpoints(client, make_user, login):
    user = make_user("reader")
    formation = create_formation("Guide", "75")
    login(user)

    assert [f["id"] for f in client.get("/api/formations").get_json()["formations"]] == [formation.id]

    first = client.post(f"/api/formations/{formation.id}/download").get_json()
    again = client.post(f"/api/formations/{formation.id}/download").get_json()
    assert first["rewarded"] == 75.0
    assert again["rewarded"] == 0.0
    assert again["user"]["withdrawableBalance"] == 75.0

    assert client.post("/api/formations/999/download").status_code == 404
    assert client.get("/api/user/earnings").get_json()["breakdown"]["formations"] == 75.0


def test_admin_creates_rewards(client, make_user, login):
    login(make_user("boss", role="admin"))

    response = client.post("/admin/api/videos", json={"title": "Clip", "platform": "youtube", "earnings": 30})
    assert response.status_code == 201
    assert response.get_json()["video"]["earnings"] == 30.0

    response = client.post("/admin/api/formations", json={"title": "Guide", "rewards_amount": "10"})
    assert response.status_code == 201
    assert client.post("/admin/api/videos", json={"title": "Clip", "platform": "vimeo"}).status_code == 400
