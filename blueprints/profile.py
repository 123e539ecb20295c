
from flask import Blueprint, jsonify, request, session, current_app
from models import User, db
from referrals.referral_tree import ReferralTreeHelper
from referrals.eligibility import (evaluate_bonus, claim_welcome_bonus, has_claimed_bonus,
                                   BonusAlreadyClaimedError, BonusNotEligibleError)
from referrals.earnings import get_earnings_breakdown
from referrals.rewards import (list_videos, watched_video_ids, record_video_watch, list_formations,
                               record_formation_download, RewardNotFoundError, AlreadyRewardedError)
from utils import login_required_json


bp = Blueprint('profile', __name__, url_prefix="")

# ----------------------------------------------------------------------------------
# 1️⃣ DASHBOARD DATA FOR THE LOGGED-IN USER
# ----------------------------------------------------------------------------------
@bp.route("/api/user/profile", methods=["GET"])
@login_required_json
def get_user_profile():
    user = db.session.get(User, session["user_id"])
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify(user.to_dict(base_url=current_app.config.get("APP_BASE_URL"))), 200


@bp.route("/api/user/referrals", methods=["GET"])
@login_required_json
def get_user_referrals():
    referrals = ReferralTreeHelper.get_user_referrals(session["user_id"])
    return jsonify({"referrals": referrals, "count": len(referrals)}), 200


@bp.route("/api/user/referral-counts", methods=["GET"])
@login_required_json
def get_referral_counts():
    return jsonify(ReferralTreeHelper.get_active_referral_counts(session["user_id"])), 200


#=======================================================================================
#      WELCOME BONUS
#=======================================================================================
@bp.route("/api/user/bonus", methods=["GET"])
@login_required_json
def get_bonus_status():
    user_id = session["user_id"]
    data = evaluate_bonus(user_id).to_dict()
    data["bonusClaimed"] = has_claimed_bonus(user_id)
    return jsonify(data), 200


@bp.route("/api/user/bonus/claim", methods=["POST"])
@login_required_json
def claim_bonus():
    user_id = session["user_id"]
    try:
        claim = claim_welcome_bonus(user_id)
    except BonusAlreadyClaimedError as e:
        return jsonify({"error": str(e)}), 409
    except BonusNotEligibleError as e:
        return jsonify({"error": str(e)}), 400

    user = db.session.get(User, user_id)
    current_app.logger.info(f"Welcome bonus claimed by user {user_id}")
    return jsonify({
        "success": True,
        "claim": claim.to_dict(),
        "user": user.to_dict(),
    }), 200


@bp.route('/api/user/earnings', methods=['GET'])
@login_required_json
def get_current_user_earnings():
    return jsonify(get_earnings_breakdown(session["user_id"])), 200


#=======================================================================================
#      VIDEO AND FORMATION REWARDS
#=======================================================================================
@bp.route("/api/videos", methods=["GET"])
@login_required_json
def get_videos():
    watched = watched_video_ids(session["user_id"])
    videos = []
    for video in list_videos(request.args.get("platform")):
        data = video.to_dict()
        data["watched"] = video.id in watched
        videos.append(data)
    return jsonify({"videos": videos}), 200


@bp.route("/api/videos/<int:video_id>/watch", methods=["POST"])
@login_required_json
def watch_video(video_id):
    user_id = session["user_id"]
    try:
        watch = record_video_watch(user_id, video_id)
    except RewardNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AlreadyRewardedError as e:
        return jsonify({"error": str(e)}), 409

    user = db.session.get(User, user_id)
    return jsonify({"success": True, "watch": watch.to_dict(), "user": user.to_dict()}), 200


@bp.route("/api/formations", methods=["GET"])
@login_required_json
def get_formations():
    return jsonify({"formations": [f.to_dict() for f in list_formations()]}), 200


@bp.route("/api/formations/<int:formation_id>/download", methods=["POST"])
@login_required_json
def download_formation(formation_id):
    """Repeat downloads are allowed; only the first one pays the reward."""
    user_id = session["user_id"]
    try:
        download = record_formation_download(user_id, formation_id)
        rewarded = float(download.rewards_amount)
    except RewardNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AlreadyRewardedError:
        rewarded = 0.0

    user = db.session.get(User, user_id)
    return jsonify({"success": True, "rewarded": rewarded, "user": user.to_dict()}), 200
