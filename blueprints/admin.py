#======================================================================================
#
# ADMIN API
#
#=======================================================================================
from flask import jsonify, request, Blueprint, session, abort, current_app
from functools import wraps
import logging

from extensions import db
from models import User
from referrals.accounts import activate_account, set_account_status, AccountNotFoundError
from referrals.config import CommissionConfigHelper
from referrals.settings import load_bonus_settings, save_bonus_settings, SettingsValidationError
from blueprints.withdraw_helpers import WithdrawalProcessor, WithdrawalException, WithdrawalNotFoundError
from referrals.rewards import create_video, create_formation, RewardValidationError

logger = logging.getLogger(__name__)


def admin_required(f):
    """
    Decorator to restrict access to admin-only routes.
    - Checks that 'user_id' exists in session.
    - Fetches the user from the database (to get current role).
    - Aborts with 403 Forbidden if not an admin.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):

        if "user_id" not in session:
            abort(403)

        user = db.session.get(User, session["user_id"])
        if not user:
            abort(403)

        if user.role != "admin":
            abort(403)

        return f(*args, **kwargs)

    return decorated_function


admin_bp = Blueprint('admin', __name__, url_prefix='/admin/api')


#=======================================================================================
#      BONUS SETTINGS
#=======================================================================================
@admin_bp.route("/bonus-settings", methods=["GET"])
@admin_required
def get_bonus_settings():
    result = load_bonus_settings()
    return jsonify({
        "settings": result.settings.to_dict(),
        "fromDefaults": result.from_defaults,
        "commissionSchedule": CommissionConfigHelper.get_commission_schedule_summary(),
    }), 200


@admin_bp.route("/bonus-settings", methods=["PUT"])
@admin_required
def update_bonus_settings():
    data = request.get_json(silent=True) or {}
    try:
        settings = save_bonus_settings(
            welcome_bonus_amount=data.get("welcome_bonus_amount"),
            referral_target=data.get("referral_target"),
            bonus_enabled=data.get("bonus_enabled"),
            affiliation_fee=data.get("affiliation_fee"),
        )
    except SettingsValidationError as e:
        return jsonify({"error": str(e)}), 400

    is_valid, message = CommissionConfigHelper.validate_commission_schedule(settings.affiliation_fee)
    if not is_valid:
        current_app.logger.warning(f"Bonus settings saved but {message}")

    return jsonify({"settings": settings.to_dict(), "warning": None if is_valid else message}), 200


#=======================================================================================
#      USERS
#=======================================================================================
@admin_bp.route("/users/<int:user_id>/activate", methods=["POST"])
@admin_required
def activate_user(user_id):
    """Confirm the affiliation fee for a user (manual or gateway-confirmed payment)."""
    data = request.get_json(silent=True) or {}
    try:
        user, payouts = activate_account(
            user_id,
            payment_method=data.get("paymentMethod", "manual"),
            transaction_reference=data.get("transactionId", ""),
        )
    except AccountNotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({
        "user": user.to_dict(),
        "commissions": [p.to_dict() for p in payouts],
    }), 200


@admin_bp.route("/users/<int:user_id>/status", methods=["POST"])
@admin_required
def toggle_user_status(user_id):
    data = request.get_json(silent=True) or {}
    if "active" not in data:
        return jsonify({"error": "'active' is required"}), 400
    try:
        user = set_account_status(user_id, bool(data["active"]))
    except AccountNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"user": user.to_dict()}), 200


#=======================================================================================
#      WITHDRAWALS
#=======================================================================================
@admin_bp.route("/withdrawals", methods=["GET"])
@admin_required
def list_withdrawals():
    withdrawals = WithdrawalProcessor.list_all(request.args.get("status"))
    return jsonify({"withdrawals": [w.to_dict() for w in withdrawals]}), 200


@admin_bp.route("/withdrawals/<int:withdrawal_id>/status", methods=["POST"])
@admin_required
def update_withdrawal_status(withdrawal_id):
    data = request.get_json(silent=True) or {}
    try:
        withdrawal = WithdrawalProcessor.update_status(withdrawal_id, data.get("status"))
    except WithdrawalNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except WithdrawalException as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"withdrawal": withdrawal.to_dict()}), 200


#=======================================================================================
#      VIDEOS AND FORMATIONS
#=======================================================================================
@admin_bp.route("/videos", methods=["POST"])
@admin_required
def add_video():
    data = request.get_json(silent=True) or {}
    try:
        video = create_video(data.get("title"), data.get("platform"), data.get("earnings", 0), data.get("url"))
    except RewardValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"video": video.to_dict()}), 201


@admin_bp.route("/formations", methods=["POST"])
@admin_required
def add_formation():
    data = request.get_json(silent=True) or {}
    try:
        formation = create_formation(data.get("title"), data.get("rewards_amount", 0), data.get("file_url"))
    except RewardValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"formation": formation.to_dict()}), 201
