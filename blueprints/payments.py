from flask import Blueprint, request, jsonify, session, current_app
from sqlalchemy.exc import SQLAlchemyError
import logging

from models import BalanceSource
from utils import login_required_json, parse_amount
from .withdraw_helpers import (
    WithdrawalProcessor,
    WithdrawalConfig,
    WithdrawalException,
)


logger = logging.getLogger(__name__)

bp = Blueprint("payments", __name__, url_prefix="")


@bp.route("/api/withdrawals", methods=["POST"])
@login_required_json
def withdraw():
    """
    Queue a mobile-money withdrawal for admin processing.
    The amount leaves the chosen balance immediately and comes back if rejected.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request must be JSON"}), 400

    user_id = session["user_id"]
    amount = parse_amount(data.get("amount"))
    if amount is None:
        return jsonify({"error": "Enter a valid amount"}), 400

    logger.info(f"WITHDRAW PROCESSING STARTED: user={user_id} amount={amount} source={data.get('source')}")

    try:
        withdrawal = WithdrawalProcessor.request_withdrawal(
            user_id,
            amount,
            data.get("source", BalanceSource.MAIN.value),
            data.get("country"),
            data.get("operator") or data.get("method"),
            data.get("phone") or "",
        )
    except WithdrawalException as e:
        return jsonify({"error": str(e)}), 400
    except SQLAlchemyError as e:
        current_app.logger.error(f"Withdrawal persistence error for user {user_id}: {e}")
        return jsonify({"error": "Withdrawal processing failed"}), 500

    return jsonify({
        "success": True,
        "message": "Withdrawal request submitted successfully",
        "withdrawal": withdrawal.to_dict(),
    }), 201


@bp.route("/api/withdrawals", methods=["GET"])
@login_required_json
def withdrawal_history():
    withdrawals = WithdrawalProcessor.history(session["user_id"], request.args.get("status"))
    return jsonify({"withdrawals": [w.to_dict() for w in withdrawals]}), 200


@bp.route("/api/withdrawals/limits", methods=["GET"])
def withdrawal_limits():
    return jsonify({
        "minimums": {
            source.value: float(WithdrawalConfig.minimum_for(source.value))
            for source in BalanceSource
        },
        "operators": WithdrawalConfig.COUNTRY_OPERATORS,
    }), 200
