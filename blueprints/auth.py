
from flask import request, jsonify, session, Blueprint, current_app
from flask_login import login_user, logout_user
from models import User
from extensions import db
from referrals.accounts import register_user, RegistrationError, DuplicateUserError
import logging
import traceback


logger = logging.getLogger(__name__)
#==================================================================================================================

bp = Blueprint("auth", __name__, url_prefix="")


#===========================================================================
#      SIGN UP ROUTE.
#==============================================================================
@bp.route("/api/signup", methods=["POST"])
def signup():
    """
    Create a new (inactive) user and credit their upline.
    Commission problems never fail the signup.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Invalid or missing JSON body"}), 400

    try:
        user, payouts = register_user(
            username=data.get("username", ""),
            email=data.get("email", ""),
            password=data.get("password", ""),
            name=data.get("name") or data.get("fullName"),
            phone=data.get("phone"),
            country=data.get("country"),
            country_code=data.get("countryCode"),
            currency=data.get("currency"),
            referral_code=data.get("referralCode"),
        )
    except DuplicateUserError as e:
        return jsonify({"error": str(e)}), 409
    except RegistrationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.error("Signup failed:\n" + traceback.format_exc())
        return jsonify({"error": "Registration failed"}), 500

    session["user_id"] = user.id
    current_app.logger.info(f"SUCCESSFUL REGISTRATION user={user.id} payouts={len(payouts)}")

    return jsonify({
        "status": "success",
        "message": "Signup successful",
        "user": user.to_dict(base_url=current_app.config.get("APP_BASE_URL")),
        "commissions": [p.to_dict() for p in payouts],
    }), 201


#===========================================================================
#      LOGIN / LOGOUT
#==============================================================================
@bp.route("/api/login", methods=["POST"], endpoint="login")
def login():
    data = request.get_json(silent=True) or {}
    identifier = (data.get("email") or data.get("username") or "").strip()
    password = data.get("password", "")

    if not identifier or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = User.query.filter(
        (User.email == identifier.lower()) | (User.username == identifier)
    ).first()

    if not user or not user.check_password(password):
        return jsonify({"error": "Invalid credentials"}), 401

    login_user(user)
    session["user_id"] = user.id
    logger.info(f"User {user.id} logged in")
    return jsonify({"status": "success", "user": user.to_dict()}), 200


@bp.route("/api/logout", methods=["POST"])
def logout():
    logout_user()
    session.pop("user_id", None)
    return jsonify({"status": "success"}), 200
