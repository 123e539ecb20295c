import os
import logging
from flask import Flask, session, g
from config import Config
from logger import setup_logger
from models import User
from extensions import db, login_manager, init_extensions
from referrals.config import CommissionConfigHelper


# --------------------------------------------------------------------------------------------------------
#       Application factory
# --------------------------------------------------------------------------------------------------------
def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.debug and not app.testing:
        app.config.update(
            SESSION_COOKIE_SECURE=True,
            SESSION_COOKIE_HTTPONLY=True,
            REMEMBER_COOKIE_SECURE=True,
            REMEMBER_COOKIE_HTTPONLY=True,
        )

    setup_logging(app)

    # ----------------------------------------------------------------------------------------------------------------------------------
    # SQLite instance directory
    # --------------------------------------------------------------------------------------------------------------------------------------------
    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///") and ":memory:" not in database_uri:
        os.makedirs(os.path.dirname(database_uri.replace("sqlite:///", "", 1)), exist_ok=True)

    # --------------------------------------------------------------------------------------------------------------------------
    # Initialize extensions
    # ----------------------------------------------------------------------------------------------------------------------------
    init_extensions(app)

    register_blueprints(app)

    # ------------------------------------------------------------------------------------------------------------------------
    # Flask-Login user_loader - inside create_app to avoid circular imports
    # ------------------------------------------------------------------------------------------------------------------------
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # ----------------------
    # Global before_request
    # ----------------------
    @app.before_request
    def load_logged_in_user():
        g.user = None
        user_id = session.get("user_id")
        if user_id:
            g.user = db.session.get(User, user_id)

    @app.route("/healthz")
    def healthz():
        return {"status": "ok"}, 200

    if app.config.get("COMMISSION_TRIGGER") not in ("registration", "activation"):
        raise ValueError(f"Invalid COMMISSION_TRIGGER: {app.config.get('COMMISSION_TRIGGER')}")

    summary = CommissionConfigHelper.get_commission_schedule_summary()
    app.logger.info(
        f"Commission schedule {summary['distribution']} paid at {app.config['COMMISSION_TRIGGER']}"
    )

    return app


def setup_logging(app):
    """File logging for app.logger and the package loggers, plus console output in debug."""
    logs_dir = app.config.get("LOG_DIR", "logs")
    if not os.path.exists(logs_dir):
        os.makedirs(logs_dir, exist_ok=True)

    file_handler = logging.FileHandler(os.path.join(logs_dir, 'app.log'), mode='a', encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
    ))
    file_handler.setLevel(logging.INFO)

    app.logger.handlers.clear()
    app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)

    if app.debug:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        app.logger.addHandler(console_handler)

    # Parents of the module loggers under referrals/ and blueprints/
    for name in ("referrals", "blueprints"):
        setup_logger(name, log_file=os.path.join(logs_dir, f"{name}.log"))


def register_blueprints(app):
    """Register all blueprints"""
    from blueprints.auth import bp as auth_bp
    from blueprints.profile import bp as profile_bp
    from blueprints.admin import admin_bp
    from blueprints.payments import bp as payment_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(payment_bp)
