# ==========================================================================================================
# -------------- Configuration file for the referral earnings Flask application ----------------------------
# ==========================================================================================================
import os
from dotenv import load_dotenv


if os.environ.get("FLASK_ENV") != "production":
    load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:

    SECRET_KEY = os.getenv("SECRET_KEY")
    if not SECRET_KEY:
        raise ValueError("SECRET_KEY must be set in production")

    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = os.getenv("DEBUG", "False").lower() in ("true", "1", "t")
    TESTING = False

    _database_url = os.getenv("DATABASE_URL")
    if not _database_url:
        _database_url = f"sqlite:///{os.path.join(basedir, 'instance', 'referral.db')}"

    if _database_url.startswith("postgres://"):
        _database_url = _database_url.replace("postgres://", "postgresql+pg8000://", 1)

    SQLALCHEMY_DATABASE_URI = _database_url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    } if not _database_url.startswith("sqlite") else {"pool_pre_ping": True}

    LOG_DIR = os.getenv("LOG_DIR", "logs")

    # "registration" pays the upline when the account is created,
    # "activation" waits for the affiliation fee to be confirmed.
    COMMISSION_TRIGGER = os.getenv("COMMISSION_TRIGGER", "registration").lower()

    MIN_MAIN_WITHDRAWAL = int(os.getenv("MIN_MAIN_WITHDRAWAL", "2500"))
    MIN_VIDEO_WITHDRAWAL = int(os.getenv("MIN_VIDEO_WITHDRAWAL", "500"))

    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5000")


class TestingConfig(Config):

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    COMMISSION_TRIGGER = "registration"
    APP_BASE_URL = "http://testserver"
