import os

from dotenv import load_dotenv
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy

load_dotenv()

db = SQLAlchemy()
login = LoginManager()


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///procurement.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # IVA general; a tenant may override it with its own rate
    DEFAULT_TAX_RATE = os.getenv("DEFAULT_TAX_RATE", "0.21")
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "ARS")

    TOKEN_MAX_AGE = _int_env("TOKEN_MAX_AGE", 8 * 3600)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    ADMIN_ENABLED = _bool_env("ADMIN_ENABLED", True)
