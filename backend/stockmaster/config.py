# backend/stockmaster/config.py
from __future__ import annotations
import os


DEFAULT_LOCATIONS = "Master,Plouis,Bagatelle,Tribecca,Trianon,Rhill,Cascavelle,Rosebelle"


def _split_locations(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockmaster.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockmaster.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Physical shop terminals that hold stock. "Global" is the aggregate view
    # and never holds stock of its own.
    STOCK_LOCATIONS = _split_locations(os.environ.get("STOCK_LOCATIONS", DEFAULT_LOCATIONS))
    GLOBAL_VIEW = "Global"
    MASTER_LOCATION = os.environ.get("MASTER_LOCATION", "Master")

    # Fixed VAT rate in basis points (1500 = 15%); prices are VAT-inclusive
    VAT_RATE_BPS = int(os.environ.get("VAT_RATE_BPS", "1500"))

    DEFAULT_MIN_QUANTITY = int(os.environ.get("DEFAULT_MIN_QUANTITY", "5"))
    GUEST_CUSTOMER_NAME = os.environ.get("GUEST_CUSTOMER_NAME", "Guest")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
