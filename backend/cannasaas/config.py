# backend/cannasaas/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cannasaas.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Jurisdiction tax tables. Rates are decimal strings so they never pass
    # through binary floating point.
    DEFAULT_TAX_JURISDICTION = os.environ.get("DEFAULT_TAX_JURISDICTION", "NY")
    TAX_JURISDICTIONS = {
        "NY": {"sales": "0.08875", "excise": "0.09"},
        "NJ": {"sales": "0.06625", "excise": "0.0"},
        "CT": {"sales": "0.0635", "excise": "0.03"},
    }

    # Compliance policy knobs (tenant policy decides whether they apply)
    ID_VERIFICATION_MAX_AGE_DAYS = int(os.environ.get("ID_VERIFICATION_MAX_AGE_DAYS", "90"))
    MIN_AGE_RECREATIONAL = 21
    MIN_AGE_MEDICAL = 18

    NOTIFICATION_BATCH_SIZE = int(os.environ.get("NOTIFICATION_BATCH_SIZE", "100"))
