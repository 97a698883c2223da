# backend/stockroom/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Reception number allocation: compute-then-insert attempts before giving up
    RECEPTION_NUMBER_ATTEMPTS = int(os.environ.get("RECEPTION_NUMBER_ATTEMPTS", "3"))

    # bcrypt cost factor for operator PINs and hashed admin PINs
    PIN_HASH_ROUNDS = int(os.environ.get("PIN_HASH_ROUNDS", "12"))

    # Absolute session lifetime in hours
    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "24"))
