# backend/backoffice/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # bcrypt cost factor; tests lower it to keep hashing fast
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # "log" records every document and succeeds, "simulated" fails at random
    DELIVERY_BACKEND = os.environ.get("DELIVERY_BACKEND", "log")
    DELIVERY_SUCCESS_RATE = float(os.environ.get("DELIVERY_SUCCESS_RATE", "0.7"))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    }
