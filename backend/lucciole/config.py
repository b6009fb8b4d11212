# backend/lucciole/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/lucciole.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///lucciole.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Bare usernames typed at login ("admin") become admin@<LOGIN_DOMAIN>
    LOGIN_DOMAIN = os.environ.get("LOGIN_DOMAIN", "lucciole.app")

    # Report day windows and chart buckets are cut in this zone
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Europe/Rome")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "24"))
    REPORT_CACHE_SECONDS = int(os.environ.get("REPORT_CACHE_SECONDS", "300"))

    # Static identifier -> role table. Real deployments should move this to a role claim.
    ROLE_TABLE = {
        "admin@lucciole.app": "senior-manager",
        "manager@lucciole.app": "manager",
        "cuoco@lucciole.app": "staff-kitchen",
        "bar@lucciole.app": "staff-bar",
    }

    CATEGORIES = (
        "Bar",
        "Ristorante",
        "Biancheria e Prodotti",
        "Piscina",
        "Altro",
    )

    UNITS = ("Pz", "Kg", "Lt", "Pacchi")

    # Staff roles that only see and load one department's warehouse stock
    ROLE_CATEGORY_SCOPE = {
        "staff-kitchen": "Ristorante",
        "staff-bar": "Bar",
    }
