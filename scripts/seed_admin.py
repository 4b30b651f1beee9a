#!/usr/bin/env python3
"""Create the first admin account.

Admins cannot sign up through the public API, so the initial one is seeded here.

Usage:
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD='...' ADMIN_NAME='Site Admin' \
        python scripts/seed_admin.py
"""

import logging
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.auth.jwt import TokenService
from src.auth.passwords import PasswordHasher
from src.auth.service import AuthService
from src.config.logging_config import configure_logging
from src.config.settings import get_settings
from src.notifications.mailer import get_mailer
from src.utils.errors import AppError

logger = logging.getLogger("seed_admin")


def seed_admin() -> int:
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    name = os.getenv("ADMIN_NAME", "Administrator")
    phone = os.getenv("ADMIN_PHONE")
    if not email or not password:
        logger.error("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        return 1

    settings = get_settings()
    auth = AuthService(settings, TokenService(settings), PasswordHasher(settings.BCRYPT_ROUNDS), get_mailer())
    try:
        admin = auth.create_admin(email, password, name, phone=phone)
    except AppError as exc:
        logger.error("Could not create admin %s: %s", email, exc.message)
        return 1

    logger.info("Admin created: id=%s email=%s. Change the password after first login.", admin["id"], admin["email"])
    return 0


if __name__ == "__main__":
    configure_logging(get_settings().LOG_LEVEL)
    sys.exit(seed_admin())
