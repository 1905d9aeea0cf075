#!/usr/bin/env python3
"""
Database seeding script for the LaunchRocket chatbot.

Creates the tables and a demo admin (admin / admin123) with projects, tasks,
checklist items and activities, for webhook and CLI testing.
"""

import logging

from launchbot.core.logging import setup_logging
from launchbot.db.base import Base
from launchbot.db.seed import DEMO_PASSWORD, DEMO_USERNAME, seed_demo_data
from launchbot.db.session import db_transaction, get_engine

setup_logging()
logger = logging.getLogger(__name__)


def main() -> None:
    """Main seeding function."""
    logger.info("Starting database seeding...")
    Base.metadata.create_all(bind=get_engine())

    with db_transaction() as session:
        user = seed_demo_data(session)
        user_id = user.id

    logger.info("Database seeding completed (user id=%s)", user_id)
    logger.info("Next steps:")
    logger.info("1. Point the Meta webhook to: https://your-domain.com/api/chatbot/webhook")
    logger.info("2. Chat locally: python -m launchbot.chatbot.cli")
    logger.info("3. Log in with %s / %s", DEMO_USERNAME, DEMO_PASSWORD)


if __name__ == "__main__":
    main()
