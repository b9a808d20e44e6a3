#!/usr/bin/env python3
"""
Seed the initial superadmin, the default configuracoes and reset
placeholder password hashes
"""

import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from quatrelati.database import SessionLocal, init_db
from quatrelati.logging_config import setup_logging
from quatrelati.utils.seed import seed_defaults, seed_passwords

logger = logging.getLogger(__name__)


def main():
    """Main function to seed the database with initial data"""
    setup_logging()
    init_db()

    db = SessionLocal()
    try:
        seed_defaults(db)
        seed_passwords(db)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Seeding failed: {str(e)}")
        sys.exit(1)
    finally:
        db.close()

    logger.info("Seed data created")


if __name__ == "__main__":
    main()
