#!/usr/bin/env python3
"""
Create every Quatrelati table that does not exist yet
"""

import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from quatrelati.config import settings
from quatrelati.database import init_db
from quatrelati.logging_config import setup_logging

logger = logging.getLogger(__name__)


def main():
    setup_logging()
    logger.info(f"Creating tables on {settings.DATABASE_URL.split('@')[-1]}")
    try:
        init_db()
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {str(e)}")
        sys.exit(1)
    logger.info("Database initialized")


if __name__ == "__main__":
    main()
