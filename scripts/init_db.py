#!/usr/bin/env python3
"""
Initialize the MealSync database
Creates tables and checks the reference tables before the API starts
"""

import sys
import logging
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("init_db")


def init_schema() -> bool:
    """Create all tables and report what exists"""
    logger.info("=" * 60)
    logger.info("Initializing database...")
    logger.info("=" * 60)

    from sqlalchemy import inspect
    from sqlalchemy.exc import SQLAlchemyError

    from domain.models.database import engine, init_database

    try:
        init_database()
    except SQLAlchemyError as e:
        logger.error("Failed to initialize database: %s", e)
        return False

    tables = inspect(engine).get_table_names()
    logger.info("Created %d tables: %s", len(tables), ", ".join(tables))
    return True


def check_reference_tables() -> bool:
    """Load the configured reference tables and make sure every goal is covered"""
    from app.exceptions import ServiceValidationError
    from domain.reference_tables import get_reference_tables

    try:
        tables = get_reference_tables()
        tables.validate_tables()
    except ServiceValidationError as e:
        logger.error("Reference tables rejected: %s", e)
        return False

    logger.info(
        "Reference tables ok: %d goals, %d strategies",
        len(tables.goal_strategies),
        len(tables.strategies),
    )
    return True


def main() -> int:
    ok = check_reference_tables() and init_schema()
    if ok:
        logger.info("MealSync database ready")
        return 0
    logger.error("Initialization failed, check the errors above")
    return 1


if __name__ == "__main__":
    sys.exit(main())
