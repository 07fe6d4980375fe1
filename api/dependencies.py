"""
API dependencies for dependency injection
"""

from datetime import datetime
from typing import Generator, Optional

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from domain.models import get_db_session
from services.scheduling_service import SchedulingService


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI routes.

    Usage:
        @router.get("/example")
        def example(db: Session = Depends(get_db)):
            # Use db session here
            pass
    """
    yield from get_db_session()


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Scheduling coordinator bound to the request's session"""
    return SchedulingService(db)


def get_now(
    now: Optional[datetime] = Query(
        None, description="Evaluation time (local, naive); defaults to server time"
    ),
) -> datetime:
    return now or datetime.now()
