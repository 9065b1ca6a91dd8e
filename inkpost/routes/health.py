"""
Liveness and database readiness probes.
"""

from typing import Any, Dict

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from inkpost import __version__
from inkpost.db import get_session
from inkpost.models import utcnow

router = APIRouter(prefix="/health", tags=["health"])

COUNTED_TABLES = ("users", "posts", "tags", "comments")


def check_database_health() -> Dict[str, str]:
    """
    Run a trivial query against the database.

    Returns:
        ``{"status": "ok"}``, or ``{"status": "down", "error": ...}`` naming
        the failure class without its message
    """
    try:
        with get_session() as db:
            if db.execute(text("SELECT 1")).scalar() == 1:
                return {"status": "ok"}
            return {"status": "down", "error": "Unexpected query result"}
    except SQLAlchemyError as e:
        return {"status": "down", "error": f"Database error: {e.__class__.__name__}"}


@router.get("/")
def health_check() -> Dict[str, Any]:
    """
    Service status for load balancers.

    Returns:
        status ("ok" or "down"), the database probe result, the API version
        and the current UTC time
    """
    probe = check_database_health()
    return {
        "status": "ok" if probe["status"] == "ok" else "down",
        "db": probe,
        "version": __version__,
        "timestamp": utcnow().isoformat(),
    }


@router.get("/db")
def database_health() -> Dict[str, Any]:
    """Database probe plus row counts for the main tables."""
    probe = check_database_health()
    if probe["status"] != "ok":
        return probe

    with get_session() as db:
        counts = {name: db.execute(text(f"SELECT COUNT(*) FROM {name}")).scalar() for name in COUNTED_TABLES}

    probe.update({"tables": counts, "timestamp": utcnow().isoformat()})
    return probe
