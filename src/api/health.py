"""Health check endpoint."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.database import get_db

router = APIRouter()


@router.get("/health")
def health_check(request: Request, db: Session = Depends(get_db)) -> dict[str, str | int]:
    """Return application, database and artifact registry status."""
    registry = getattr(request.app.state, "artifact_registry", None)
    artifacts = len(registry.artifact_ids()) if registry is not None else 0
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected", "artifacts": artifacts}
    except SQLAlchemyError:
        return {"status": "error", "database": "disconnected", "artifacts": artifacts}
