"""
Soft Delete Admin API

Trash inspection, restore and retention purge over HTTP for tables registered
through a locator factory.
"""

from datetime import timedelta
from typing import Any, Callable, Dict, Iterator

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.orm import Session
import logging

from .config import PURGE_RETENTION_DAYS
from .errors import InvalidArgumentError, MissingColumnError, SoftDeleteError
from .repository import Repository, TableLocator
from .workers.purge_worker import run_purge_cycle

logger = logging.getLogger(__name__)


def row_to_dict(entity: Any) -> Dict[str, Any]:
    if hasattr(entity, "to_dict"):
        return entity.to_dict()
    data = {}
    for attr in inspect(entity).mapper.column_attrs:
        value = getattr(entity, attr.key)
        data[attr.key] = value.isoformat() if hasattr(value, "isoformat") else value
    return data


def create_app(
    session_factory: Callable[[], Session],
    locator_factory: Callable[[Session], TableLocator],
) -> FastAPI:
    app = FastAPI(
        title="Soft Delete Admin API",
        description="Trash, restore and retention purge for soft-delete tables",
        version="1.0.0",
    )

    # ========================================================================
    # Dependency Injection
    # ========================================================================

    def get_db() -> Iterator[Session]:
        """Get database session"""
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def get_table(table: str, db: Session = Depends(get_db)) -> Repository:
        repository = locator_factory(db).by_name(table)
        if repository is None or repository.soft_delete is None:
            raise HTTPException(status_code=404, detail=f"Soft-delete table {table} not found")
        return repository

    # ========================================================================
    # Error Handling
    # ========================================================================

    @app.exception_handler(MissingColumnError)
    async def missing_column_handler(request: Request, exc: MissingColumnError):
        logger.error(f"Soft-delete misconfiguration: {str(exc)}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    # ========================================================================
    # Health Check
    # ========================================================================

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "soft-delete-admin"}

    # ========================================================================
    # Trash Endpoints
    # ========================================================================

    @app.get("/tables/{table}/trash", tags=["Trash"])
    async def list_trash(
        limit: int = Query(100, ge=1, le=500),
        offset: int = Query(0, ge=0),
        repository: Repository = Depends(get_table),
    ):
        """List soft-deleted rows of a table"""
        query = repository.find(only_deleted=True)
        total = query.clone().count()
        rows = query.limit(limit).offset(offset).all()
        return {
            "table": repository.alias,
            "rows": [row_to_dict(row) for row in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    @app.delete("/tables/{table}/{row_id}", tags=["Trash"])
    async def soft_delete_row(row_id: int, repository: Repository = Depends(get_table)):
        """Soft delete a row"""
        entity = repository.get(row_id)
        if entity is None:
            raise HTTPException(status_code=404, detail="Row not found")

        if not repository.delete(entity):
            raise HTTPException(status_code=409, detail="Row could not be deleted")

        repository.session.commit()
        return {"table": repository.alias, "id": row_id, "deleted": True}

    @app.post("/tables/{table}/{row_id}/restore", tags=["Trash"])
    async def restore_row(row_id: int, repository: Repository = Depends(get_table)):
        """Restore a soft-deleted row"""
        entity = repository.find(only_deleted=True).where(*_pk_criteria(repository, row_id)).one_or_none()
        if entity is None:
            raise HTTPException(status_code=404, detail="Deleted row not found")

        restored = repository.restore(entity)
        if restored is False:
            raise HTTPException(status_code=409, detail="Row could not be restored")

        repository.session.commit()
        return row_to_dict(restored)

    @app.delete("/tables/{table}/{row_id}/hard", tags=["Trash"])
    async def hard_delete_row(row_id: int, repository: Repository = Depends(get_table)):
        """Permanently delete a row, whether or not it is soft deleted"""
        entity = repository.get(row_id, with_deleted=True)
        if entity is None:
            raise HTTPException(status_code=404, detail="Row not found")

        if not repository.hard_delete(entity):
            raise HTTPException(status_code=409, detail="Row could not be deleted")

        repository.session.commit()
        return {"table": repository.alias, "id": row_id, "purged": True}

    # ========================================================================
    # Retention Endpoints
    # ========================================================================

    @app.post("/purge", tags=["Retention"])
    async def purge(retention_days: int = Query(PURGE_RETENTION_DAYS, ge=0)):
        """Hard delete rows soft deleted more than ``retention_days`` ago"""
        try:
            counts = run_purge_cycle(session_factory, locator_factory, timedelta(days=retention_days))
        except SoftDeleteError:
            raise
        except Exception as e:
            logger.error(f"Error purging soft-deleted rows: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))
        return {"retention_days": retention_days, "purged": counts, "total": sum(counts.values())}

    return app


def _pk_criteria(repository: Repository, row_id: Any):
    if len(repository.primary_key) != 1:
        raise InvalidArgumentError(f"Table `{repository.alias}` has a composite primary key")
    return [getattr(repository.model, repository.primary_key[0]) == row_id]
