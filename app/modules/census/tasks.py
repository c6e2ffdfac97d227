"""
Background tasks for census imports
"""
from typing import Optional
import logging

from app.common.errors import CensusFileError
from app.core.celery import celery_app
from app.database.database import SessionLocal
from app.modules.census.importer import import_census_file as run_import

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def import_census_file(self, path: str, encoding: Optional[str] = None):
    """
    Background task to load a census file into regions, departments and cities.
    Row errors are logged by the importer; only an unreadable file fails the task.
    """
    db = SessionLocal()
    try:
        logger.info(f"Census import task {self.request.id} started for {path}")
        report = run_import(db, path, encoding)
        return {"status": "completed", "path": path, **report.as_dict()}
    except CensusFileError as e:
        logger.error(f"Census import failed for {path}: {e.message}")
        raise
    finally:
        db.close()
