"""
Import script: load the INSEE census file into regions, departments and cities.

Run inside the API container to use the 'postgres' host and project PYTHONPATH:
    docker compose exec api python scripts/import_census.py data/recensement.csv

Re-running the script over the same file does not duplicate regions,
departments or cities. Rows that cannot be parsed, or whose region name
contradicts an existing region, are logged and skipped.
"""

# Add project root (/code) to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import logging

from app.common.errors import CensusFileError
from app.core.config import settings
from app.database.database import Base, SessionLocal, sync_engine
from app.modules.census.importer import CensusImporter
import app.modules.locations.models  # noqa: F401  (registers tables)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Import an INSEE census CSV file")
    parser.add_argument(
        "path",
        nargs="?",
        default=settings.CENSUS_FILE_PATH,
        help=f"census file (default: {settings.CENSUS_FILE_PATH})"
    )
    parser.add_argument("--encoding", default=settings.CENSUS_ENCODING)
    parser.add_argument(
        "--city-uniqueness",
        choices=["name", "name_and_department"],
        default=settings.CENSUS_CITY_UNIQUENESS,
        help="skip a commune when its name already exists globally or only within its department"
    )
    parser.add_argument("--create-tables", action="store_true", help="create missing tables before importing")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logger = logging.getLogger("import_census")

    if args.create_tables:
        Base.metadata.create_all(bind=sync_engine)

    db = SessionLocal()
    try:
        importer = CensusImporter(db, city_uniqueness=args.city_uniqueness)
        report = importer.run(args.path, args.encoding)
    except CensusFileError as e:
        logger.error(e.message)
        return 1
    finally:
        db.close()

    logger.info(
        f"{report.rows_read} rows read: {report.regions_created} regions, "
        f"{report.departments_created} departments, {report.cities_created} cities created; "
        f"{report.cities_skipped} cities already present, {report.rows_rejected} rows rejected"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
