from __future__ import annotations

import logging
import sys
from pathlib import Path

from cafehoppr.db import crud
from cafehoppr.db.base import Base
from cafehoppr.db.session import SessionLocal, engine
from cafehoppr.schemas.locations import LocationCreate

logger = logging.getLogger(__name__)


def import_locations(names: list[str]) -> dict:
    added = 0
    skipped = 0

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        for raw in names:
            name = raw.strip()
            if not name:
                skipped += 1
                continue
            try:
                crud.create_location(db, LocationCreate(name=name))
                added += 1
            except crud.DuplicateError:
                skipped += 1
    finally:
        db.close()

    logger.info("Import finished: added=%s skipped=%s", added, skipped)
    return {"added": added, "skipped": skipped}


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python scripts/import_locations.py <name>... | --file <path>")
        return 2
    if sys.argv[1] == "--file":
        names = Path(sys.argv[2]).read_text(encoding="utf-8").splitlines()
    else:
        names = sys.argv[1:]
    print(import_locations(names))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
