from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional

from lesson_progress.config import get_settings
from lesson_progress.errors import PersistenceError
from lesson_progress.persistence import DatabaseGateway, state_from_document

logger = logging.getLogger("backfill")


def backfill(path: Path, gateway: Optional[DatabaseGateway] = None) -> int:
    if not path.exists():
        logger.info("No JSON progress snapshot found at %s", path)
        return 0
    with path.open(encoding="utf-8") as handle:
        payload = json.load(handle)
    state = state_from_document(payload)
    target = gateway or DatabaseGateway()
    target.save(state)
    logger.info(
        "Imported %d users and %d day counters into %s",
        len(state.users),
        len(state.global_counts),
        target.describe(),
    )
    return len(state.users)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Copy a JSON progress snapshot into the configured database.")
    parser.add_argument("--data-file", type=Path, default=get_settings().data_file)
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = parse_args(argv)
    try:
        backfill(args.data_file)
    except (PersistenceError, ValueError) as exc:
        raise SystemExit(f"Backfill failed: {exc}") from exc


if __name__ == "__main__":
    main()
