#!/usr/bin/env python
"""Idempotent demo seed: branches, staff, spare parts and the default config.

Usage:
    python backend/scripts/seed_demo.py            # seed
    python backend/scripts/seed_demo.py --dry-run  # run then roll back
"""
from __future__ import annotations
import argparse
import logging
import os
import sys

from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from ems import create_app, get_db  # noqa: E402
from ems.models.base import Base  # noqa: E402
from ems.models import audit, config_document, report  # noqa: E402,F401
from ems.models.directory import BranchRecord, StaffUser  # noqa: E402
from ems.models.inventory_part import InventoryPart  # noqa: E402
from ems.services.config_store import ConfigStore  # noqa: E402
from ems.services.store import SqlStore  # noqa: E402
from seeds.demo_directory import PARTS, USERS, branches  # noqa: E402

logger = logging.getLogger('ems.seed')


def _ensure(session, model, rows) -> int:
    existing = set(session.execute(select(model.id)).scalars())
    created = 0
    for row in rows:
        if row['id'] not in existing:
            session.add(model(**row))
            created += 1
    return created


def seed(session) -> dict:
    counts = {
        'branches': _ensure(session, BranchRecord, branches()),
        'users': _ensure(session, StaffUser, USERS),
        'parts': _ensure(session, InventoryPart, PARTS),
    }
    session.flush()
    return counts


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--dry-run', action='store_true')
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

    app = create_app()
    with app.app_context():
        from ems import db_engine
        Base.metadata.create_all(db_engine)
        session = get_db()
        counts = seed(session)
        if args.dry_run:
            session.rollback()
            logger.info('dry run, nothing written: %s', counts)
            return 0
        session.commit()
        config = ConfigStore(SqlStore(session)).load()
        logger.info('seeded %s; config version %s', counts, config.version)
    return 0


if __name__ == '__main__':
    sys.exit(main())
