"""CLI script to seed the database with the admin account, school and lessons.
Usage: python scripts/seed.py [--skip-lessons]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `qeema` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from qeema.config import Settings
from qeema.database import build_engine, create_db_and_tables
from qeema.seed import run_seed


def main(skip_lessons: bool = False):
    """Create tables if needed, seed, and print what was created."""
    settings = Settings()
    engine = build_engine(settings.DATABASE_URL)
    try:
        create_db_and_tables(engine)
        result = run_seed(engine, settings, with_lessons=not skip_lessons)
    finally:
        engine.dispose()
    print(f"Admin: {result['admin']}")
    print(f"School: {result['school']}")
    print(f"Lessons created: {result['lessons_created']}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--skip-lessons', action='store_true', help='Only seed the admin account and school')
    args = parser.parse_args()
    main(skip_lessons=args.skip_lessons)
