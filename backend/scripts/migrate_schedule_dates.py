"""
Migration script to move legacy schedule dates onto the canonical hour.

Older releases stored a schedule's day at midnight UTC, which on clinic
clocks east of UTC could be read back as the previous day. Every schedule is
now stored at CANONICAL_SCHEDULE_HOUR_UTC of its calendar day.

For each schedule whose stored instant is not canonical:
- If the doctor has no canonical schedule for that day, move it there
- Otherwise leave it alone and report it; the canonical record wins on reads

Run with --dry-run first to see what would change.
"""

import sys
import os

# Add parent directory to path to import models
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.config import get_database_url
from models import Schedule
from utils.datetime_utils import normalize_schedule_date


def migrate_schedule_dates(dry_run: bool = False) -> int:
    """
    Normalize stored schedule dates.

    Returns:
        Number of schedules moved (or that would be moved in dry-run mode)
    """
    database_url = get_database_url()
    engine = create_engine(database_url)
    Session = sessionmaker(bind=engine)
    session = Session()

    moved = 0
    skipped = 0
    try:
        schedules = session.query(Schedule).order_by(Schedule.doctor_id, Schedule.date).all()
        canonical_keys = {
            (schedule.doctor_id, schedule.date)
            for schedule in schedules
            if schedule.date == normalize_schedule_date(schedule.date.date())
        }

        for schedule in schedules:
            target = normalize_schedule_date(schedule.date.date())
            if schedule.date == target:
                continue

            key = (schedule.doctor_id, target)
            if key in canonical_keys:
                print(
                    f"⚠️  Schedule {schedule.id} (doctor {schedule.doctor_id}, {schedule.date}) "
                    f"skipped: a canonical schedule already exists for {target.date()}"
                )
                skipped += 1
                continue

            print(f"→ Schedule {schedule.id}: {schedule.date} → {target}")
            if not dry_run:
                schedule.date = target
            canonical_keys.add(key)
            moved += 1

        if dry_run:
            session.rollback()
        else:
            session.commit()

        print(f"✅ {'Would move' if dry_run else 'Moved'} {moved} schedule(s), skipped {skipped}")
        return moved

    except Exception as e:
        session.rollback()
        print(f"❌ Migration failed: {e}")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    print("Starting migration: schedule dates → canonical hour")
    migrate_schedule_dates(dry_run="--dry-run" in sys.argv)
    print("Migration completed!")
