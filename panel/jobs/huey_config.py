"""Huey configuration with SQLite backend."""
from huey import SqliteHuey

from config import DATA_DIR, get_jobs_config

DATA_DIR.mkdir(parents=True, exist_ok=True)

# SQLite-backed Huey instance. jobs.immediate runs tasks in-process.
huey = SqliteHuey(
    name='barback',
    filename=str(DATA_DIR / 'huey.db'),
    immediate=get_jobs_config()['immediate'],
)
