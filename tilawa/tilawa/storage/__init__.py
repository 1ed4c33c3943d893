"""
Relational storage for communities, juz assignments and listening history.
"""

from tilawa.storage.database import Database, to_db_time, utc_now

__all__ = ["Database", "to_db_time", "utc_now"]
