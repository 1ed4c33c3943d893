import csv
import logging
import os

from tilawa.history import HistoryStore
from tilawa.models.surah import SURAH_NAMES

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Send tilawa log records to stderr at ``level``."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("tilawa").setLevel(level)


# -----------------------
# Practice log export
# -----------------------
def write_practice_log(history: HistoryStore, user_id: int, path: str) -> str:
    """Write a user's per-ayah listen counts to a CSV file and return its path."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, mode="w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["surah_id", "surah_name", "ayah_number", "listen_count", "last_practiced"])
        for entry in history.heatmap(user_id):
            writer.writerow([
                entry.surah_id, SURAH_NAMES[entry.surah_id], entry.ayah_number,
                entry.count, entry.last_practiced.isoformat(),
            ])
    return path
