"""
Tilawa: community juz rotation and guided Quran recitation.
"""

from tilawa.config import TilawaSettings, configure, get_settings
from tilawa.context import TilawaContext

__version__ = "1.0.0"

__all__ = [
    "TilawaContext",
    "TilawaSettings",
    "configure",
    "get_settings",
    "__version__",
]
