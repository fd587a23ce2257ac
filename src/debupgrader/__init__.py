"""
debupgrader - In-place Debian major release upgrades
"""

__version__ = "0.1.0"

from .core import DebianUpgrader
from .errors import UpgraderError

__all__ = ["DebianUpgrader", "UpgraderError"]
