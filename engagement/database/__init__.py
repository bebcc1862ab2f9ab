"""
WellnessAI database utilities.

Collection names and index creation for the engagement engine.
"""

from engagement.database import collections
from engagement.database.collections import ensure_indexes

__all__ = ["collections", "ensure_indexes"]
