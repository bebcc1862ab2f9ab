"""
Wellness services - coin ledger, streaks and streak warnings.
"""

from engagement.services.wellness.ledger_service import (
    CoinMovement,
    CreditReason,
    StreakUpdate,
    WellnessLedger,
)
from engagement.services.wellness.streak_warning_service import StreakWarningService

__all__ = ["CoinMovement", "CreditReason", "StreakUpdate", "WellnessLedger", "StreakWarningService"]
