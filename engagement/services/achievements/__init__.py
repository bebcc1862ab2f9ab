from engagement.services.achievements.achievement_service import AchievementService
from engagement.services.achievements.catalog import DEFAULT_ACHIEVEMENTS, install_default_catalog
from engagement.services.achievements.criteria import (
    AchievementConfigError,
    AchievementDefinition,
    CriteriaType,
    parse_definition,
)

__all__ = [
    "AchievementService",
    "DEFAULT_ACHIEVEMENTS",
    "install_default_catalog",
    "AchievementConfigError",
    "AchievementDefinition",
    "CriteriaType",
    "parse_definition",
]
