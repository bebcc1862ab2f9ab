"""
Typed notification templates.

Each notification type has its own payload model. Templates validate their
payload at construction and ``render()`` into the stored notification shape.

Example:
    template = CheckInCompleted(mood=5, streak=3, coins_earned=75)
    await sink.emit(user_id, template)
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    HAPPY_COINS_EARNED = "HAPPY_COINS_EARNED"
    CHECK_IN_COMPLETED = "CHECK_IN_COMPLETED"
    STREAK_WARNING = "STREAK_WARNING"
    STREAK_MILESTONE = "STREAK_MILESTONE"
    MILESTONE_ACHIEVED = "MILESTONE_ACHIEVED"
    SURVEY_AVAILABLE = "SURVEY_AVAILABLE"
    REWARD_REDEEMED = "REWARD_REDEEMED"
    RECOGNITION_RECEIVED = "RECOGNITION_RECEIVED"
    RISK_ALERT = "RISK_ALERT"
    SYSTEM_UPDATE = "SYSTEM_UPDATE"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# Stored alongside the label so listing can sort by urgency
PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}

# Notification types a user can opt out of, keyed to their preference flag
PREFERENCE_KEYS = {
    NotificationType.HAPPY_COINS_EARNED: "rewardUpdates",
    NotificationType.CHECK_IN_COMPLETED: "checkInReminder",
    NotificationType.STREAK_WARNING: "checkInReminder",
    NotificationType.STREAK_MILESTONE: "rewardUpdates",
    NotificationType.SURVEY_AVAILABLE: "surveyReminder",
}

MOOD_LABELS = {1: "Very Poor", 2: "Poor", 3: "Neutral", 4: "Good", 5: "Excellent"}

STREAK_MILESTONE_MESSAGES = {
    7: "First week complete!",
    14: "Two weeks strong!",
    30: "A whole month!",
    60: "Two months of consistency!",
    90: "Quarter year achievement!",
    180: "Half year milestone!",
    365: "Full year streak!",
}


def _clip(text: str, limit: int) -> str:
    text = text.strip()
    return text if len(text) <= limit else text[: limit - 3].rstrip() + "..."


class RenderedNotification(BaseModel):
    """Persistable notification body shared by all templates."""
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: Priority = Priority.MEDIUM
    icon: str = "bell"
    actionType: str = "none"
    actionData: Optional[Dict[str, Any]] = None
    source: str = "system"
    expiresIn: Optional[timedelta] = None

    def expires_at(self, now: datetime) -> Optional[datetime]:
        return now + self.expiresIn if self.expiresIn else None


class NotificationTemplate(BaseModel):
    """Base class for typed templates; subclasses set ``type`` and ``render``."""

    type: ClassVar[NotificationType]

    def render(self) -> RenderedNotification:
        raise NotImplementedError


# =============================================================================
# Coins and check-ins
# =============================================================================

class HappyCoinsEarned(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.HAPPY_COINS_EARNED

    coins_earned: int = Field(..., gt=0)
    source: str = "check_in"
    description: Optional[str] = None

    def render(self) -> RenderedNotification:
        if self.source == "check_in":
            message = f"Great job! You earned {self.coins_earned} happy coins for checking in today."
        elif self.description:
            message = f"You earned {self.coins_earned} happy coins: {self.description}"
        else:
            message = f"You've earned {self.coins_earned} happy coins! Keep up the great work."
        return RenderedNotification(
            type=self.type,
            title=f"+{self.coins_earned} Happy Coins!",
            message=_clip(message, 500),
            data={"coinsEarned": self.coins_earned, "source": self.source},
            priority=Priority.MEDIUM,
            icon="coins",
            actionType="navigate",
            actionData={"route": "/dashboard"},
            source=self.source,
        )


class CheckInCompleted(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.CHECK_IN_COMPLETED

    mood: int = Field(..., ge=1, le=5)
    streak: int = Field(0, ge=0)
    coins_earned: int = Field(0, ge=0)
    streak_bonus: int = Field(0, ge=0)
    broke_streak: bool = False

    def render(self) -> RenderedNotification:
        label = MOOD_LABELS[self.mood]
        message = f"Thanks for checking in! Your mood: {label}"
        if self.streak > 0:
            message += f" | Streak: {self.streak} days"
        if self.coins_earned:
            message += f" | +{self.coins_earned} Happy Coins"
        return RenderedNotification(
            type=self.type,
            title="Check-in Complete!",
            message=message,
            data={
                "mood": self.mood,
                "moodLabel": label,
                "streak": self.streak,
                "coinsEarned": self.coins_earned,
                "streakBonus": self.streak_bonus,
                "brokeStreak": self.broke_streak,
            },
            priority=Priority.LOW,
            icon="checkmark",
            actionType="navigate",
            actionData={"route": "/wellness/history"},
            source="check_in",
        )


class StreakWarning(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.STREAK_WARNING

    current_streak: int = Field(..., gt=0)
    hours_left: int = Field(..., gt=0, le=24)

    def render(self) -> RenderedNotification:
        return RenderedNotification(
            type=self.type,
            title="Don't Break Your Streak!",
            message=(
                f"You have {self.hours_left} hours left to check in and maintain "
                f"your {self.current_streak}-day streak!"
            ),
            data={"currentStreak": self.current_streak, "hoursLeft": self.hours_left},
            priority=Priority.HIGH,
            icon="warning",
            actionType="navigate",
            actionData={"route": "/wellness/checkin"},
            source="streak",
            expiresIn=timedelta(hours=self.hours_left),
        )


class StreakMilestone(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.STREAK_MILESTONE

    streak_days: int = Field(..., gt=0)
    bonus_coins: int = Field(0, ge=0)

    def render(self) -> RenderedNotification:
        message = STREAK_MILESTONE_MESSAGES.get(
            self.streak_days, f"{self.streak_days} days of consistency!"
        )
        if self.bonus_coins > 0:
            message += f" Bonus: {self.bonus_coins} happy coins!"
        return RenderedNotification(
            type=self.type,
            title=f"🔥 {self.streak_days}-Day Streak!",
            message=message,
            data={"streakDays": self.streak_days, "bonusCoins": self.bonus_coins},
            priority=Priority.HIGH,
            icon="fire",
            actionType="navigate",
            actionData={"route": "/dashboard"},
            source="streak",
        )


# =============================================================================
# Achievements, rewards, recognition
# =============================================================================

class MilestoneAchieved(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.MILESTONE_ACHIEVED

    achievement_id: str
    achievement_name: str = Field(..., min_length=1)
    description: str = ""
    happy_coins: int = Field(0, ge=0)
    icon: str = "🏆"
    rarity: str = "common"

    def render(self) -> RenderedNotification:
        coins = f" You've earned {self.happy_coins} happy coins!" if self.happy_coins > 0 else ""
        return RenderedNotification(
            type=self.type,
            title=_clip(f"🏆 Achievement Unlocked: {self.achievement_name}", 100),
            message=_clip(f"{self.achievement_name}: {self.description}{coins}", 500),
            data={
                "milestoneType": "achievement",
                "achievementId": self.achievement_id,
                "achievementName": self.achievement_name,
                "description": self.description,
                "happyCoinsReward": self.happy_coins,
                "badgeIcon": self.icon,
                "rarity": self.rarity,
            },
            priority=Priority.MEDIUM,
            icon="trophy",
            actionType="navigate",
            actionData={"route": "/achievements"},
            source="system",
        )


class RewardRedeemedNotice(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.REWARD_REDEEMED

    reward_name: str
    coins_spent: int = Field(..., gt=0)
    redemption_code: str

    def render(self) -> RenderedNotification:
        return RenderedNotification(
            type=self.type,
            title="Reward Redeemed!",
            message=_clip(
                f'You\'ve redeemed "{self.reward_name}" for {self.coins_spent} happy coins. '
                f"Your code: {self.redemption_code}",
                500,
            ),
            data={
                "rewardName": self.reward_name,
                "coinsSpent": self.coins_spent,
                "redemptionCode": self.redemption_code,
            },
            priority=Priority.MEDIUM,
            icon="heart",
            actionType="navigate",
            actionData={"route": "/rewards"},
            source="reward",
        )


class RecognitionReceived(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.RECOGNITION_RECEIVED

    from_user_name: str
    recognition_type: str
    happy_coins: int = Field(0, ge=0)
    recognition_id: str

    def render(self) -> RenderedNotification:
        coins = f" +{self.happy_coins} Happy Coins." if self.happy_coins else ""
        return RenderedNotification(
            type=self.type,
            title="Recognition Received!",
            message=_clip(
                f"{self.from_user_name} has given you recognition for {self.recognition_type}!{coins}",
                500,
            ),
            data={
                "fromUserName": self.from_user_name,
                "recognitionType": self.recognition_type,
                "recognitionId": self.recognition_id,
                "happyCoins": self.happy_coins,
            },
            priority=Priority.HIGH,
            icon="star",
            actionType="navigate",
            actionData={"route": "/recognitions"},
            source="system",
        )


# =============================================================================
# Surveys
# =============================================================================

class SurveyAvailable(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.SURVEY_AVAILABLE

    survey_id: str
    survey_title: str
    priority: Priority = Priority.MEDIUM
    happy_coins: int = Field(0, ge=0)
    due_date: Optional[datetime] = None
    question_count: int = Field(0, ge=0)

    def render(self) -> RenderedNotification:
        return RenderedNotification(
            type=self.type,
            title="New Pulse Survey Available",
            message=_clip(
                f'A new {self.priority.value} priority survey "{self.survey_title}" is now available. '
                f"Complete it to earn {self.happy_coins} Happy Coins!",
                500,
            ),
            data={
                "surveyId": self.survey_id,
                "dueDate": self.due_date.isoformat() if self.due_date else None,
                "estimatedTime": -(-self.question_count * 3 // 2),
                "happyCoins": self.happy_coins,
            },
            priority=self.priority,
            icon="info",
            actionType="navigate",
            actionData={"route": "/employee/surveys", "surveyId": self.survey_id},
            source="survey",
            expiresIn=timedelta(days=7),
        )


class SurveyReminder(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.SURVEY_AVAILABLE

    survey_id: str
    survey_title: str
    priority: Priority = Priority.HIGH
    happy_coins: int = Field(0, ge=0)
    days_until_due: int = Field(..., ge=0)
    due_date: Optional[datetime] = None

    def render(self) -> RenderedNotification:
        plural = "" if self.days_until_due == 1 else "s"
        return RenderedNotification(
            type=self.type,
            title="Survey Reminder",
            message=_clip(
                f'Don\'t forget to complete "{self.survey_title}" - due in {self.days_until_due} '
                f"day{plural}! Earn {self.happy_coins} Happy Coins.",
                500,
            ),
            data={
                "surveyId": self.survey_id,
                "dueDate": self.due_date.isoformat() if self.due_date else None,
                "daysUntilDue": self.days_until_due,
                "isReminder": True,
            },
            priority=self.priority,
            icon="bell",
            actionType="navigate",
            actionData={"route": "/employee/surveys", "surveyId": self.survey_id},
            source="survey",
        )


# =============================================================================
# HR and system
# =============================================================================

class RiskAlert(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.RISK_ALERT

    employee_id: str
    employee_name: str
    risk_level: str = "high"
    reason: str
    alert_key: str
    recent_moods: List[int] = Field(default_factory=list)

    def render(self) -> RenderedNotification:
        return RenderedNotification(
            type=self.type,
            title="Employee Wellness Alert",
            message=_clip(f"{self.employee_name} shows {self.risk_level} risk level: {self.reason}", 500),
            data={
                "employeeId": self.employee_id,
                "employeeName": self.employee_name,
                "riskLevel": self.risk_level,
                "reason": self.reason,
                "alertKey": self.alert_key,
                "recentMoods": self.recent_moods,
            },
            priority=Priority.URGENT,
            icon="warning",
            actionType="navigate",
            actionData={"route": "/analytics/risk-assessment"},
            source="system",
        )


class SystemUpdate(NotificationTemplate):
    type: ClassVar[NotificationType] = NotificationType.SYSTEM_UPDATE

    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    route: Optional[str] = None

    def render(self) -> RenderedNotification:
        return RenderedNotification(
            type=self.type,
            title=self.title,
            message=self.message,
            priority=Priority.LOW,
            icon="info",
            actionType="navigate" if self.route else "none",
            actionData={"route": self.route} if self.route else None,
            source="system",
            expiresIn=timedelta(days=30),
        )
