"""
Weekly engagement pulse questionnaire.

Question ids and their order are fixed; downstream analytics key on them.
"""

from typing import Any, Dict, List

PULSE_QUESTION_IDS = (
    "enps_weekly",
    "engagement_weekly",
    "workload_weekly",
    "support_weekly",
    "feedback_weekly",
)

PULSE_DESCRIPTION = (
    "Quick weekly check-in to understand how you're feeling at work and "
    "identify any support you might need."
)


def pulse_title(week: int, year: int) -> str:
    return f"Weekly Engagement Pulse - Week {week}, {year}"


def build_pulse_questions(company_name: str) -> List[Dict[str, Any]]:
    """The five pulse questions, in their canonical order."""
    return [
        {
            "id": "enps_weekly",
            "question": (
                f"On a scale of 0-10, how likely are you to recommend {company_name} "
                f"as a great place to work this week?"
            ),
            "type": "scale",
            "scale": {
                "min": 0,
                "max": 10,
                "labels": {"0": "Not at all likely", "5": "Neutral", "10": "Extremely likely"},
            },
            "category": "eNPS",
            "required": True,
        },
        {
            "id": "engagement_weekly",
            "question": "How engaged do you feel at work this week?",
            "type": "scale",
            "scale": {
                "min": 1,
                "max": 5,
                "labels": {
                    "1": "Not engaged",
                    "2": "Slightly engaged",
                    "3": "Moderately engaged",
                    "4": "Highly engaged",
                    "5": "Completely engaged",
                },
            },
            "category": "engagement",
            "required": True,
        },
        {
            "id": "workload_weekly",
            "question": "How manageable has your workload been this week?",
            "type": "scale",
            "scale": {
                "min": 1,
                "max": 5,
                "labels": {
                    "1": "Overwhelming",
                    "2": "Heavy",
                    "3": "Just right",
                    "4": "Light",
                    "5": "Too light",
                },
            },
            "category": "wellbeing",
            "required": True,
        },
        {
            "id": "support_weekly",
            "question": "Do you feel adequately supported by your team and manager this week?",
            "type": "boolean",
            "category": "leadership",
            "required": True,
        },
        {
            "id": "feedback_weekly",
            "question": "What's one thing that would improve your work experience next week?",
            "type": "text",
            "category": "feedback",
            "required": False,
        },
    ]
