"""
WellnessAI engagement engine.

Check-ins, Happy Coins, achievements, pulse surveys and notifications.
"""
