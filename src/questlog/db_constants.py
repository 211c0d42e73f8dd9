from __future__ import annotations

THEMES = ("aurora", "sunset", "ocean", "midnight")
DEFAULT_THEME = "aurora"
DEFAULT_ACCENT = "#7C3AED"
DEFAULT_GOAL_COLOR = "#7C3AED"

# (id, key, title, description, icon)
BADGE_DEFINITIONS: list[tuple[str, str, str, str, str]] = [
    ("b1", "streak_7", "Week Warrior", "Reach a 7-day streak", "\U0001f525"),
    ("b2", "streak_30", "Monthly Master", "Reach a 30-day streak", "⚡"),
    ("b3", "streak_100", "Century Club", "Reach a 100-day streak", "\U0001f48e"),
    ("b4", "xp_1000", "XP Collector", "Earn 1,000 XP", "⭐"),
    ("b5", "xp_10000", "XP Hoarder", "Earn 10,000 XP", "\U0001f31f"),
    ("b6", "perfect_day_10", "Perfect Ten", "Achieve 10 perfect days", "✨"),
    ("b7", "perfect_day_50", "Consistency King", "Achieve 50 perfect days", "\U0001f451"),
    ("b8", "level_10", "Double Digits", "Reach level 10", "\U0001f3af"),
    ("b9", "goals_5", "Goal Getter", "Create 5 goals", "\U0001f4cb"),
    ("b10", "first_checkin", "First Step", "Complete your first check-in", "\U0001f680"),
]

BADGE_KEYS = tuple(key for _, key, _, _, _ in BADGE_DEFINITIONS)

BACKUP_VERSION = 1
