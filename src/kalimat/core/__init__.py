"""Core business logic.

Modules:
- auth: bearer token resolution and profile merge
- srs: SM-2 spaced repetition
- progress: XP, levels, quiz scoring, streaks
- leaderboard: global, weekly and group rankings
- shop: gem catalog and purchases
- search: Arabic-normalized ayah search
- reports: learner reports and behaviour analysis
- groups: joining study groups
- certificates: course certificates
- profiles: profile bootstrap, admin settings, error ingestion
- notifications: daily notification batch
"""

__all__ = [
    "auth",
    "srs",
    "progress",
    "leaderboard",
    "shop",
    "search",
    "reports",
    "groups",
    "certificates",
    "profiles",
    "notifications",
]
