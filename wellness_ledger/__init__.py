"""
Wellness ledger

Gamification bookkeeping for a wellness chat app: daily and weekly challenge
awards, streaks, a leaderboard projection, and mood summaries derived from a
per-user emotion log, all on a transactional document store.
"""

__version__ = "1.0.0"
