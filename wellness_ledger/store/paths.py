"""Logical document paths"""


def stats_path(uid: str) -> str:
    return f"users/{uid}/data/stats"


def profile_path(uid: str) -> str:
    return f"users/{uid}/data/profile"


def dashboard_path(uid: str) -> str:
    return f"users/{uid}/data/dashboard"


def emotions_collection(uid: str) -> str:
    return f"users/{uid}/emotions"


def emotion_path(uid: str, date_key: str) -> str:
    return f"{emotions_collection(uid)}/{date_key}"


def daily_completion_path(uid: str, date_key: str) -> str:
    return f"users/{uid}/dailyCompletions/{date_key}"


def weekly_award_path(uid: str, week_key: str) -> str:
    return f"users/{uid}/weeklyAwards/{week_key}"


LEADERBOARD_COLLECTION = "leaderboard"


def leaderboard_path(uid: str) -> str:
    return f"{LEADERBOARD_COLLECTION}/{uid}"


CHALLENGES_COLLECTION = "challenges"


def challenge_path(challenge_id: str) -> str:
    return f"{CHALLENGES_COLLECTION}/{challenge_id}"
