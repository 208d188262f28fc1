"""Small numeric helpers shared by aggregates, reports and stats."""


def accuracy_percent(correct: int, attempts: int) -> int:
    """Whole-number accuracy, rounded half-up; 0 when nothing was attempted.

    >>> accuracy_percent(8, 10)
    80
    >>> accuracy_percent(1, 8)   # 12.5 → 13
    13
    """
    if attempts <= 0:
        return 0
    return (200 * correct + attempts) // (2 * attempts)


def format_practice_time(seconds: int) -> str:
    """'1h 5m' for an hour or more, otherwise '5m'."""
    seconds = max(0, seconds)
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
