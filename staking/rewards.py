PERCENT_DENOMINATOR = 1000


def elapsed_periods(start_mark: int, stop_mark: int, period_seconds: int) -> int:
    if period_seconds <= 0:
        raise ValueError(f"period_seconds must be positive, got {period_seconds}")
    if stop_mark <= start_mark:
        return 0
    return (stop_mark - start_mark) // period_seconds


def compute_reward(
    start_mark: int,
    stop_mark: int,
    principal: int,
    period_seconds: int,
    percent_per_period: int,
) -> int:
    """Reward for the whole periods between two marks.

    All three factors are multiplied before the single floor division so no
    precision is lost to an early truncation. Partial periods earn nothing.
    """
    if principal < 0 or percent_per_period < 0:
        raise ValueError("principal and percent_per_period must be non-negative")
    periods = elapsed_periods(start_mark, stop_mark, period_seconds)
    if periods == 0:
        return 0
    return periods * principal * percent_per_period // PERCENT_DENOMINATOR
