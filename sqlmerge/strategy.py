from enum import Enum

from sqlmerge.config import MergeMode

# Row count above which auto mode switches to the bulk strategy
AUTO_BULK_THRESHOLD = 1000


class MergeStrategy(str, Enum):
    """Execution strategy chosen for one merge."""

    INLINE_STATEMENT = "inline_statement"
    BULK_LOAD = "bulk_load"


def select_strategy(
    mode: MergeMode, row_count: int, threshold: int = AUTO_BULK_THRESHOLD
) -> MergeStrategy:
    """
    Pick the execution strategy for a merge.

    Args:
        mode: The definition's merge mode.
        row_count: Number of source rows.
        threshold: Auto mode uses bulk loading when ``row_count`` exceeds it.

    Returns:
        ``BULK_LOAD`` or ``INLINE_STATEMENT``.
    """
    if mode == MergeMode.BULK_LOAD:
        return MergeStrategy.BULK_LOAD
    if mode == MergeMode.INLINE_STATEMENT:
        return MergeStrategy.INLINE_STATEMENT
    if row_count > threshold:
        return MergeStrategy.BULK_LOAD
    return MergeStrategy.INLINE_STATEMENT
