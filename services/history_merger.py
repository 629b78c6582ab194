"""
History Merger

Combines independently-sourced price series into one canonical series.

Points are bucketed by exact timestamp (no tolerance window). Each bucket
yields the median of its prices and the mean of the volumes present (omitted
when no point in the bucket has a volume). Output is sorted ascending.

Providers poll on their own clocks, so their timestamps rarely coincide and
the merge often degenerates to the union of the inputs.
"""

import statistics
from collections import defaultdict
from typing import DefaultDict, Dict, List, Sequence

from core.schemas import HistoryPoint


def merge_history(series_list: Sequence[Sequence[HistoryPoint]]) -> List[HistoryPoint]:
    """
    Merge several series into one.

    Empty series are ignored; a single remaining series is returned unchanged.

    Example:
        >>> a = [HistoryPoint(timestamp=1000, price=50000)]
        >>> b = [HistoryPoint(timestamp=1000, price=50010), HistoryPoint(timestamp=2000, price=50020)]
        >>> [(p.timestamp, p.price) for p in merge_history([a, b])]
        [(1000, 50005.0), (2000, 50020.0)]
    """
    non_empty = [list(series) for series in series_list if series]
    if not non_empty:
        return []
    if len(non_empty) == 1:
        return non_empty[0]

    prices: Dict[int, List[float]] = defaultdict(list)
    volumes: DefaultDict[int, List[float]] = defaultdict(list)

    for series in non_empty:
        for point in series:
            prices[point.timestamp].append(point.price)
            if point.volume is not None:
                volumes[point.timestamp].append(point.volume)

    merged = []
    for timestamp in sorted(prices):
        bucket_volumes = volumes.get(timestamp)
        merged.append(
            HistoryPoint(
                timestamp=timestamp,
                price=statistics.median(prices[timestamp]),
                volume=statistics.fmean(bucket_volumes) if bucket_volumes else None,
            )
        )
    return merged
