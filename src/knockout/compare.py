# Copyright (c) Syntropy Systems
"""Compare a candidate measurement pass against the baseline."""

from __future__ import annotations

from typing import TYPE_CHECKING

from knockout.models.comparison import Delta, Unavailable
from knockout.models.measurement import Failure

if TYPE_CHECKING:
    from collections.abc import Mapping

    from knockout.models.comparison import Comparison
    from knockout.models.measurement import MeasurementSet


def diff_common(baseline: Mapping[str, float], candidate: Mapping[str, float]) -> dict[str, float]:
    """Return ``candidate[k] - baseline[k]`` for keys present on both sides."""
    return {
        key: candidate[key] - value
        for key, value in baseline.items()
        if key in candidate
    }


def compare(baseline: MeasurementSet, candidate: MeasurementSet) -> dict[str, Comparison]:
    """Compute per-URL comparisons, in baseline order.

    Both sets must cover the same URLs; anything else is a caller bug.
    """
    if set(baseline) != set(candidate):
        missing = sorted(set(baseline) ^ set(candidate))
        msg = f"Measurement sets cover different URLs: {missing}"
        raise ValueError(msg)

    result: dict[str, Comparison] = {}
    for url, base in baseline.items():
        cand = candidate[url]
        if isinstance(base, Failure):
            result[url] = Unavailable(reason=f"baseline failed: {base.reason}")
            continue
        if isinstance(cand, Failure):
            result[url] = Unavailable(reason=f"measurement failed: {cand.reason}")
            continue

        score_diff = cand.score - base.score
        result[url] = Delta(
            score_diff=score_diff,
            metrics_diff=diff_common(base.metrics, cand.metrics),
            timings_diff=diff_common(base.timings, cand.timings),
            improved=score_diff > 0,
            baseline_score=base.score,
            candidate_score=cand.score,
        )

    return result


def total_score_delta(comparisons: Mapping[str, Comparison]) -> float:
    """Sum score diffs over available comparisons; unavailable ones count as 0."""
    return sum(
        (c.score_diff for c in comparisons.values() if isinstance(c, Delta)),
        0.0,
    )
