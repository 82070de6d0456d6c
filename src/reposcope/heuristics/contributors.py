"""Bus-factor classification from contribution shares."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reposcope.models import Contributor

# Thresholds are compared with strict ``<``
TOP_ONE_THRESHOLD = 0.3
TOP_ONE_SECONDARY_THRESHOLD = 0.5
TOP_THREE_THRESHOLD = 0.7


def contribution_shares(contributors: Sequence[Contributor]) -> tuple[float, float]:
    """Return the top-1 and top-3 shares of total contributions.

    Contributors are ranked by contribution count here, so the caller's
    ordering does not matter. A zero total yields ``(0.0, 0.0)``.
    """
    counts = sorted((c.contributions for c in contributors), reverse=True)
    total = sum(counts)
    if total == 0:
        return 0.0, 0.0
    return counts[0] / total, sum(counts[:3]) / total


def bus_factor_from_shares(top_one: float, top_three: float) -> int:
    if top_one < TOP_ONE_THRESHOLD:
        return 3
    if top_one < TOP_ONE_SECONDARY_THRESHOLD and top_three < TOP_THREE_THRESHOLD:
        return 2
    return 1


def bus_factor(contributors: Sequence[Contributor]) -> int:
    """Classify contribution concentration into a bus factor of 1, 2 or 3.

    3 when the top contributor holds under 30% of contributions; 2 when the
    top contributor holds under 50% and the top three under 70%; else 1.

    Args:
        contributors: Contributors with their contribution counts.

    Returns:
        The bus factor bucket.
    """
    return bus_factor_from_shares(*contribution_shares(contributors))
