"""Federation Policy — k-anonymity gate and effectiveness merge arithmetic.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - K_ANONYMITY_THRESHOLD is a fixed policy constant (3), not configuration
    - merge_effectiveness() result is always within [0, 1]
    - A pattern is visible iff its distinct contributor count >= K

Design Decisions:
    - Weighted average uses the stored count *before* the ledger re-sync, matching
      the contribution semantics clients were built against (see DESIGN.md)
    - Clamp both ends: stored values outside [0, 1] (legacy rows, NUMERIC rounding)
      never propagate
"""

from knowledge_hub.core.domain_types import Effectiveness

K_ANONYMITY_THRESHOLD = 3
DEFAULT_EFFECTIVENESS = 0.5


def clamp_effectiveness(value: float) -> Effectiveness:
    return Effectiveness(min(max(value, 0.0), 1.0))


def merge_effectiveness(
    current: float, current_count: int, incoming: float,
) -> Effectiveness:
    """Running weighted average: (cur * n + incoming) / (n + 1), clamped."""
    count = max(current_count, 0)
    merged = (current * count + incoming) / (count + 1)
    return clamp_effectiveness(merged)


def is_visible(contributor_count: int) -> bool:
    """K-anonymity gate for a single pattern."""
    return contributor_count >= K_ANONYMITY_THRESHOLD
