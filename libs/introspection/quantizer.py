"""Strength quantizer for information-flow edges."""

from enum import Enum
from typing import Any, Dict

import structlog

logger = structlog.get_logger("introspection.quantizer")


class Strength(Enum):
    """Qualitative edge strengths reported by the backend."""
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


STRENGTH_WEIGHTS: Dict[Strength, float] = {
    Strength.WEAK: 0.3,
    Strength.MEDIUM: 0.6,
    Strength.STRONG: 0.9,
}

# Unknown categories are treated as the lowest-confidence strength.
FALLBACK_STRENGTH = Strength.WEAK


def quantize(category: Any) -> float:
    """Map a strength category to its numeric weight in [0, 1]."""
    if isinstance(category, Strength):
        return STRENGTH_WEIGHTS[category]

    normalized = category.strip().lower() if isinstance(category, str) else None
    try:
        strength = Strength(normalized)
    except ValueError:
        logger.debug("Unknown strength category, using fallback", category=category)
        strength = FALLBACK_STRENGTH
    return STRENGTH_WEIGHTS[strength]
