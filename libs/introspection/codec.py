"""Identifier codec for model components.

A component is addressed by ``(layer, sub_unit)`` and rendered as a short
token such as ``L6H15``. Some backend versions emit ``L6HNone`` when the
sub-unit is unknown; decoding substitutes ``MISSING_INDEX`` instead of failing.
"""

import re
from typing import Any, NamedTuple, Optional

MISSING_INDEX = 0

_NONE_SENTINEL = "none"
_TOKEN_RE = re.compile(
    r"^L(?P<layer>\d+|none)?(?:H(?P<sub_unit>\d+|none)?)?$",
    re.IGNORECASE,
)


class ComponentKey(NamedTuple):
    """Decoded ``(layer, sub_unit)`` pair."""
    layer: int
    sub_unit: int


def encode(layer: int, sub_unit: int) -> str:
    """Render a component key as its canonical token."""
    for name, value in (("layer", layer), ("sub_unit", sub_unit)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return f"L{layer}H{sub_unit}"


def _index(raw: Any) -> int:
    if raw is None or raw.lower() == _NONE_SENTINEL:
        return MISSING_INDEX
    return int(raw)


def parse(token: Any) -> Optional[ComponentKey]:
    """Strict variant of ``decode``: ``None`` unless ``token`` is a component token.

    A token must carry at least one index (or sentinel); a bare ``L`` or
    ``LH`` is not a token.
    """
    if not isinstance(token, str):
        return None

    match = _TOKEN_RE.match(token.strip())
    if match is None or (match.group("layer") is None and match.group("sub_unit") is None):
        return None

    return ComponentKey(_index(match.group("layer")), _index(match.group("sub_unit")))


def is_token(token: Any) -> bool:
    return parse(token) is not None


def decode(token: Any) -> ComponentKey:
    """Parse a token back into its component key.

    Never raises: missing or sentinel indices become ``MISSING_INDEX`` and an
    unrecognizable token decodes to ``(0, 0)``.
    """
    key = parse(token)
    if key is None:
        return ComponentKey(MISSING_INDEX, MISSING_INDEX)
    return key


def canonicalize(token: Any) -> str:
    """Re-render any raw token in canonical form (``L3HNone`` -> ``L3H0``)."""
    return encode(*decode(token))
