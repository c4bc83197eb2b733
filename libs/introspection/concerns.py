"""Concern classifier.

Older backends report risk factors as snake_case tokens such as
``moderate_hallucination_risk``; newer ones send ``{type, message}`` objects.
Both end up as canonical ``Concern`` records.
"""

import re
from typing import Any, Dict, Iterable, List

from .models import Concern, Severity

NO_CONCERNS_MESSAGE = "no significant concerns detected"

_SEVERE_MARKERS = ("high", "severe")
_CAUTION_MARKERS = ("moderate",)
_SEVERITY_PREFIX_RE = re.compile(r"^(?:low|moderate|high|severe)[_\-\s]+", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"[_\-\s]+")

_TYPE_ALIASES: Dict[str, Severity] = {
    "benign": Severity.BENIGN,
    "safe": Severity.BENIGN,
    "info": Severity.BENIGN,
    "low": Severity.BENIGN,
    "caution": Severity.CAUTION,
    "warning": Severity.CAUTION,
    "moderate": Severity.CAUTION,
    "medium": Severity.CAUTION,
    "severe": Severity.SEVERE,
    "danger": Severity.SEVERE,
    "high": Severity.SEVERE,
    "critical": Severity.SEVERE,
}


def severity_of(token: str) -> Severity:
    """Classify a risk-factor token; severe markers take priority."""
    lowered = token.lower()
    if any(marker in lowered for marker in _SEVERE_MARKERS):
        return Severity.SEVERE
    if any(marker in lowered for marker in _CAUTION_MARKERS):
        return Severity.CAUTION
    return Severity.BENIGN


def humanize(token: str) -> str:
    """``moderate_hallucination_risk`` -> ``hallucination risk``."""
    stripped = _SEVERITY_PREFIX_RE.sub("", token.strip(), count=1)
    return _SEPARATOR_RE.sub(" ", stripped).strip()


def classify(token: str) -> Concern:
    return Concern(severity=severity_of(token), message=humanize(token))


def normalize(structured: Any) -> Concern:
    """Pass a structured ``{type, message}`` concern through.

    Only the type name is normalized; the message is kept verbatim.
    """
    if isinstance(structured, Concern):
        return structured

    if isinstance(structured, dict):
        type_name = structured.get("type")
        message = structured.get("message")
    else:
        type_name = getattr(structured, "type", None)
        message = getattr(structured, "message", None)

    key = str(type_name or "").strip().lower()
    severity = _TYPE_ALIASES.get(key)
    if severity is None:
        severity = severity_of(key)
    return Concern(severity=severity, message=message or "")


def ensure_concerns(concerns: Iterable[Concern]) -> List[Concern]:
    """Never return an empty concern list."""
    concerns = list(concerns)
    if not concerns:
        concerns.append(Concern(severity=Severity.BENIGN, message=NO_CONCERNS_MESSAGE))
    return concerns
