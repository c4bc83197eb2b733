"""Canonical records handed to the presentation layer.

Attributes are snake_case in Python and camelCase on the wire
(``model_dump(by_alias=True)``). Every model is frozen: a record is built
once by the schema adapter and never mutated afterwards.
"""

from enum import Enum
from typing import List, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Concern severities, ordered from least to most serious."""
    BENIGN = "benign"
    CAUTION = "caution"
    SEVERE = "severe"


class RiskLevel(str, Enum):
    """Overall risk level of an analysis."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CanonicalModel(BaseModel):
    """Shared configuration for canonical records."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CanonicalComponent(CanonicalModel):
    """One analyzed unit of the inspected model."""
    layer: int = Field(..., ge=0)
    sub_unit: int = Field(..., ge=0)
    token: str
    importance: float = Field(..., ge=0.0, le=1.0)
    label: str = ""


class CanonicalConnection(CanonicalModel):
    """Weighted directed relation between two component tokens."""
    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    weight: float = Field(..., ge=0.0, le=1.0)


class Concern(CanonicalModel):
    """Categorized risk note attached to a result."""
    severity: Severity
    message: str


class CanonicalResult(CanonicalModel):
    """Version-independent analysis record."""
    id: str
    timestamp: str
    prompt: str = ""
    output: str = ""
    confidence: float = Field(..., ge=0.0, le=1.0)
    risk_level: RiskLevel
    complexity: float = Field(..., ge=0.0, le=1.0)
    component_count: int = Field(..., ge=0)
    explanation: str = ""
    components: Tuple[CanonicalComponent, ...] = ()
    connections: Tuple[CanonicalConnection, ...] = ()
    concerns: Tuple[Concern, ...] = Field(..., min_length=1)
    analysis_time_ms: float = Field(0.0, ge=0.0)
    model_analyzed: str = ""
    recommendation: str = ""
    flow_summary: str = ""

    def component_tokens(self) -> List[str]:
        return [component.token for component in self.components]

    def dangling_connections(self) -> List[CanonicalConnection]:
        """Connections whose endpoints are not in the component list.

        Older backends truncate component lists independently of the edge
        list, so these are tolerated rather than rejected.
        """
        tokens = set(self.component_tokens())
        return [
            connection for connection in self.connections
            if connection.source not in tokens or connection.target not in tokens
        ]


class HistoryItem(CanonicalModel):
    """Abbreviated record shown in the history listing."""
    id: str
    timestamp: str
    prompt_preview: str
    output_preview: str
    risk_level: RiskLevel
    confidence: float = Field(..., ge=0.0, le=1.0)


class HealthStatus(CanonicalModel):
    """Backend health as reported by ``GET /health``."""
    status: str
    upstream_connected: bool = Field(
        False,
        validation_alias=AliasChoices("upstreamConnected", "upstream_connected", "glassbox_connected"),
        serialization_alias="upstreamConnected",
    )
    store_connected: bool = Field(
        False,
        validation_alias=AliasChoices("storeConnected", "store_connected", "database_connected"),
        serialization_alias="storeConnected",
    )
