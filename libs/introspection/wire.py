"""Raw wire shapes emitted by the introspection backend over its lifetime.

Each historical schema is a closed, typed variant. Unknown extra fields are
ignored; missing required fields or bad values fail validation, which the
adapter reports as ``SchemaMismatch``.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, ClassVar, List, Optional, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field

from .models import RiskLevel


class SchemaVersion(Enum):
    """Known wire schema variants, oldest first."""
    FLAT_COMPONENTS = "flat_components"
    KEY_COMPONENTS = "key_components"
    PERSISTED_RECORD = "persisted_record"
    STRUCTURED_CONCERNS = "structured_concerns"


def _lowercase(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


WireRiskLevel = Annotated[RiskLevel, BeforeValidator(_lowercase)]


class WireModel(BaseModel):
    """Base for raw payload models."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


# -- FLAT_COMPONENTS ---------------------------------------------------------

class FlatComponent(WireModel):
    head_id: str
    importance: float = 0.0
    label: Optional[str] = None
    role: Optional[str] = None


class FlatEdge(WireModel):
    source: str
    target: str
    strength: Optional[str] = None


class FlatComponentsPayload(WireModel):
    """Oldest shape: flat metrics, ``head_id`` tokens, string risk factors."""
    schema_version: ClassVar[SchemaVersion] = SchemaVersion.FLAT_COMPONENTS

    confidence: float
    risk_level: WireRiskLevel
    complexity: float = 0.0
    explanation: str = ""
    explanation_detail: str = ""
    components: List[FlatComponent]
    edges: List[FlatEdge] = Field(default_factory=list)
    flow_summary: str = ""
    risk_factors: List[str] = Field(default_factory=list)
    recommendation: str = ""
    analysis_time_ms: float = 0.0
    model: str = ""
    num_heads: Optional[int] = None


# -- KEY_COMPONENTS ----------------------------------------------------------

class Summary(WireModel):
    confidence: float
    risk_level: WireRiskLevel
    pattern_type: str = ""
    complexity: float = 0.0


class ExplanationBlock(WireModel):
    short: str = ""
    detailed: str = ""
    reasoning_type: str = ""


class KeyComponent(WireModel):
    id: str
    importance: float = 0.0
    label: Optional[str] = None
    description: Optional[str] = None


class FlowEdge(WireModel):
    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    strength: Optional[str] = None


class InformationFlow(WireModel):
    summary: str = ""
    edges: List[FlowEdge] = Field(default_factory=list)


class RiskAssessment(WireModel):
    level: Optional[WireRiskLevel] = None
    factors: List[str] = Field(default_factory=list)
    recommendation: str = ""


class AnalysisMetadata(WireModel):
    analysis_time_ms: float = 0.0
    model_analyzed: str = ""
    num_heads_analyzed: Optional[int] = None
    num_edges: Optional[int] = None


class KeyComponentsPayload(WireModel):
    """Nested ``summary``/``key_components``/``risk_assessment`` shape."""
    schema_version: ClassVar[SchemaVersion] = SchemaVersion.KEY_COMPONENTS

    summary: Summary
    explanation: ExplanationBlock = Field(default_factory=ExplanationBlock)
    key_components: List[KeyComponent]
    information_flow: InformationFlow = Field(default_factory=InformationFlow)
    risk_assessment: RiskAssessment = Field(default_factory=RiskAssessment)
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)


# -- PERSISTED_RECORD --------------------------------------------------------

class HeadRef(WireModel):
    layer: int = Field(..., ge=0)
    head: Optional[int] = Field(None, ge=0)


class PersistedHead(HeadRef):
    importance: float = 0.0
    label: Optional[str] = None
    description: Optional[str] = None


class PersistedEdge(WireModel):
    source: Union[HeadRef, str] = Field(..., alias="from")
    target: Union[HeadRef, str] = Field(..., alias="to")
    strength: Optional[str] = None


class PersistedRecordPayload(WireModel):
    """Row returned by the backend store, keyed by integer layer/head pairs."""
    schema_version: ClassVar[SchemaVersion] = SchemaVersion.PERSISTED_RECORD

    request_id: str
    timestamp: Optional[datetime] = None
    prompt: Optional[str] = None
    response: Optional[str] = None
    confidence: float
    risk_level: WireRiskLevel
    complexity: float = 0.0
    explanation_short: str = ""
    explanation_detailed: str = ""
    heads: List[PersistedHead] = Field(default_factory=list)
    flow_edges: List[PersistedEdge] = Field(default_factory=list)
    flow_summary: str = ""
    risk_factors: List[str] = Field(default_factory=list)
    recommendation: str = ""
    analysis_time_ms: float = 0.0
    model_analyzed: str = ""
    num_heads_analyzed: Optional[int] = None


# -- STRUCTURED_CONCERNS -----------------------------------------------------

class Metrics(WireModel):
    confidence: float
    risk_level: WireRiskLevel
    complexity: float = 0.0
    component_count: Optional[int] = None


class StructuredExplanation(WireModel):
    summary: str = ""
    details: str = ""


class StructuredComponent(WireModel):
    id: str
    importance: float = 0.0
    label: Optional[str] = None
    role: Optional[str] = None


class StructuredConnection(WireModel):
    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    weight: Optional[float] = None
    strength: Optional[str] = None


class StructuredConcern(WireModel):
    type: str = ""
    message: str = ""


class StructuredMetadata(WireModel):
    analysis_time_ms: float = 0.0
    model_analyzed: str = ""


class StructuredConcernsPayload(WireModel):
    """Newest shape: structured concerns and numeric connection weights."""
    schema_version: ClassVar[SchemaVersion] = SchemaVersion.STRUCTURED_CONCERNS

    analysis_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    prompt: Optional[str] = None
    output: Optional[str] = None
    metrics: Metrics
    explanation: StructuredExplanation = Field(default_factory=StructuredExplanation)
    components: List[StructuredComponent]
    connections: List[StructuredConnection] = Field(default_factory=list)
    flow_summary: str = ""
    concerns: List[StructuredConcern]
    recommendation: str = ""
    metadata: StructuredMetadata = Field(default_factory=StructuredMetadata)


# -- History ---------------------------------------------------------------

class HistoryRecord(WireModel):
    """One history row; older rows carry full texts, newer ones previews."""
    id: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: str = ""
    prompt: Optional[str] = None
    response: Optional[str] = None
    output: Optional[str] = None
    prompt_preview: Optional[str] = Field(None, alias="promptPreview")
    output_preview: Optional[str] = Field(None, alias="outputPreview")
    risk_level: WireRiskLevel = Field(..., validation_alias=AliasChoices("risk_level", "riskLevel"))
    confidence: float = 0.0


WirePayload = Union[
    FlatComponentsPayload,
    KeyComponentsPayload,
    PersistedRecordPayload,
    StructuredConcernsPayload,
]
