"""Schema adapter: raw backend payloads to ``CanonicalResult``.

The backend's wire schema changed shape several times. Detection happens once,
in ``detect_schema``, by looking at a few discriminating top-level fields:

- ``request_id``                -> persisted record (backend store rows)
- ``key_components``            -> nested summary/key_components shape
- ``components`` + ``concerns`` -> structured concerns shape
- ``components``                -> flat components shape

Each variant is validated into its typed wire model and handed to exactly one
mapping function. Anything else is a ``SchemaMismatch``; no best-effort record
is ever produced for an unrecognized or invalid payload.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from pydantic import ValidationError
import structlog

from libs.common.metrics import MetricsCollector
from .codec import MISSING_INDEX, ComponentKey, decode, encode, parse
from .concerns import classify, ensure_concerns, normalize
from .errors import SchemaMismatch
from .models import (
    CanonicalComponent,
    CanonicalConnection,
    CanonicalResult,
    Concern,
    HealthStatus,
    HistoryItem,
    RiskLevel,
)
from .quantizer import quantize
from .wire import (
    FlatComponentsPayload,
    HeadRef,
    HistoryRecord,
    KeyComponentsPayload,
    PersistedRecordPayload,
    SchemaVersion,
    StructuredConcernsPayload,
    WireModel,
)

logger = structlog.get_logger("introspection.adapter")

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]

PREVIEW_LENGTH = 50
PREVIEW_SUFFIX = "..."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AdaptContext:
    """Caller-supplied values for fields a payload may not carry.

    ``id_factory`` is only invoked when the payload has no server-assigned id.
    """
    id_factory: IdFactory
    prompt: str = ""
    output: str = ""
    clock: Clock = utc_now

    def resolve_id(self, raw_id: Optional[str]) -> str:
        return raw_id if raw_id else self.id_factory()

    def resolve_timestamp(self, raw: Optional[datetime]) -> str:
        return (raw or self.clock()).isoformat()


def detect_schema(payload: Any) -> SchemaVersion:
    """Identify which wire schema a raw payload uses."""
    if not isinstance(payload, Mapping):
        raise SchemaMismatch(f"Expected a JSON object, got {type(payload).__name__}")

    if "request_id" in payload:
        return SchemaVersion.PERSISTED_RECORD
    if "key_components" in payload:
        return SchemaVersion.KEY_COMPONENTS
    if "components" in payload:
        if "concerns" in payload:
            return SchemaVersion.STRUCTURED_CONCERNS
        return SchemaVersion.FLAT_COMPONENTS

    raise SchemaMismatch("Payload matches no known wire schema", payload.keys())


# -- shared helpers ----------------------------------------------------------

def _unit(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


def _first_label(*candidates: Optional[str]) -> str:
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return ""


def _explanation(summary: str, detailed: str) -> str:
    summary, detailed = summary.strip(), detailed.strip()
    if summary and detailed:
        return f"{summary}\n\n{detailed}"
    return summary


def _component(
    key: Union[ComponentKey, str],
    importance: float,
    *labels: Optional[str]
) -> CanonicalComponent:
    layer, sub_unit = key if isinstance(key, ComponentKey) else decode(key)
    return CanonicalComponent(
        layer=layer,
        sub_unit=sub_unit,
        token=encode(layer, sub_unit),
        importance=_unit(importance),
        label=_first_label(*labels),
    )


def _unique(components: Iterable[CanonicalComponent]) -> List[CanonicalComponent]:
    seen = set()
    unique = []
    for component in components:
        if component.token in seen:
            logger.warning("Duplicate component token dropped", token=component.token)
            continue
        seen.add(component.token)
        unique.append(component)
    return unique


def _connection(source: str, target: str, weight: float) -> CanonicalConnection:
    return CanonicalConnection(source=source, target=target, weight=_unit(weight))


def _head_key(ref: HeadRef) -> ComponentKey:
    return ComponentKey(ref.layer, ref.head if ref.head is not None else MISSING_INDEX)


def _endpoint(ref: Union[HeadRef, str]) -> str:
    """Canonical token for a connection endpoint.

    Strings that are not component tokens are kept verbatim so the connection
    is reported as dangling instead of silently pointing at ``L0H0``.
    """
    if isinstance(ref, HeadRef):
        return encode(*_head_key(ref))
    key = parse(ref)
    return encode(*key) if key is not None else ref


def _result(
    ctx: AdaptContext,
    *,
    raw_id: Optional[str],
    raw_timestamp: Optional[datetime],
    raw_prompt: Optional[str],
    raw_output: Optional[str],
    confidence: float,
    risk_level: RiskLevel,
    complexity: float,
    component_count: Optional[int],
    explanation: str,
    components: Iterable[CanonicalComponent],
    connections: Sequence[CanonicalConnection],
    concerns: Iterable[Concern],
    analysis_time_ms: float,
    model_analyzed: str,
    recommendation: str,
    flow_summary: str,
) -> CanonicalResult:
    components = _unique(components)
    if component_count is None:
        component_count = len(components)

    result = CanonicalResult(
        id=ctx.resolve_id(raw_id),
        timestamp=ctx.resolve_timestamp(raw_timestamp),
        prompt=raw_prompt if raw_prompt is not None else ctx.prompt,
        output=raw_output if raw_output is not None else ctx.output,
        confidence=_unit(confidence),
        risk_level=risk_level,
        complexity=_unit(complexity),
        component_count=max(0, component_count),
        explanation=explanation,
        components=tuple(components),
        connections=tuple(connections),
        concerns=tuple(ensure_concerns(concerns)),
        analysis_time_ms=max(0.0, float(analysis_time_ms)),
        model_analyzed=model_analyzed,
        recommendation=recommendation,
        flow_summary=flow_summary,
    )

    dangling = result.dangling_connections()
    if dangling:
        logger.warning(
            "Connections reference components missing from the result",
            result_id=result.id,
            dangling=len(dangling),
            tokens=sorted({c.source for c in dangling} | {c.target for c in dangling}),
        )
    return result


# -- one mapping function per wire schema ------------------------------------

def _from_flat_components(raw: FlatComponentsPayload, ctx: AdaptContext) -> CanonicalResult:
    return _result(
        ctx,
        raw_id=None,
        raw_timestamp=None,
        raw_prompt=None,
        raw_output=None,
        confidence=raw.confidence,
        risk_level=raw.risk_level,
        complexity=raw.complexity,
        component_count=raw.num_heads,
        explanation=_explanation(raw.explanation, raw.explanation_detail),
        components=(_component(c.head_id, c.importance, c.label, c.role) for c in raw.components),
        connections=[
            _connection(_endpoint(e.source), _endpoint(e.target), quantize(e.strength))
            for e in raw.edges
        ],
        concerns=(classify(factor) for factor in raw.risk_factors),
        analysis_time_ms=raw.analysis_time_ms,
        model_analyzed=raw.model,
        recommendation=raw.recommendation,
        flow_summary=raw.flow_summary,
    )


def _from_key_components(raw: KeyComponentsPayload, ctx: AdaptContext) -> CanonicalResult:
    flow = raw.information_flow
    return _result(
        ctx,
        raw_id=None,
        raw_timestamp=None,
        raw_prompt=None,
        raw_output=None,
        confidence=raw.summary.confidence,
        risk_level=raw.summary.risk_level,
        complexity=raw.summary.complexity,
        component_count=raw.metadata.num_heads_analyzed,
        explanation=_explanation(raw.explanation.short, raw.explanation.detailed),
        components=(
            _component(c.id, c.importance, c.label, c.description) for c in raw.key_components
        ),
        connections=[
            _connection(_endpoint(e.source), _endpoint(e.target), quantize(e.strength))
            for e in flow.edges
        ],
        concerns=(classify(factor) for factor in raw.risk_assessment.factors),
        analysis_time_ms=raw.metadata.analysis_time_ms,
        model_analyzed=raw.metadata.model_analyzed,
        recommendation=raw.risk_assessment.recommendation,
        flow_summary=flow.summary,
    )


def _from_persisted_record(raw: PersistedRecordPayload, ctx: AdaptContext) -> CanonicalResult:
    return _result(
        ctx,
        raw_id=raw.request_id,
        raw_timestamp=raw.timestamp,
        raw_prompt=raw.prompt,
        raw_output=raw.response,
        confidence=raw.confidence,
        risk_level=raw.risk_level,
        complexity=raw.complexity,
        component_count=raw.num_heads_analyzed,
        explanation=_explanation(raw.explanation_short, raw.explanation_detailed),
        components=(
            _component(_head_key(h), h.importance, h.label, h.description) for h in raw.heads
        ),
        connections=[
            _connection(_endpoint(e.source), _endpoint(e.target), quantize(e.strength))
            for e in raw.flow_edges
        ],
        concerns=(classify(factor) for factor in raw.risk_factors),
        analysis_time_ms=raw.analysis_time_ms,
        model_analyzed=raw.model_analyzed,
        recommendation=raw.recommendation,
        flow_summary=raw.flow_summary,
    )


def _from_structured_concerns(raw: StructuredConcernsPayload, ctx: AdaptContext) -> CanonicalResult:
    return _result(
        ctx,
        raw_id=raw.analysis_id,
        raw_timestamp=raw.timestamp,
        raw_prompt=raw.prompt,
        raw_output=raw.output,
        confidence=raw.metrics.confidence,
        risk_level=raw.metrics.risk_level,
        complexity=raw.metrics.complexity,
        component_count=raw.metrics.component_count,
        explanation=_explanation(raw.explanation.summary, raw.explanation.details),
        components=(_component(c.id, c.importance, c.label, c.role) for c in raw.components),
        connections=[
            _connection(
                _endpoint(c.source),
                _endpoint(c.target),
                c.weight if c.weight is not None else quantize(c.strength),
            )
            for c in raw.connections
        ],
        concerns=(normalize(concern) for concern in raw.concerns),
        analysis_time_ms=raw.metadata.analysis_time_ms,
        model_analyzed=raw.metadata.model_analyzed,
        recommendation=raw.recommendation,
        flow_summary=raw.flow_summary,
    )


_MAPPERS: Dict[SchemaVersion, Tuple[Type[WireModel], Callable[[Any, AdaptContext], CanonicalResult]]] = {
    SchemaVersion.FLAT_COMPONENTS: (FlatComponentsPayload, _from_flat_components),
    SchemaVersion.KEY_COMPONENTS: (KeyComponentsPayload, _from_key_components),
    SchemaVersion.PERSISTED_RECORD: (PersistedRecordPayload, _from_persisted_record),
    SchemaVersion.STRUCTURED_CONCERNS: (StructuredConcernsPayload, _from_structured_concerns),
}


def adapt(
    payload: Any,
    *,
    id_factory: IdFactory,
    prompt: str = "",
    output: str = "",
    clock: Clock = utc_now,
    metrics: Optional[MetricsCollector] = None
) -> CanonicalResult:
    """Adapt one raw analysis payload into a canonical record.

    Parameters
    - payload: Decoded JSON body from the backend
    - id_factory: Called to mint an id when the payload carries none
    - prompt/output: Submitted texts, used when the payload omits them
    - clock: Timestamp source when the payload carries none
    - metrics: Optional collector for adaptation outcomes

    Raises
    - ``SchemaMismatch`` when the payload matches no known schema or fails
      validation for the schema it resembles
    """
    try:
        version = detect_schema(payload)
    except SchemaMismatch:
        if metrics:
            metrics.record_adaptation("unknown", "mismatch")
        logger.warning(
            "Unrecognized analysis payload",
            keys=sorted(payload.keys()) if isinstance(payload, Mapping) else None,
        )
        raise

    model_class, mapper = _MAPPERS[version]
    try:
        raw = model_class.model_validate(payload)
    except ValidationError as e:
        if metrics:
            metrics.record_adaptation(version.value, "invalid")
        logger.warning(
            "Analysis payload failed validation",
            schema_version=version.value,
            error_count=e.error_count(),
        )
        raise SchemaMismatch(
            f"Payload resembles {version.value} but is invalid ({e.error_count()} error(s))",
            payload.keys(),
        ) from e

    result = mapper(raw, AdaptContext(id_factory=id_factory, prompt=prompt, output=output, clock=clock))
    if metrics:
        metrics.record_adaptation(version.value, "ok")
    logger.debug(
        "Analysis payload adapted",
        schema_version=version.value,
        result_id=result.id,
        components=len(result.components),
    )
    return result


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Abbreviate ``text`` to ``length`` characters plus an ellipsis."""
    if len(text) > length:
        return text[:length] + PREVIEW_SUFFIX
    return text


def _history_item(record: HistoryRecord) -> HistoryItem:
    result_id = record.id or record.request_id
    if not result_id:
        raise SchemaMismatch("History item carries no identifier")

    output = record.output if record.output is not None else record.response
    return HistoryItem(
        id=result_id,
        timestamp=record.timestamp,
        prompt_preview=(
            record.prompt_preview if record.prompt_preview is not None else preview(record.prompt or "")
        ),
        output_preview=(
            record.output_preview if record.output_preview is not None else preview(output or "")
        ),
        risk_level=record.risk_level,
        confidence=_unit(record.confidence),
    )


def adapt_history(items: Sequence[Any]) -> List[HistoryItem]:
    """Adapt raw history rows, preserving backend order."""
    try:
        records = [HistoryRecord.model_validate(item) for item in items]
    except ValidationError as e:
        logger.warning("History payload failed validation", error_count=e.error_count())
        raise SchemaMismatch(f"History item is invalid ({e.error_count()} error(s))") from e
    return [_history_item(record) for record in records]


def adapt_health(payload: Any) -> HealthStatus:
    try:
        return HealthStatus.model_validate(payload)
    except ValidationError as e:
        raise SchemaMismatch(f"Health payload is invalid ({e.error_count()} error(s))") from e
