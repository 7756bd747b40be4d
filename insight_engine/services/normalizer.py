"""
Record Normalizer.

Converts source-specific raw records into canonical Observations and isolates
per-record malformation: a record that cannot be normalized is excluded,
logged, and counted in the DiagnosticReport, and the batch continues.

A record is valid when it carries a usable timestamp OR some free text.
Either is enough; defaults fill the rest:
- missing timestamp -> the run's as-of time
- missing id -> "{source}-{index}"

Field Maps:
Each source type declares which keys hold free text, timestamps, numeric
metrics, tags, participants, challenges and success factors. Keys are tried
in order and camelCase / snake_case aliases are both accepted. Unknown
source tags fall back to the generic map, which takes every string value as
text and every numeric value as a metric.

List-valued fields coming from flat exports (CSV) arrive as strings; they
are split on ';' or '|'.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from insight_engine.core.exceptions import ValidationError
from insight_engine.models import (
    DiagnosticReport,
    Observation,
    RawRecord,
    RecordRejection,
    SourceType,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

REASON_NOT_A_MAPPING = "payload is not a mapping"
REASON_NO_CONTENT = "missing timestamp and text"
REASON_INVALID_FIELDS = "invalid field values"

LIST_SPLIT_PATTERN = re.compile(r"\s*[;|]\s*")

ID_FIELDS: Tuple[str, ...] = ("id", "session_id", "sessionId", "uuid")

PARTICIPANT_FIELDS: Tuple[str, ...] = (
    "participants", "author", "developer", "developer_id", "user_id",
)

CHALLENGE_FIELDS: Tuple[str, ...] = ("challenges",)

SUCCESS_FACTOR_FIELDS: Tuple[str, ...] = ("successFactors", "success_factors")

# (raw key, tag prefix); an empty prefix keeps the raw value
COMMON_TAG_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("tags", ""),
    ("tenant_id", "tenant:"),
    ("tenantId", "tenant:"),
)


# =============================================================================
# Source Field Maps
# =============================================================================


@dataclass(frozen=True)
class SourceFieldMap:
    """
    Keys of interest for one source type.

    Attributes:
        text_fields: Keys concatenated, in order, into Observation.text
        timestamp_fields: Keys tried in order for the timestamp
        metric_fields: (canonical name, raw key aliases) pairs
        tag_fields: (raw key, prefix) pairs added to the common tag fields
    """
    text_fields: Tuple[str, ...]
    timestamp_fields: Tuple[str, ...]
    metric_fields: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    tag_fields: Tuple[Tuple[str, str], ...] = ()


DEFAULT_TIMESTAMP_FIELDS: Tuple[str, ...] = (
    "timestamp", "created_at", "createdAt", "date", "updated_at", "updatedAt",
)

SOURCE_FIELD_MAPS: Dict[SourceType, SourceFieldMap] = {
    SourceType.CONVERSATION: SourceFieldMap(
        text_fields=(
            "title", "projectIntent", "progressMarkers", "successFactors",
            "challenges", "resolutions", "content",
        ),
        timestamp_fields=("date", "timestamp", "createdAt", "created_at"),
        metric_fields=(
            ("efficiency", ("efficiency",)),
            ("userSatisfaction", ("userSatisfaction", "user_satisfaction")),
            ("codeQuality", ("codeQuality", "code_quality")),
            ("timeToCompletion", ("timeToCompletion", "time_to_completion")),
        ),
    ),
    SourceType.JOURNAL: SourceFieldMap(
        text_fields=("title", "content", "category"),
        timestamp_fields=("created_at", "createdAt", "date", "timestamp"),
        metric_fields=(("confidence", ("confidence",)),),
        tag_fields=(("category", "category:"), ("source", "origin:")),
    ),
    SourceType.MODULE_ACTIVITY: SourceFieldMap(
        text_fields=("name", "subject", "description", "context", "type"),
        timestamp_fields=("updated_at", "updatedAt", "created_at", "createdAt", "timestamp"),
        tag_fields=(("type", "type:"),),
    ),
    SourceType.DREAMSTATE_SESSION: SourceFieldMap(
        text_fields=("title", "business_context", "businessContext", "mode"),
        timestamp_fields=("created_at", "createdAt", "timestamp"),
        metric_fields=(
            ("totalNodes", ("total_nodes", "totalNodes")),
            ("currentDepth", ("current_depth", "currentDepth")),
            ("maxDepth", ("max_depth", "maxDepth")),
        ),
        tag_fields=(("status", "status:"), ("mode", "mode:")),
    ),
    SourceType.TENANT: SourceFieldMap(
        text_fields=("name", "industry", "description"),
        timestamp_fields=("created_at", "createdAt", "timestamp"),
        metric_fields=(("monthlyRevenue", ("monthly_revenue", "monthlyRevenue")),),
        tag_fields=(("id", "tenant:"), ("industry", "industry:")),
    ),
}


# =============================================================================
# Value Coercion Helpers
# =============================================================================


def resolve_source(tag: Optional[str]) -> SourceType:
    """Map a raw source tag onto a SourceType, falling back to GENERIC."""
    if not tag:
        return SourceType.GENERIC
    try:
        return SourceType(str(tag).strip().lower())
    except ValueError:
        logger.debug(f"Unknown source tag '{tag}', using generic field map")
        return SourceType.GENERIC


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return False


def _as_list(value: Any) -> List[str]:
    """Coerce a scalar, list, or delimited string into a list of strings."""
    if _is_missing(value):
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if not _is_missing(v) and str(v).strip()]
    if isinstance(value, str):
        return [part for part in LIST_SPLIT_PATTERN.split(value.strip()) if part]
    return [str(value)]


def _text_parts(value: Any) -> List[str]:
    """Free-text fragments of one field value."""
    if isinstance(value, str):
        stripped = value.strip()
        return [stripped] if stripped else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if isinstance(v, str) and v.strip()]
    return []


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into a timezone-aware UTC datetime.

    Accepts datetimes, dates (as midnight UTC), ISO-8601 strings and epoch
    seconds. Returns None for anything unparseable so the caller can fall
    back to the as-of time.
    """
    if _is_missing(value) or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    # DATE columns arrive as plain dates
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        parsed = pd.to_datetime(value, unit="s", utc=True, errors="coerce")
    elif isinstance(value, str) and value.strip():
        parsed = pd.to_datetime(value.strip(), utc=True, errors="coerce")
    else:
        return None

    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _coerce_metric(value: Any) -> Optional[float]:
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _first_present(data: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in data and not _is_missing(data[key]):
            return data[key]
    return None


# =============================================================================
# Field Extraction
# =============================================================================


def _extract_text(data: Mapping[str, Any], field_map: Optional[SourceFieldMap]) -> str:
    parts: List[str] = []
    if field_map is None:
        skip = set(ID_FIELDS) | set(DEFAULT_TIMESTAMP_FIELDS)
        for key, value in data.items():
            if key not in skip:
                parts.extend(_text_parts(value))
    else:
        for key in field_map.text_fields:
            parts.extend(_text_parts(data.get(key)))
    return "\n".join(parts)


def _extract_metrics(
    data: Mapping[str, Any],
    field_map: Optional[SourceFieldMap],
) -> Dict[str, float]:
    metrics: Dict[str, float] = {}
    if field_map is None:
        for key, value in data.items():
            if key in ID_FIELDS:
                continue
            metric = _coerce_metric(value) if not isinstance(value, str) else None
            if metric is not None:
                metrics[key] = metric
        return metrics

    for canonical, aliases in field_map.metric_fields:
        metric = _coerce_metric(_first_present(data, aliases))
        if metric is not None:
            metrics[canonical] = metric
    return metrics


def _extract_tags(data: Mapping[str, Any], field_map: Optional[SourceFieldMap]) -> List[str]:
    tag_fields = COMMON_TAG_FIELDS + (field_map.tag_fields if field_map else ())
    tags: List[str] = []
    for key, prefix in tag_fields:
        for value in _as_list(data.get(key)):
            tag = f"{prefix}{value}"
            if tag not in tags:
                tags.append(tag)
    return tags


# =============================================================================
# Normalization
# =============================================================================


def normalize_record(
    data: Any,
    source: Optional[str],
    index: int,
    default_timestamp: datetime,
) -> Observation:
    """
    Normalize one raw record into an Observation.

    Args:
        data: The raw, source-specific payload
        source: The record's source tag
        index: Position of the record in its batch, used for default ids
        default_timestamp: Timestamp used when the record carries none

    Returns:
        The canonical Observation

    Raises:
        ValidationError: If the payload is not a mapping, has neither a
            usable timestamp nor any text, or holds field values the
            Observation model rejects
    """
    source_type = resolve_source(source)
    raw_id = _first_present(data, ID_FIELDS) if isinstance(data, Mapping) else None
    record_id = str(raw_id) if raw_id is not None else f"{source_type.value}-{index}"

    if not isinstance(data, Mapping):
        raise ValidationError(REASON_NOT_A_MAPPING, record_id=record_id, source=source_type.value)

    field_map = SOURCE_FIELD_MAPS.get(source_type)
    timestamp_fields = field_map.timestamp_fields if field_map else DEFAULT_TIMESTAMP_FIELDS

    timestamp = parse_timestamp(_first_present(data, timestamp_fields))
    text = _extract_text(data, field_map)

    if timestamp is None and not text:
        raise ValidationError(REASON_NO_CONTENT, record_id=record_id, source=source_type.value)

    try:
        return Observation(
            id=record_id,
            source=source_type,
            timestamp=timestamp or default_timestamp,
            text=text,
            tags=_extract_tags(data, field_map),
            participants=_as_list(_first_present(data, PARTICIPANT_FIELDS)),
            metrics=_extract_metrics(data, field_map),
            challenges=_as_list(_first_present(data, CHALLENGE_FIELDS)),
            successFactors=_as_list(_first_present(data, SUCCESS_FACTOR_FIELDS)),
        )
    except PydanticValidationError as e:
        raise ValidationError(
            REASON_INVALID_FIELDS, record_id=record_id, source=source_type.value
        ) from e


def normalize_batch(
    records: Sequence[RawRecord],
    default_timestamp: datetime,
) -> Tuple[List[Observation], DiagnosticReport]:
    """
    Normalize a batch, excluding malformed records.

    Args:
        records: Raw records in input order
        default_timestamp: Timestamp for records that carry none

    Returns:
        Tuple of (observations in input order, diagnostic report)
    """
    observations: List[Observation] = []
    rejections: List[RecordRejection] = []

    for index, record in enumerate(records):
        try:
            observations.append(
                normalize_record(record.data, record.source, index, default_timestamp)
            )
        except ValidationError as e:
            logger.warning(f"Excluding record: {e}")
            rejections.append(RecordRejection(
                recordId=e.record_id or f"{record.source}-{index}",
                source=e.source or str(record.source),
                reason=e.reason,
            ))

    histogram = Counter(r.reason for r in rejections)
    report = DiagnosticReport(
        seen=len(records),
        excluded=len(rejections),
        reasonHistogram=dict(histogram),
        rejections=rejections,
    )

    logger.info(
        f"Normalized {len(observations)} of {len(records)} records "
        f"({len(rejections)} excluded)"
    )
    return observations, report


__all__ = [
    "SourceFieldMap",
    "SOURCE_FIELD_MAPS",
    "resolve_source",
    "parse_timestamp",
    "normalize_record",
    "normalize_batch",
]
