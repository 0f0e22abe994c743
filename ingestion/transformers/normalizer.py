"""
Transform raw source events into canonical destination rows
"""

from typing import Any, Dict, List, Optional, Sequence
from datetime import datetime, timezone
import math
from pydantic import ValidationError as PydanticValidationError
from schemas.events import CanonicalRow
from core.exceptions import ValidationError
import logging

logger = logging.getLogger(__name__)

ID_FIELD = "id"
TYPE_FIELD = "type"
TIMESTAMP_FIELD = "timestamp"

# Epoch values below this magnitude are seconds, anything larger is milliseconds.
EPOCH_MILLIS_THRESHOLD = 1e11


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a source timestamp into a timezone-aware UTC datetime.

    Accepts epoch seconds, epoch milliseconds (numbers) or ISO-8601 strings.

    Raises:
        ValidationError: If the value cannot be turned into a valid instant
    """
    if isinstance(value, bool):
        raise ValidationError(
            "Invalid timestamp type",
            context={"field_name": TIMESTAMP_FIELD, "field_value": value}
        )

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(
                "Invalid timestamp: not a finite number",
                context={"field_name": TIMESTAMP_FIELD, "field_value": value}
            )
        seconds = value / 1000 if abs(value) >= EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValidationError(
                "Invalid timestamp: out of range",
                context={"field_name": TIMESTAMP_FIELD, "field_value": value},
                original_exception=e
            )

    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(
                f"Invalid timestamp string: {value!r}",
                context={"field_name": TIMESTAMP_FIELD, "field_value": value},
                original_exception=e
            )
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    raise ValidationError(
        f"Invalid timestamp format: {type(value).__name__}",
        context={"field_name": TIMESTAMP_FIELD, "field_value": repr(value)}
    )


def normalize_event(raw: Dict[str, Any]) -> CanonicalRow:
    """
    Project one raw record into a CanonicalRow.

    Raises:
        ValidationError: Missing/blank id, or a timestamp that is present but invalid
    """
    if not isinstance(raw, dict):
        raise ValidationError(
            "Event is not an object",
            context={"field_value": repr(raw)[:200]}
        )

    raw_id = raw.get(ID_FIELD)
    if raw_id is None or not str(raw_id).strip():
        raise ValidationError(
            "Missing id field in event",
            context={"field_name": ID_FIELD, "field_value": raw_id}
        )

    occurred_at: Optional[datetime] = None
    if raw.get(TIMESTAMP_FIELD) is not None:
        occurred_at = parse_timestamp(raw[TIMESTAMP_FIELD])

    category = raw.get(TYPE_FIELD)

    try:
        return CanonicalRow(
            id=str(raw_id),
            category=str(category) if category is not None else None,
            occurred_at=occurred_at,
            payload=raw,
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Event failed schema validation",
            context={"field_name": ID_FIELD, "field_value": raw_id},
            original_exception=e
        )


def normalize_events(raws: Sequence[Dict[str, Any]]) -> List[CanonicalRow]:
    """
    Normalize a whole page. Fail-fast: the first bad record fails the batch.
    """
    rows = []
    for index, raw in enumerate(raws):
        try:
            rows.append(normalize_event(raw))
        except ValidationError as e:
            e.context["record_index"] = index
            e.context["record_id"] = raw.get(ID_FIELD) if isinstance(raw, dict) else None
            logger.error(
                f"Normalization failed for record {index} of {len(raws)}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise
    return rows
