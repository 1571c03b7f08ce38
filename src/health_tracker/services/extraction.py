"""Structured event extraction using LLMs."""

import base64
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from health_tracker.domain.errors import ExtractionContractError
from health_tracker.domain.extraction import ExtractionResult, LabelExtraction
from health_tracker.domain.registry import RegistryMatch

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "food": ("description",),
    "glucose": ("value", "units"),
    "insulin": ("value", "units", "insulin_type"),
    "activity": ("activity_type", "duration"),
    "supplement": ("name", "dosage"),
    "sauna": ("duration", "temperature"),
    "medication": ("name", "dosage"),
    "symptom": ("description",),
}

_NULLABLE_STRING = {"anyOf": [{"type": "string"}, {"type": "null"}]}
_NULLABLE_NUMBER = {"anyOf": [{"type": "number"}, {"type": "null"}]}

EVENT_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "event_type": {"type": "string", "enum": list(REQUIRED_FIELDS)},
        "event_data": {
            "type": "object",
            "properties": {
                "description": _NULLABLE_STRING,
                "name": _NULLABLE_STRING,
                "brand": _NULLABLE_STRING,
                "dosage": _NULLABLE_STRING,
                "units": _NULLABLE_STRING,
                "value": _NULLABLE_STRING,
                "insulin_type": _NULLABLE_STRING,
                "activity_type": _NULLABLE_STRING,
                "intensity": _NULLABLE_STRING,
                "severity": _NULLABLE_STRING,
                "route": _NULLABLE_STRING,
                "duration": _NULLABLE_NUMBER,
                "temperature": _NULLABLE_NUMBER,
                "calories": _NULLABLE_NUMBER,
                "protein": _NULLABLE_NUMBER,
                "carbs": _NULLABLE_NUMBER,
                "fat": _NULLABLE_NUMBER,
                "active_ingredients": {
                    "anyOf": [
                        {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "name": {"type": "string"},
                                    "strength": _NULLABLE_STRING,
                                },
                                "required": ["name"],
                            },
                        },
                        {"type": "null"},
                    ]
                },
            },
        },
        "confidence": {"type": "integer", "minimum": 0, "maximum": 100},
    },
    "required": ["event_type", "event_data", "confidence"],
}

LABEL_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "product_name": {"type": "string"},
        "brand": _NULLABLE_STRING,
        "barcode": _NULLABLE_STRING,
        "product_type": {"type": "string", "enum": ["food", "supplement", "medication"]},
        "serving_quantity": _NULLABLE_NUMBER,
        "serving_unit": _NULLABLE_STRING,
        "serving_weight_grams": _NULLABLE_NUMBER,
        "calories": _NULLABLE_NUMBER,
        "protein": _NULLABLE_NUMBER,
        "carbs": _NULLABLE_NUMBER,
        "fat": _NULLABLE_NUMBER,
        "fiber": _NULLABLE_NUMBER,
        "sugar": _NULLABLE_NUMBER,
        "micros": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "amount": {"type": "number"},
                    "unit": {"type": "string"},
                },
                "required": ["amount", "unit"],
            },
        },
        "active_ingredients": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "strength": _NULLABLE_STRING,
                    "atc_code": _NULLABLE_STRING,
                },
                "required": ["name"],
            },
        },
        "package_quantity": _NULLABLE_NUMBER,
        "container_type": _NULLABLE_STRING,
        "confidence": {"type": "integer", "minimum": 0, "maximum": 100},
    },
    "required": ["product_name", "product_type", "confidence"],
}

_logger = logging.getLogger(__name__)


class ExtractionClient(Protocol):
    """Interface for LLM structured extraction."""

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        content: list[dict[str, object]],
        schema: dict[str, object],
        schema_name: str,
    ) -> dict[str, object]:
        """Return structured extraction data."""


def parse_extraction(raw: object) -> ExtractionResult:
    """Validate an oracle payload and compute which required fields are missing."""
    payload = raw
    if isinstance(raw, str | bytes):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ExtractionContractError("Extraction response is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise ExtractionContractError("Extraction response is not a JSON object")
    event_type = payload.get("event_type")
    if not event_type:
        raise ExtractionContractError("Extraction response has no event_type")
    if event_type not in REQUIRED_FIELDS:
        raise ExtractionContractError(f"Unknown event type: {event_type}")
    event_data = payload.get("event_data")
    if not isinstance(event_data, dict):
        raise ExtractionContractError("Extraction response has no event_data object")
    missing = [
        name for name in REQUIRED_FIELDS[event_type] if _is_empty(event_data.get(name))
    ]
    try:
        return ExtractionResult(
            event_type=event_type,
            event_data=event_data,
            confidence=payload.get("confidence") or 0,
            complete=not missing,
            missing_fields=missing,
        )
    except ValidationError as exc:
        raise ExtractionContractError(f"Invalid extraction payload: {exc}") from exc


@dataclass
class ExtractionService:
    """Service that prepares extraction prompts and validates results."""

    client: ExtractionClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def extract_from_text(
        self, text: str, history: Sequence[RegistryMatch] | None = None
    ) -> ExtractionResult:
        """Classify free text into a health event."""
        prompt = _event_prompt(history) + f"\n\nUser input: {text}"
        raw = await self.client.extract(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            content=[{"type": "input_text", "text": prompt}],
            schema=EVENT_SCHEMA,
            schema_name="health_event",
        )
        result = parse_extraction(raw)
        _logger.info(
            "Extracted event: type=%s confidence=%s complete=%s",
            result.event_type,
            result.confidence,
            result.complete,
        )
        return result

    async def extract_from_image(
        self, image_bytes: bytes, history: Sequence[RegistryMatch] | None = None
    ) -> ExtractionResult:
        """Classify a photo into a health event."""
        prompt = _event_prompt(history) + "\n\nDescribe the event shown in the photo."
        raw = await self.client.extract(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            content=[
                {"type": "input_text", "text": prompt},
                {"type": "input_image", "image_url": _to_data_url(image_bytes)},
            ],
            schema=EVENT_SCHEMA,
            schema_name="health_event",
        )
        return parse_extraction(raw)

    async def extract_label(self, image_bytes: bytes) -> LabelExtraction:
        """Read product identity and nutrition facts from a label photo."""
        prompt = (
            "Read the nutrition or supplement facts label. Return the product name, "
            "brand, barcode digits if printed, product type, serving size, macros per "
            "serving, micronutrients as {amount, unit} per serving, active "
            "ingredients with their strength (e.g. 200mg), package quantity, and a "
            "confidence (0-100) reflecting how legible the label was."
        )
        raw = await self.client.extract(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            content=[
                {"type": "input_text", "text": prompt},
                {"type": "input_image", "image_url": _to_data_url(image_bytes)},
            ],
            schema=LABEL_SCHEMA,
            schema_name="nutrition_label",
        )
        try:
            return LabelExtraction.model_validate(raw)
        except ValidationError as exc:
            raise ExtractionContractError(f"Invalid label extraction: {exc}") from exc


def _event_prompt(history: Sequence[RegistryMatch] | None) -> str:
    """Build the classification prompt with optional user history."""
    lines = [
        "Classify the user's health log entry into exactly one event type: "
        + ", ".join(REQUIRED_FIELDS)
        + ".",
        "Required event_data fields per type: "
        + "; ".join(
            f"{event_type}: {', '.join(fields)}"
            for event_type, fields in REQUIRED_FIELDS.items()
        )
        + ".",
        "Return a confidence from 0 to 100. Leave unknown fields null.",
    ]
    if history:
        known = ", ".join(
            f"{match.product_name} ({match.event_type}, logged {match.times_logged}x)"
            for match in history
        )
        lines.append(f"Items this user has logged before: {known}.")
    return "\n".join(lines)


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | dict):
        return not value
    return False


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
