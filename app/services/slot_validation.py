# app/services/slot_validation.py
# Validación al escribir (JSON Schema + reglas estructurales). Nada inválido llega a la DB.
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from jsonschema import Draft202012Validator

from app.services.errors import ValidationError
from app.services.slot_renderer import SLOT_TYPES
from app.services.slot_tree import COL_SPAN_TOKEN_RE, find_cycle, is_legacy_col_span, is_valid_span

_STYLE_MAP = {
    "type": ["object", "null"],
    "additionalProperties": {"type": ["string", "number", "null"]},
}

SLOT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["id", "type"],
    "properties": {
        "id": {"type": "string", "minLength": 1, "maxLength": 128},
        "type": {"enum": sorted(SLOT_TYPES)},
        "parentId": {"type": ["string", "null"]},
        "content": {"type": ["string", "number", "null"]},
        "className": {"type": ["string", "null"]},
        "parentClassName": {"type": ["string", "null"]},
        "styles": _STYLE_MAP,
        "containerStyles": _STYLE_MAP,
        "viewMode": {
            "anyOf": [
                {"type": "array", "items": {"type": "string"}},
                {"type": "string"},
                {"type": "null"},
            ]
        },
        "position": {
            "type": ["object", "null"],
            "properties": {
                "row": {"type": "number"},
                "col": {"type": "number"},
            },
        },
        "component": {"type": ["string", "null"]},
        "metadata": {
            "type": ["object", "null"],
            "properties": {
                "renderCondition": {"type": ["string", "null"]},
                "component": {"type": ["string", "null"]},
            },
        },
    },
    # metadata abierta y campos de editor desconocidos se conservan
    "additionalProperties": True,
}

_slot_validator = Draft202012Validator(SLOT_SCHEMA)


def col_span_problem(value: Any, *, nested: bool = False) -> Optional[str]:
    """Devuelve por qué un colSpan no es resoluble, o None si es una de las formas aceptadas."""
    if value is None or value == "":
        return None
    if isinstance(value, bool) or isinstance(value, float):
        return f"expected an integer 1..12, got {value!r}"
    if isinstance(value, int):
        return None if is_valid_span(value) else f"{value} is outside 1..12"
    if isinstance(value, str):
        return None if COL_SPAN_TOKEN_RE.search(value) else f"'{value}' has no col-span-N class"
    if isinstance(value, Mapping):
        if is_legacy_col_span(value):
            bad = [k for k, v in value.items() if not is_valid_span(v)]
            return f"legacy breakpoints {bad} must be integers 1..12" if bad else None
        if nested:
            return "nested viewMode maps are not supported"
        for mode, v in value.items():
            problem = col_span_problem(v, nested=True)
            if problem:
                return f"[{mode}] {problem}"
        return None
    return f"unrecognized shape {type(value).__name__}"


def _schema_errors(key: str, slot: Any) -> List[str]:
    errors = sorted(_slot_validator.iter_errors(slot), key=lambda e: list(e.path))
    out = []
    for e in errors:
        path = ".".join(str(p) for p in e.path)
        where = f"slots.{key}.{path}" if path else f"slots.{key}"
        out.append(f"JSON Schema validation error at '{where}': {e.message}")
    return out


def validate_slots(slots: Any) -> None:
    """
    Valida un slot set completo (mapa id -> Slot). Acumula todos los errores y
    lanza ValidationError si hay al menos uno. Los huérfanos se aceptan.
    """
    if not isinstance(slots, Mapping):
        raise ValidationError("slots must be an object keyed by slot id")

    errors: List[str] = []
    for key, slot in slots.items():
        schema_errors = _schema_errors(key, slot)
        if schema_errors:
            errors.extend(schema_errors)
            continue
        if slot["id"] != key:
            errors.append(f"slots.{key}: id '{slot['id']}' does not match its key")
        if slot.get("parentId") == slot["id"]:
            errors.append(f"slots.{key}: slot cannot be its own parent")
        problem = col_span_problem(slot.get("colSpan"))
        if problem:
            errors.append(f"slots.{key}.colSpan: {problem}")

    if not errors:
        cycle = find_cycle(slots)
        if cycle:
            errors.append("cyclic parentId chain: " + " -> ".join(cycle))

    if errors:
        raise ValidationError(errors[0], errors)


def validate_configuration(configuration: Mapping[str, Any]) -> None:
    validate_slots(configuration.get("slots"))
    meta = configuration.get("metadata")
    if meta is not None and not isinstance(meta, Mapping):
        raise ValidationError("metadata must be an object")
