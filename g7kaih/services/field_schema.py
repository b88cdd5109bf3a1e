"""
Category field schema normalization.

Admins author each category's `inputs` as free-form JSON. Everything that
renders a form or ingests a submission reads it through `normalize_fields`,
which turns whatever is stored into an ordered list of FieldDefinition and
never raises: a broken schema degrades to fewer (or no) fields.
"""

import json
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class FieldType(str, Enum):
    TEXT = "text"
    TIME = "time"
    IMAGE = "image"
    TEXT_IMAGE = "text_image"
    MULTISELECT = "multiselect"


@dataclass(frozen=True)
class FieldDefinition:
    key: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    order: float = 0
    config: dict = field(default_factory=dict)
    field_id: Optional[str] = None

    @property
    def storage_id(self) -> str:
        """Identifier written to aktivitas_field_values.fieldid."""
        return self.field_id or self.key

    def to_dict(self) -> dict:
        data = {
            "key": self.key,
            "label": self.label,
            "type": self.type.value,
            "required": self.required,
            "order": self.order,
            "config": self.config,
        }
        if self.type == FieldType.MULTISELECT:
            data["options"] = resolve_options(self)
        return data


@dataclass(frozen=True)
class CategorySchema:
    category_id: str
    category_name: str
    fields: list[FieldDefinition]

    def to_dict(self) -> dict:
        return {
            "categoryid": self.category_id,
            "categoryname": self.category_name,
            "inputs": [f.to_dict() for f in self.fields],
        }


# ---- Tagged field kinds ----

@dataclass(frozen=True)
class TextField:
    pass


@dataclass(frozen=True)
class TimeField:
    pass


@dataclass(frozen=True)
class ImageField:
    accept: Optional[str] = None


@dataclass(frozen=True)
class TextImageField:
    accept: Optional[str] = None


@dataclass(frozen=True)
class MultiselectField:
    options: tuple[str, ...] = ()


FieldKind = Union[TextField, TimeField, ImageField, TextImageField, MultiselectField]


def field_kind(definition: FieldDefinition) -> FieldKind:
    accept = definition.config.get("accept")
    accept = accept if isinstance(accept, str) else None
    if definition.type == FieldType.TIME:
        return TimeField()
    if definition.type == FieldType.IMAGE:
        return ImageField(accept=accept)
    if definition.type == FieldType.TEXT_IMAGE:
        return TextImageField(accept=accept)
    if definition.type == FieldType.MULTISELECT:
        return MultiselectField(options=tuple(resolve_options(definition)))
    return TextField()


def accepts(accept: Optional[str], content_type: Optional[str], filename: str = "") -> bool:
    """Match an upload against an HTML-style accept list (`image/*`, `image/png`, `.jpg`)."""
    patterns = [p.strip().lower() for p in (accept or "").split(",") if p.strip()]
    if not patterns:
        return True
    mime = (content_type or "").split(";")[0].strip().lower()
    name = (filename or "").lower()
    for pattern in patterns:
        if pattern.startswith("."):
            if name.endswith(pattern):
                return True
        elif pattern.endswith("/*"):
            if mime.startswith(pattern[:-1]):
                return True
        elif pattern == mime:
            return True
    return False


# ---- Normalization ----

def _looks_like_record(value: Any) -> bool:
    return isinstance(value, dict)


def _coerce_list(raw: Any) -> list:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError, RecursionError):
            return []
        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict):
            return list(parsed.values())
        return []
    if isinstance(raw, dict):
        data = raw.get("data")
        if isinstance(data, list):
            return data
        values = list(raw.values())
        if values and all(_looks_like_record(v) for v in values):
            return values
    return []


def _coerce_type(value: Any) -> FieldType:
    if isinstance(value, str):
        try:
            return FieldType(value.strip().lower())
        except ValueError:
            pass
    return FieldType.TEXT


def _coerce_order(value: Any, position: int) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return position
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return position
    if not math.isfinite(number):
        return position
    if isinstance(value, str):
        return int(number) if number.is_integer() else number
    return value


def _coerce_field_id(entry: dict) -> Optional[str]:
    for name in ("fieldid", "id"):
        value = entry.get(name)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
            return str(value).strip()
    return None


def normalize_fields(raw: Any) -> list[FieldDefinition]:
    fields = []
    for position, entry in enumerate(_coerce_list(raw)):
        if not isinstance(entry, dict):
            continue
        key = entry.get("key")
        if not isinstance(key, str) or not key.strip():
            continue
        key = key.strip()

        label = entry.get("label")
        config = entry.get("config")
        fields.append(
            FieldDefinition(
                key=key,
                label=label.strip() if isinstance(label, str) and label.strip() else key,
                type=_coerce_type(entry.get("type")),
                required=bool(entry.get("required") or False),
                order=_coerce_order(entry.get("order"), position),
                config=dict(config) if isinstance(config, dict) else {},
                field_id=_coerce_field_id(entry),
            )
        )
    # sorted() is stable, so equal orders keep their authored position
    return sorted(fields, key=lambda f: f.order)


def build_category_schema(row: dict) -> CategorySchema:
    return CategorySchema(
        category_id=str(row.get("categoryid", "")),
        category_name=row.get("categoryname") or "",
        fields=normalize_fields(row.get("inputs")),
    )


# ---- Options ----

_OPTION_SPLIT = re.compile(r"[,\n]")


def resolve_options(definition: FieldDefinition) -> list[str]:
    options = (definition.config or {}).get("options")
    if isinstance(options, list):
        return [str(o) for o in options]
    if isinstance(options, str):
        return [piece.strip() for piece in _OPTION_SPLIT.split(options) if piece.strip()]
    return []
