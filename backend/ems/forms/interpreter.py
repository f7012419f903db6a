from __future__ import annotations
"""Dynamic form interpreter.

Field ``type`` drives three dispatch tables: coercion of raw input, required
field validation and widget rendering. Each table must cover every
``FieldType``; the module refuses to import otherwise, so adding a new type
forces all three sites to be updated.

Value shapes stored in the value map:
  text / textarea / select -> str or None
  number                   -> int | float | None ('' means "not entered", not 0)
  image                    -> list of image references (URLs or data URIs)
  gps                      -> {'lat': float, 'lng': float} or None
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from ems.errors import FieldNotFoundError, LocationUnavailableError, ValidationError
from ems.forms.fields import DynamicField, FieldType, ordered
from ems.forms.location import LocationProvider, acquire_location
from ems.services.records import Answer, Coordinates


@dataclass(frozen=True)
class Watermark:
    """Overlay drawn on a captured image. Presentation only, never stored in the reference."""
    location_label: str
    captured_at: str

    @classmethod
    def stamp(cls, location_label: str, now: Optional[datetime] = None) -> 'Watermark':
        now = now or datetime.now(timezone.utc)
        return cls(location_label, now.strftime('%Y-%m-%d %H:%M'))

    def to_dict(self) -> Dict[str, str]:
        return {'location': self.location_label, 'timestamp': self.captured_at}


# --- coercion -------------------------------------------------------------

def _coerce_text(field: DynamicField, raw: Any):
    if raw is None:
        return None
    if isinstance(raw, (list, dict)):
        raise ValidationError(f'{field.id} expects text', fields=[field.id])
    return raw if isinstance(raw, str) else str(raw)


def _coerce_number(field: DynamicField, raw: Any):
    if raw is None or (isinstance(raw, str) and raw.strip() == ''):
        return None
    if isinstance(raw, bool):
        raise ValidationError(f'{field.id} expects a number', fields=[field.id])
    if isinstance(raw, (int, float)):
        return raw
    text = str(raw).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise ValidationError(f'{field.id} expects a number', fields=[field.id])


def _coerce_select(field: DynamicField, raw: Any):
    value = _coerce_text(field, raw)
    if value in (None, ''):
        return None
    if field.options and value not in field.options:
        raise ValidationError(f'{value!r} is not an option of {field.id}', fields=[field.id])
    return value


def _coerce_image(field: DynamicField, raw: Any):
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)) or not all(isinstance(r, str) and r for r in raw):
        raise ValidationError(f'{field.id} expects a list of image references', fields=[field.id])
    return list(raw)


def _coerce_gps(field: DynamicField, raw: Any):
    try:
        coords = Coordinates.from_value(raw)
    except ValidationError as exc:
        raise ValidationError(exc.detail, fields=[field.id])
    return coords.to_dict() if coords else None


_COERCERS: Dict[FieldType, Callable[[DynamicField, Any], Any]] = {
    FieldType.TEXT: _coerce_text,
    FieldType.TEXTAREA: _coerce_text,
    FieldType.NUMBER: _coerce_number,
    FieldType.SELECT: _coerce_select,
    FieldType.IMAGE: _coerce_image,
    FieldType.GPS: _coerce_gps,
}


# --- required-field validation -------------------------------------------

def _scalar_answered(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ''
    return True


def _image_answered(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def _gps_answered(value: Any) -> bool:
    if isinstance(value, Coordinates):
        return True
    return isinstance(value, dict) and value.get('lat') is not None and value.get('lng') is not None


_VALIDATORS: Dict[FieldType, Callable[[Any], bool]] = {
    FieldType.TEXT: _scalar_answered,
    FieldType.TEXTAREA: _scalar_answered,
    FieldType.NUMBER: _scalar_answered,
    FieldType.SELECT: _scalar_answered,
    FieldType.IMAGE: _image_answered,
    FieldType.GPS: _gps_answered,
}


# --- rendering ------------------------------------------------------------

def _render_input(field: DynamicField, value: Any, overlays: List[Optional[Watermark]]) -> Dict[str, Any]:
    return {'widget': 'textarea' if field.type == FieldType.TEXTAREA else 'input', 'value': value if value is not None else ''}


def _render_number(field: DynamicField, value: Any, overlays: List[Optional[Watermark]]) -> Dict[str, Any]:
    return {'widget': 'number', 'value': value if value is not None else ''}


def _render_select(field: DynamicField, value: Any, overlays: List[Optional[Watermark]]) -> Dict[str, Any]:
    return {'widget': 'select', 'value': value, 'options': list(field.options or [])}


def _render_image(field: DynamicField, value: Any, overlays: List[Optional[Watermark]]) -> Dict[str, Any]:
    images = []
    for i, ref in enumerate(value or []):
        mark = overlays[i] if i < len(overlays) else None
        images.append({'index': i, 'ref': ref, 'watermark': mark.to_dict() if mark else None})
    return {'widget': 'camera', 'images': images}


def _render_gps(field: DynamicField, value: Any, overlays: List[Optional[Watermark]]) -> Dict[str, Any]:
    return {'widget': 'gps', 'value': value, 'captured': _gps_answered(value)}


_RENDERERS: Dict[FieldType, Callable[[DynamicField, Any, List[Optional[Watermark]]], Dict[str, Any]]] = {
    FieldType.TEXT: _render_input,
    FieldType.TEXTAREA: _render_input,
    FieldType.NUMBER: _render_number,
    FieldType.SELECT: _render_select,
    FieldType.IMAGE: _render_image,
    FieldType.GPS: _render_gps,
}


def _assert_exhaustive():
    expected = set(FieldType)
    for name, table in (('coercion', _COERCERS), ('validation', _VALIDATORS), ('rendering', _RENDERERS)):
        missing = expected - set(table)
        if missing:
            raise RuntimeError(f"{name} has no handler for {sorted(m.value for m in missing)}")


_assert_exhaustive()


# --- public helpers -------------------------------------------------------

def initial_value(field: DynamicField):
    return [] if field.type == FieldType.IMAGE else None


def coerce(field: DynamicField, raw: Any):
    return _COERCERS[field.type](field, raw)


def is_answered(field: DynamicField, value: Any) -> bool:
    return _VALIDATORS[field.type](value)


def render_field(field: DynamicField, value: Any, overlays: Optional[List[Optional[Watermark]]] = None) -> Dict[str, Any]:
    widget = {
        'id': field.id,
        'label': field.label_ar,
        'type': field.type.value,
        'required': field.required,
        'placeholder': field.placeholder,
    }
    widget.update(_RENDERERS[field.type](field, value, overlays or []))
    return widget


def missing_required(fields: Iterable[DynamicField], values: Dict[str, Any]) -> List[str]:
    return [f.id for f in ordered(list(fields)) if f.required and not is_answered(f, values.get(f.id))]


def snapshot_answers(fields: Iterable[DynamicField], values: Dict[str, Any]) -> List[Answer]:
    """Frozen label/type/value copies for every answered field, in display order."""
    out = []
    for f in ordered(list(fields)):
        value = values.get(f.id)
        if is_answered(f, value):
            out.append(Answer(f.id, f.label_ar, value, f.type.value))
    return out


class FormState:
    """Value map for one form plus the edit operations the widgets need."""

    def __init__(self, fields: Iterable[DynamicField], values: Optional[Dict[str, Any]] = None):
        self.fields: List[DynamicField] = ordered(list(fields))
        self._by_id = {f.id: f for f in self.fields}
        self.values: Dict[str, Any] = {f.id: initial_value(f) for f in self.fields}
        self.overlays: Dict[str, List[Optional[Watermark]]] = {}
        for key, raw in (values or {}).items():
            if key in self._by_id:
                self.values[key] = coerce(self._by_id[key], raw)
            else:
                self.values[key] = raw

    def field(self, field_id: str, expect: Optional[FieldType] = None) -> DynamicField:
        f = self._by_id.get(field_id)
        if f is None:
            raise FieldNotFoundError('form', field_id)
        if expect is not None and f.type != expect:
            raise ValidationError(f'{field_id} is a {f.type.value} field, not {expect.value}', fields=[field_id])
        return f

    def set_value(self, field_id: str, raw: Any):
        f = self.field(field_id)
        value = coerce(f, raw)
        self.values[field_id] = value
        if f.type == FieldType.IMAGE:
            self.overlays[field_id] = [None] * len(value)
        return value

    def add_image(self, field_id: str, ref: str, watermark: Optional[Watermark] = None) -> List[str]:
        self.field(field_id, FieldType.IMAGE)
        if not isinstance(ref, str) or not ref:
            raise ValidationError('image reference required', fields=[field_id])
        images = list(self.values.get(field_id) or [])
        images.append(ref)
        self.values[field_id] = images
        marks = self.overlays.setdefault(field_id, [])
        marks.extend([None] * (len(images) - 1 - len(marks)))
        marks.append(watermark)
        return images

    def remove_image(self, field_id: str, index: int) -> List[str]:
        self.field(field_id, FieldType.IMAGE)
        images = list(self.values.get(field_id) or [])
        if not 0 <= index < len(images):
            raise ValidationError(f'no image at index {index}', fields=[field_id])
        images.pop(index)
        self.values[field_id] = images
        marks = self.overlays.get(field_id)
        if marks and index < len(marks):
            marks.pop(index)
        return images

    def capture_location(self, field_id: str, provider: LocationProvider, timeout: Optional[float] = None) -> Dict[str, float]:
        """Acquire once; on denial or timeout the field is left unset and the error propagates."""
        self.field(field_id, FieldType.GPS)
        try:
            coords = acquire_location(provider, timeout)
        except LocationUnavailableError:
            self.values[field_id] = None
            raise
        self.values[field_id] = coords.to_dict()
        return self.values[field_id]

    def missing_required(self, fields: Optional[Iterable[DynamicField]] = None) -> List[str]:
        return missing_required(self.fields if fields is None else fields, self.values)

    def validate(self, fields: Optional[Iterable[DynamicField]] = None) -> None:
        missing = self.missing_required(fields)
        if missing:
            raise ValidationError('required fields missing', fields=missing)

    def render(self, fields: Optional[Iterable[DynamicField]] = None) -> List[Dict[str, Any]]:
        chosen = self.fields if fields is None else ordered(list(fields))
        return [render_field(f, self.values.get(f.id), self.overlays.get(f.id)) for f in chosen]

    def answers(self) -> List[Answer]:
        return snapshot_answers(self.fields, self.values)


__all__ = [
    'Watermark', 'FormState', 'initial_value', 'coerce', 'is_answered', 'render_field',
    'missing_required', 'snapshot_answers',
]
