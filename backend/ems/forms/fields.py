from __future__ import annotations
"""Runtime field schema: DynamicField definitions and the SystemConfig aggregate.

JSON keys are camelCase (``labelAr``, ``reportQuestions``) because the same
records are exchanged with offline clients and the persistence layer. Python
attributes are snake_case.
"""
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ems.errors import MalformedConfigError, NotFoundError, ValidationError


class FieldType(str, Enum):
    TEXT = 'text'
    TEXTAREA = 'textarea'
    NUMBER = 'number'
    SELECT = 'select'
    IMAGE = 'image'
    GPS = 'gps'


class Section(str, Enum):
    REPORT_QUESTIONS = 'reportQuestions'
    REPAIR_FIELDS = 'repairFields'


EVIDENCE_TYPES = (FieldType.IMAGE, FieldType.GPS)

FEATURE_WHATSAPP = 'enableWhatsApp'
FEATURE_EVIDENCE_BEFORE = 'requireEvidenceBefore'
FEATURE_EVIDENCE_AFTER = 'requireEvidenceAfter'
FEATURE_AUTO_ASSIGN = 'autoAssign'

_KNOWN_CONFIG_KEYS = {'reportQuestions', 'repairFields', 'features', 'version', 'retiredFieldIds', 'priorityKeywords'}


def parse_section(raw: str) -> Section:
    try:
        return Section(raw)
    except ValueError:
        raise NotFoundError(f'unknown section {raw}')


@dataclass
class DynamicField:
    id: str
    label_ar: str
    type: FieldType
    required: bool = False
    options: Optional[List[str]] = None
    placeholder: Optional[str] = None
    step: int = 1
    order: int = 0

    def validate(self) -> 'DynamicField':
        if not self.id or not isinstance(self.id, str):
            raise ValidationError('field id required', fields=['id'])
        if not self.label_ar:
            raise ValidationError('labelAr required', fields=[self.id])
        if self.type == FieldType.SELECT:
            if not self.options:
                raise ValidationError('select field requires options', fields=[self.id])
        else:
            self.options = None
        return self

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            'id': self.id,
            'labelAr': self.label_ar,
            'type': self.type.value,
            'required': self.required,
            'step': self.step,
            'order': self.order,
        }
        if self.options is not None:
            out['options'] = list(self.options)
        if self.placeholder is not None:
            out['placeholder'] = self.placeholder
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DynamicField':
        if not isinstance(data, dict):
            raise ValidationError('field must be an object')
        try:
            ftype = FieldType(data.get('type'))
        except ValueError:
            raise ValidationError(f"unknown field type {data.get('type')!r}", fields=[str(data.get('id'))])
        options = data.get('options')
        if options is not None and not isinstance(options, list):
            raise ValidationError('options must be a list', fields=[str(data.get('id'))])
        try:
            step = int(data.get('step') or 1)
            order = int(data.get('order') or 0)
        except (TypeError, ValueError):
            raise ValidationError('step/order must be integers', fields=[str(data.get('id'))])
        required = data.get('required', False)
        if not isinstance(required, bool):
            raise ValidationError('required must be true or false', fields=[str(data.get('id'))])
        return cls(
            id=data.get('id') or '',
            label_ar=data.get('labelAr') or '',
            type=ftype,
            required=required,
            options=[str(o) for o in options] if options is not None else None,
            placeholder=data.get('placeholder'),
            step=step,
            order=order,
        )

    def merged(self, partial: Dict[str, Any]) -> 'DynamicField':
        data = self.to_dict()
        data.update(partial)
        return DynamicField.from_dict(data).validate()


def ordered(fields: List[DynamicField]) -> List[DynamicField]:
    """Sort by ``order``; ties keep insertion order (sorted() is stable)."""
    return sorted(fields, key=lambda f: f.order)


@dataclass
class SystemConfig:
    report_questions: List[DynamicField] = field(default_factory=list)
    repair_fields: List[DynamicField] = field(default_factory=list)
    features: Dict[str, bool] = field(default_factory=dict)
    version: int = 0
    retired_field_ids: Dict[str, List[str]] = field(default_factory=dict)
    priority_keywords: Optional[Dict[str, List[str]]] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def section(self, section: Section) -> List[DynamicField]:
        if section == Section.REPORT_QUESTIONS:
            return self.report_questions
        return self.repair_fields

    def set_section(self, section: Section, fields: List[DynamicField]) -> None:
        if section == Section.REPORT_QUESTIONS:
            self.report_questions = fields
        else:
            self.repair_fields = fields

    def find(self, section: Section, field_id: str) -> Optional[DynamicField]:
        for f in self.section(section):
            if f.id == field_id:
                return f
        return None

    def all_fields(self) -> List[DynamicField]:
        return list(self.report_questions) + list(self.repair_fields)

    def feature(self, name: str, default: bool = False) -> bool:
        return bool(self.features.get(name, default))

    def copy(self) -> 'SystemConfig':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.extras)
        out.update({
            'reportQuestions': [f.to_dict() for f in self.report_questions],
            'repairFields': [f.to_dict() for f in self.repair_fields],
            'features': dict(self.features),
            'version': self.version,
            'retiredFieldIds': {k: list(v) for k, v in self.retired_field_ids.items()},
        })
        if self.priority_keywords is not None:
            out['priorityKeywords'] = {k: list(v) for k, v in self.priority_keywords.items()}
        return out

    @classmethod
    def from_dict(cls, data: Any) -> 'SystemConfig':
        if not isinstance(data, dict):
            raise MalformedConfigError('config must be an object')
        try:
            questions = [DynamicField.from_dict(f) for f in data.get('reportQuestions') or []]
            repairs = [DynamicField.from_dict(f) for f in data.get('repairFields') or []]
        except (ValidationError, TypeError, ValueError) as exc:
            raise MalformedConfigError(f'invalid field definition: {exc}')
        features = data.get('features') or {}
        retired = data.get('retiredFieldIds') or {}
        keywords = data.get('priorityKeywords')
        if not isinstance(features, dict) or not isinstance(retired, dict):
            raise MalformedConfigError('features and retiredFieldIds must be objects')
        if keywords is not None and not isinstance(keywords, dict):
            raise MalformedConfigError('priorityKeywords must be an object')
        try:
            version = int(data.get('version') or 0)
        except (TypeError, ValueError):
            raise MalformedConfigError('version must be an integer')
        return cls(
            report_questions=questions,
            repair_fields=repairs,
            features={str(k): bool(v) for k, v in features.items()},
            version=version,
            retired_field_ids={str(k): list(v or []) for k, v in retired.items()},
            priority_keywords={k: list(v or []) for k, v in keywords.items()} if keywords is not None else None,
            extras={k: v for k, v in data.items() if k not in _KNOWN_CONFIG_KEYS},
        )


def default_config() -> SystemConfig:
    """Seed configuration written on first run."""
    return SystemConfig(
        features={
            FEATURE_WHATSAPP: True,
            FEATURE_EVIDENCE_BEFORE: True,
            FEATURE_EVIDENCE_AFTER: True,
            FEATURE_AUTO_ASSIGN: False,
        },
        report_questions=[
            DynamicField('machineType', 'نوع الجهاز', FieldType.SELECT, True,
                          options=['ماكينة قهوة', 'تكييف مركزي', 'بوابة أمنية', 'نظام إضاءة', 'سير متحرك', 'أخرى'],
                          step=2, order=1),
            DynamicField('serialNumber', 'الرقم التسلسلي (إن وجد)', FieldType.TEXT, False,
                         placeholder='مثال: SN-123456', step=2, order=2),
            DynamicField('description', 'وصف المشكلة الدقيق', FieldType.TEXTAREA, True,
                         placeholder='اشرح العطل بالتفصيل...', step=2, order=3),
            DynamicField('evidence', 'صور العطل', FieldType.IMAGE, True, step=3, order=4),
            DynamicField('location', 'الموقع الجغرافي', FieldType.GPS, True, step=3, order=5),
        ],
        repair_fields=[
            DynamicField('partsUsed', 'قطع الغيار المستخدمة', FieldType.TEXTAREA, True,
                         placeholder='اذكر القطع التي تم استبدالها...', step=1, order=1),
            DynamicField('cost', 'التكلفة التقديرية (ج.م)', FieldType.NUMBER, True,
                         placeholder='0.00', step=1, order=2),
            DynamicField('afterPhoto', 'صورة بعد الإصلاح', FieldType.IMAGE, True, step=1, order=3),
        ],
    )


__all__ = [
    'FieldType', 'Section', 'DynamicField', 'SystemConfig', 'ordered', 'default_config', 'parse_section',
    'EVIDENCE_TYPES', 'FEATURE_WHATSAPP', 'FEATURE_EVIDENCE_BEFORE', 'FEATURE_EVIDENCE_AFTER', 'FEATURE_AUTO_ASSIGN',
]
