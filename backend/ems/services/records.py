from __future__ import annotations
"""Plain records exchanged between the core services and the persistence port.

Each record serialises to the camelCase JSON shape stored by the persistence
layer and sent by offline clients (``to_dict`` / ``from_dict``).
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ems.constants.roles import STATUS_NEW, PRIORITY_NORMAL
from ems.errors import ValidationError


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def new_report_id() -> str:
    return f"rep-{uuid.uuid4().hex[:12]}"


def new_log_id() -> str:
    return f"log-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {'lat': self.lat, 'lng': self.lng}

    @classmethod
    def from_value(cls, value: Any) -> Optional['Coordinates']:
        """Accept a Coordinates, a ``{lat, lng}`` mapping or None."""
        if value is None or isinstance(value, Coordinates):
            return value
        if isinstance(value, dict) and value.get('lat') is not None and value.get('lng') is not None:
            try:
                return cls(float(value['lat']), float(value['lng']))
            except (TypeError, ValueError):
                raise ValidationError('lat/lng must be numbers')
        raise ValidationError('location must be an object with lat and lng')


@dataclass
class Answer:
    field_id: str
    label_ar: str
    value: Any
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {'fieldId': self.field_id, 'labelAr': self.label_ar, 'value': self.value, 'type': self.type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Answer':
        return cls(data['fieldId'], data.get('labelAr', ''), data.get('value'), data.get('type', 'text'))


@dataclass
class LogEntry:
    text: str
    user_id: str
    user_name: str
    type: str
    id: str = field(default_factory=new_log_id)
    date: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id, 'date': self.date, 'text': self.text,
            'userId': self.user_id, 'userName': self.user_name, 'type': self.type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        return cls(
            text=data.get('text', ''), user_id=data.get('userId', ''), user_name=data.get('userName', ''),
            type=data.get('type', 'SYSTEM'), id=data.get('id') or new_log_id(), date=data.get('date') or utc_now_iso(),
        )


@dataclass
class PartUsage:
    part_id: str
    part_name: str
    quantity: int
    unit_price: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {'partId': self.part_id, 'partName': self.part_name, 'quantity': self.quantity, 'unitPrice': self.unit_price}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PartUsage':
        try:
            quantity = int(data.get('quantity', 1))
        except (TypeError, ValueError):
            raise ValidationError('part quantity must be an integer')
        if quantity <= 0:
            raise ValidationError('part quantity must be positive')
        return cls(str(data.get('partId', '')), data.get('partName', ''), quantity, float(data.get('unitPrice') or 0))


@dataclass
class Report:
    id: str
    branch_id: str
    branch_name: str
    created_by_user_id: str
    created_by_name: str
    created_at: str = field(default_factory=utc_now_iso)
    priority: str = PRIORITY_NORMAL
    status: str = STATUS_NEW
    machine_type: str = 'General'
    description: str = ''
    assigned_technician_id: Optional[str] = None
    assigned_technician_name: Optional[str] = None
    dynamic_answers: List[Answer] = field(default_factory=list)
    dynamic_data: Dict[str, Any] = field(default_factory=dict)
    location_coords: Optional[Coordinates] = None
    images_before: List[str] = field(default_factory=list)
    images_after: List[str] = field(default_factory=list)
    cost: Optional[float] = None
    parts_used: Optional[str] = None
    parts_usage_list: List[PartUsage] = field(default_factory=list)
    admin_notes: Optional[str] = None
    logs: List[LogEntry] = field(default_factory=list)

    @property
    def ticket_number(self) -> str:
        return self.id.split('-', 1)[-1]

    def answer_for(self, field_id: str) -> Optional[Answer]:
        for a in self.dynamic_answers:
            if a.field_id == field_id:
                return a
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'branchId': self.branch_id,
            'branchName': self.branch_name,
            'createdByUserId': self.created_by_user_id,
            'createdByName': self.created_by_name,
            'createdAt': self.created_at,
            'priority': self.priority,
            'status': self.status,
            'machineType': self.machine_type,
            'description': self.description,
            'assignedTechnicianId': self.assigned_technician_id,
            'assignedTechnicianName': self.assigned_technician_name,
            'dynamicAnswers': [a.to_dict() for a in self.dynamic_answers],
            'dynamicData': dict(self.dynamic_data),
            'locationCoords': self.location_coords.to_dict() if self.location_coords else None,
            'imagesBefore': list(self.images_before),
            'imagesAfter': list(self.images_after),
            'cost': self.cost,
            'partsUsed': self.parts_used,
            'partsUsageList': [p.to_dict() for p in self.parts_usage_list],
            'adminNotes': self.admin_notes,
            'logs': [entry.to_dict() for entry in self.logs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Report':
        if not isinstance(data, dict) or not data.get('id'):
            raise ValidationError('report id required', fields=['id'])
        try:
            return cls(
                id=data['id'],
                branch_id=data.get('branchId') or '',
                branch_name=data.get('branchName') or '',
                created_by_user_id=data.get('createdByUserId') or '',
                created_by_name=data.get('createdByName') or '',
                created_at=data.get('createdAt') or utc_now_iso(),
                priority=data.get('priority') or PRIORITY_NORMAL,
                status=data.get('status') or STATUS_NEW,
                machine_type=data.get('machineType') or 'General',
                description=data.get('description') or '',
                assigned_technician_id=data.get('assignedTechnicianId'),
                assigned_technician_name=data.get('assignedTechnicianName'),
                dynamic_answers=[Answer.from_dict(a) for a in data.get('dynamicAnswers') or []],
                dynamic_data=dict(data.get('dynamicData') or {}),
                location_coords=Coordinates.from_value(data.get('locationCoords')),
                images_before=list(data.get('imagesBefore') or []),
                images_after=list(data.get('imagesAfter') or []),
                cost=data.get('cost'),
                parts_used=data.get('partsUsed'),
                parts_usage_list=[PartUsage.from_dict(p) for p in data.get('partsUsageList') or []],
                admin_notes=data.get('adminNotes'),
                logs=[LogEntry.from_dict(entry) for entry in data.get('logs') or []],
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValidationError(f'malformed report: {exc}')


@dataclass
class Branch:
    id: str
    name: str
    location: str = ''
    manager_id: Optional[str] = None
    manager_phone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'location': self.location,
                'managerId': self.manager_id, 'managerPhone': self.manager_phone}


@dataclass
class User:
    id: str
    name: str
    role: str
    branch_id: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'role': self.role, 'branchId': self.branch_id,
                'phone': self.phone, 'avatar': self.avatar}


@dataclass
class SparePart:
    id: str
    name: str
    sku: str
    quantity: int = 0
    price: float = 0.0
    min_level: int = 5
    category: str = ''

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.min_level

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'sku': self.sku, 'quantity': self.quantity,
                'price': self.price, 'minLevel': self.min_level, 'category': self.category}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SparePart':
        if not data.get('name') or not data.get('sku'):
            raise ValidationError('name, sku required', fields=['name', 'sku'])
        try:
            return cls(
                id=str(data.get('id') or f"part-{uuid.uuid4().hex[:8]}"),
                name=data['name'],
                sku=data['sku'],
                quantity=int(data.get('quantity') or 0),
                price=float(data.get('price') or 0),
                min_level=int(data.get('minLevel') if data.get('minLevel') is not None else 5),
                category=data.get('category') or '',
            )
        except (TypeError, ValueError):
            raise ValidationError('quantity, price, minLevel must be numbers')


@dataclass(frozen=True)
class Actor:
    """The user performing an action (taken from the access token claims)."""
    id: str
    name: str
    role: str
    branch_id: Optional[str] = None


__all__ = [
    'Coordinates', 'Answer', 'LogEntry', 'PartUsage', 'Report', 'Branch', 'User', 'SparePart', 'Actor',
    'utc_now_iso', 'new_report_id',
]
