from __future__ import annotations
"""WhatsApp deep-link messages for ticket events.

Nothing is delivered from here: each builder returns an ``OutboundMessage``
whose ``url`` opens a prefilled chat, or None when the recipient has no phone
or WhatsApp notifications are disabled in the system config.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import quote

from ems.config import settings
from ems.forms.fields import FEATURE_WHATSAPP, SystemConfig
from ems.services.records import Branch, Report, User

logger = logging.getLogger(__name__)

_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class OutboundMessage:
    phone: str
    text: str
    url: str

    def to_dict(self):
        return {'phone': self.phone, 'text': self.text, 'url': self.url}


def whatsapp_url(phone: str, text: str) -> str:
    return f"https://wa.me/{phone}?text={quote(text, safe=_SAFE)}"


def maps_url(location: str) -> str:
    return f"https://www.google.com/maps/search/?api=1&query={quote(location or '', safe=_SAFE)}"


def _message(config: Optional[SystemConfig], phone: Optional[str], text: str) -> Optional[OutboundMessage]:
    if config is not None and not config.feature(FEATURE_WHATSAPP):
        return None
    if not phone:
        logger.debug('no phone for outbound message; skipped')
        return None
    return OutboundMessage(phone, text, whatsapp_url(phone, text))


def new_ticket(report: Report, config: Optional[SystemConfig] = None) -> Optional[OutboundMessage]:
    text = '\n'.join([
        '*بلاغ صيانة جديد*',
        f'رقم البلاغ: #{report.ticket_number}',
        f'الفرع: {report.branch_name}',
        f'الأولوية: {report.priority}',
        f'المعدة: {report.machine_type}',
        f'الوصف: {report.description}',
        '',
        'يرجى تعيين فني في أقرب وقت.',
    ])
    return _message(config, settings.dispatch_phone(), text)


def technician_assignment(report: Report, technician: User, branch: Optional[Branch],
                          config: Optional[SystemConfig] = None) -> Optional[OutboundMessage]:
    location = branch.location if branch else ''
    text = '\n'.join([
        '*مهمة صيانة جديدة*',
        f'يا {technician.name}، تم تعيينك لبلاغ جديد.',
        f'الفرع: {branch.name if branch else report.branch_name}',
        f'المعدة: {report.machine_type}',
        f'الوصف: {report.description}',
        f'الموقع: {maps_url(location)}',
        '',
        'يرجى تأكيد الاستلام والتحرك للموقع.',
    ])
    return _message(config, technician.phone, text)


def completion(report: Report, manager_phone: Optional[str],
               config: Optional[SystemConfig] = None) -> Optional[OutboundMessage]:
    if report.parts_usage_list:
        parts = '\n'.join(f'- {p.part_name} ({p.quantity})' for p in report.parts_usage_list)
    else:
        parts = 'لا يوجد قطع غيار'
    cost = report.cost if report.cost is not None else 0
    text = '\n'.join([
        '*تم إنجاز الصيانة*',
        f'رقم البلاغ: #{report.ticket_number}',
        f'المعدة: {report.machine_type}',
        f'الفني: {report.assigned_technician_name or ""}',
        '',
        'القطع المستخدمة:',
        parts,
        '',
        f'التكلفة الإجمالية: {cost} ج.م',
        '',
        'يرجى مراجعة الجهاز وإغلاق البلاغ من النظام.',
    ])
    return _message(config, manager_phone, text)


def parts_request(report: Report, parts_note: str, config: Optional[SystemConfig] = None) -> Optional[OutboundMessage]:
    text = '\n'.join([
        '*طلب قطع غيار عاجل*',
        f'رقم البلاغ: #{report.ticket_number}',
        f'الفرع: {report.branch_name}',
        f'الجهاز: {report.machine_type}',
        'وصف العطل:',
        report.description,
        'القطع المطلوبة:',
        parts_note,
        'يرجى التجهيز فوراً',
    ])
    return _message(config, settings.dispatch_phone(), text)


def low_stock(part_name: str, quantity: int, config: Optional[SystemConfig] = None) -> Optional[OutboundMessage]:
    text = '\n'.join([
        '*تنبيه مخزون منخفض*',
        f'الصنف: {part_name}',
        f'الكمية الحالية: {quantity}',
        '',
        'يرجى إعادة الطلب فوراً.',
    ])
    return _message(config, settings.dispatch_phone(), text)


def compact(messages: Iterable[Optional[OutboundMessage]]):
    return [m for m in messages if m is not None]


__all__ = [
    'OutboundMessage', 'whatsapp_url', 'maps_url', 'new_ticket', 'technician_assignment',
    'completion', 'parts_request', 'low_stock', 'compact',
]
