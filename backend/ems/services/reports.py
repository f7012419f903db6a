from __future__ import annotations
"""Report assembly and the maintenance lifecycle.

``ReportService`` turns submitted form values into stored ``Report`` records
and moves them through the status graph in ``ems.utils.fsm``. It receives the
persistence port, the ``SystemConfig`` and the keyword sets explicitly and
never reaches for request or global state, so the same code runs behind the
HTTP routes and inside an offline client working against a local store.

Every operation returns an ``Outcome``: the saved report, any outbound
messages the transition produced and non-fatal warnings (e.g. presence not
verified while offline).
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ems.constants.roles import (
    ALL_PRIORITIES, ALL_STATUSES, LOG_COMMENT, LOG_FORCED_EDIT, LOG_STATUS_CHANGE, LOG_SYSTEM, OPEN_STATUSES,
    ROLE_ADMIN, ROLE_TECHNICIAN, STATUS_ASSIGNED, STATUS_CLOSED, STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_NEW,
    STATUS_PENDING_PARTS,
)
from ems.errors import InvalidTransitionError, NotFoundError, ReportNotFoundError, ValidationError
from ems.forms.fields import (
    FEATURE_AUTO_ASSIGN, FEATURE_EVIDENCE_AFTER, FEATURE_EVIDENCE_BEFORE, DynamicField, FieldType, SystemConfig,
)
from ems.forms.interpreter import FormState, is_answered
from ems.forms.location import check_presence
from ems.services import notifications
from ems.services.classifier import KeywordSets, keywords_for, match, text_of
from ems.services.notifications import OutboundMessage
from ems.services.records import (
    Actor, Answer, Branch, Coordinates, LogEntry, PartUsage, Report, User, new_report_id,
)
from ems.services.store import Persistence
from ems.utils.fsm import REPORT_FSM
from ems.utils.validation import validate_choice

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = Actor('system', 'System', 'SYSTEM')

# Keys a forced edit may not touch: identity and the audit trail itself.
_LOCKED_KEYS = {'id', 'logs', 'dynamicAnswers'}

# Statuses a non-admin replay may move a report into; assign and close stay admin actions.
_REPLAY_TARGETS = {STATUS_IN_PROGRESS, STATUS_PENDING_PARTS, STATUS_COMPLETED}


@dataclass
class Outcome:
    report: Report
    messages: List[OutboundMessage] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    priority_keyword: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'report': self.report.to_dict(),
            'notifications': [m.to_dict() for m in self.messages],
            'warnings': list(self.warnings),
        }


def _images(fields: Iterable[DynamicField], values: Dict[str, Any]) -> List[str]:
    out: List[str] = []
    for f in fields:
        if f.type == FieldType.IMAGE:
            out.extend(values.get(f.id) or [])
    return out


def _require_evidence(fields: List[DynamicField], values: Dict[str, Any], when: str) -> None:
    image_fields = [f for f in fields if f.type == FieldType.IMAGE]
    if image_fields and not _images(image_fields, values):
        raise ValidationError(f'at least one photo is required {when}', fields=[f.id for f in image_fields])


class ReportService:
    def __init__(self, store: Persistence, config: SystemConfig, keywords: Optional[KeywordSets] = None):
        self.store = store
        self.config = config
        self.keywords = keywords or keywords_for(config)

    # --- lookups ------------------------------------------------------------

    def get(self, report_id: str) -> Report:
        report = self.store.get_report(report_id)
        if report is None:
            raise ReportNotFoundError(report_id)
        return report

    def branch(self, branch_id: str) -> Branch:
        for b in self.store.get_branches():
            if b.id == branch_id:
                return b
        raise NotFoundError(f'branch {branch_id} not found')

    def _branch_or_none(self, branch_id: str) -> Optional[Branch]:
        try:
            return self.branch(branch_id)
        except NotFoundError:
            return None

    def _user(self, user_id: Optional[str]) -> Optional[User]:
        for u in self.store.get_users():
            if u.id == user_id:
                return u
        return None

    def technician(self, technician_id: str) -> User:
        user = self._user(technician_id)
        if user is None:
            raise NotFoundError(f'user {technician_id} not found')
        if user.role != ROLE_TECHNICIAN:
            raise ValidationError(f'user {technician_id} is not a technician', fields=['technicianId'])
        return user

    def _manager_phone(self, branch: Optional[Branch]) -> Optional[str]:
        if branch is None:
            return None
        if branch.manager_phone:
            return branch.manager_phone
        manager = self._user(branch.manager_id)
        return manager.phone if manager else None

    def least_loaded_technician(self) -> Optional[User]:
        """Technician with the fewest open reports; ties go to the lowest user id."""
        technicians = sorted((u for u in self.store.get_users() if u.role == ROLE_TECHNICIAN), key=lambda u: u.id)
        if not technicians:
            return None
        load = {t.id: 0 for t in technicians}
        for r in self.store.get_reports():
            if r.status in OPEN_STATUSES and r.assigned_technician_id in load:
                load[r.assigned_technician_id] += 1
        return min(technicians, key=lambda t: load[t.id])

    # --- helpers ------------------------------------------------------------

    @staticmethod
    def _log(report: Report, actor: Actor, text: str, kind: str) -> None:
        report.logs.append(LogEntry(text=text, user_id=actor.id, user_name=actor.name, type=kind))

    def _move(self, report: Report, target: str, actor: Actor, note: Optional[str] = None) -> None:
        REPORT_FSM.assert_can_transition(report.status, target)
        text = f'{report.status} -> {target}'
        if note:
            text = f'{text}: {note}'
        report.status = target
        self._log(report, actor, text, LOG_STATUS_CHANGE)

    def _set_technician(self, report: Report, technician: User) -> None:
        report.assigned_technician_id = technician.id
        report.assigned_technician_name = technician.name

    # --- lifecycle ----------------------------------------------------------

    def create(self, branch_id: str, actor: Actor, values: Dict[str, Any], priority: Optional[str] = None) -> Outcome:
        """Assemble a NEW report from intake values.

        ``priority`` overrides the classifier (this is the only way LOW is set).
        """
        branch = self.branch(branch_id)
        fields = self.config.report_questions
        form = FormState(fields, values)
        form.validate()
        if self.config.feature(FEATURE_EVIDENCE_BEFORE):
            _require_evidence(fields, form.values, 'before submitting')

        assessed, keyword = match(text_of(form.values), self.keywords)
        if priority is not None:
            priority = validate_choice(priority, ALL_PRIORITIES, 'priority')
        answers = form.answers()
        data = {a.field_id: a.value for a in answers}
        gps = next((f for f in form.fields if f.type == FieldType.GPS and data.get(f.id)), None)

        report = Report(
            id=new_report_id(),
            branch_id=branch.id,
            branch_name=branch.name,
            created_by_user_id=actor.id,
            created_by_name=actor.name,
            priority=priority or assessed,
            machine_type=str(data.get('machineType') or 'General'),
            description=str(data.get('description') or ''),
            dynamic_answers=answers,
            dynamic_data=data,
            location_coords=Coordinates.from_value(data[gps.id]) if gps else None,
            images_before=_images(fields, data),
        )
        self._log(report, actor, f'created as {STATUS_NEW}', LOG_STATUS_CHANGE)
        if keyword:
            logger.info('report %s classified %s on keyword %r', report.id, assessed, keyword)
        outcome = Outcome(report, priority_keyword=keyword)
        outcome.messages.extend(notifications.compact([notifications.new_ticket(report, self.config)]))

        if self.config.feature(FEATURE_AUTO_ASSIGN):
            technician = self.least_loaded_technician()
            if technician is None:
                outcome.warnings.append('auto-assign is enabled but no technician is available')
            else:
                self._set_technician(report, technician)
                self._move(report, STATUS_ASSIGNED, SYSTEM_ACTOR, f'auto-assigned to {technician.name}')
                outcome.messages.extend(notifications.compact([
                    notifications.technician_assignment(report, technician, branch, self.config),
                ]))
        self.store.save_report(report)
        return outcome

    def assign(self, report_id: str, technician_id: str, actor: Actor) -> Outcome:
        """NEW -> ASSIGNED. An ASSIGNED report may be handed to another technician without a status change."""
        report = self.get(report_id)
        technician = self.technician(technician_id)
        if report.status == STATUS_ASSIGNED:
            self._set_technician(report, technician)
            self._log(report, actor, f'reassigned to {technician.name}', LOG_SYSTEM)
        else:
            REPORT_FSM.assert_can_transition(report.status, STATUS_ASSIGNED)
            self._set_technician(report, technician)
            self._move(report, STATUS_ASSIGNED, actor, f'assigned to {technician.name}')
        self.store.save_report(report)
        message = notifications.technician_assignment(
            report, technician, self._branch_or_none(report.branch_id), self.config)
        return Outcome(report, notifications.compact([message]))

    def start(self, report_id: str, actor: Actor, location: Any, degraded: bool = False) -> Outcome:
        """Technician confirms arrival (also resumes work after PENDING_PARTS)."""
        report = self.get(report_id)
        REPORT_FSM.assert_can_transition(report.status, STATUS_IN_PROGRESS)
        presence = check_presence(location, degraded)
        if not report.assigned_technician_id and actor.role == ROLE_TECHNICIAN:
            report.assigned_technician_id = actor.id
            report.assigned_technician_name = actor.name
        self._move(report, STATUS_IN_PROGRESS, actor)
        self.store.save_report(report)
        return Outcome(report, warnings=[presence.warning] if presence.warning else [])

    def request_parts(self, report_id: str, actor: Actor, part_name: str, quantity: int = 1,
                      notes: Optional[str] = None) -> Outcome:
        if not part_name or not str(part_name).strip():
            raise ValidationError('part name required', fields=['partName'])
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError('quantity must be a positive integer', fields=['quantity'])
        report = self.get(report_id)
        note = f'{part_name.strip()} x{quantity}'
        if notes:
            note = f'{note} ({notes})'
        self._move(report, STATUS_PENDING_PARTS, actor, note)
        self.store.save_report(report)
        message = notifications.parts_request(report, note, self.config)
        return Outcome(report, notifications.compact([message]))

    def _resolve_parts(self, parts: Iterable[Any]) -> List[tuple]:
        """Match requested usage against stock. Nothing is written until every line checks out."""
        stock = {p.id: p for p in self.store.get_inventory()}
        wanted: Dict[str, int] = {}
        usages: List[PartUsage] = []
        for raw in parts:
            usage = raw if isinstance(raw, PartUsage) else PartUsage.from_dict(raw)
            part = stock.get(usage.part_id)
            if part is None:
                raise NotFoundError(f'spare part {usage.part_id} not found')
            wanted[part.id] = wanted.get(part.id, 0) + usage.quantity
            if wanted[part.id] > part.quantity:
                raise ValidationError(
                    f'not enough stock for {part.name}: {part.quantity} left', fields=['partsUsageList'])
            usages.append(PartUsage(part.id, part.name, usage.quantity, part.price))
        return [(u, stock[u.part_id]) for u in usages]

    def complete(self, report_id: str, actor: Actor, values: Dict[str, Any], location: Any,
                 parts: Iterable[Any] = (), degraded: bool = False) -> Outcome:
        report = self.get(report_id)
        REPORT_FSM.assert_can_transition(report.status, STATUS_COMPLETED)
        presence = check_presence(location, degraded)
        fields = self.config.repair_fields
        form = FormState(fields, values)
        form.validate()
        if self.config.feature(FEATURE_EVIDENCE_AFTER):
            _require_evidence(fields, form.values, 'after the repair')
        resolved = self._resolve_parts(parts)

        answers = form.answers()
        data = {a.field_id: a.value for a in answers}
        report.dynamic_answers.extend(answers)
        report.dynamic_data.update(data)
        report.images_after.extend(_images(fields, data))
        usage = [u for u, _ in resolved]
        report.parts_usage_list.extend(usage)

        cost = data.get('cost')
        if cost is None and usage:
            cost = sum(u.quantity * u.unit_price for u in usage)
        if cost is not None:
            report.cost = cost
        parts_used = data.get('partsUsed')
        if parts_used is None and usage:
            parts_used = ', '.join(f'{u.part_name} ({u.quantity})' for u in usage)
        if parts_used is not None:
            report.parts_used = str(parts_used)
        if not report.assigned_technician_id and actor.role == ROLE_TECHNICIAN:
            report.assigned_technician_id = actor.id
            report.assigned_technician_name = actor.name
        self._move(report, STATUS_COMPLETED, actor)

        outcome = Outcome(report, warnings=[presence.warning] if presence.warning else [])
        for u, part in resolved:
            part.quantity -= u.quantity
        touched = list({part.id: part for _, part in resolved}.values())
        self.store.save_closeout(report, touched)
        for part in touched:
            if part.is_low:
                logger.warning('spare part %s low: %s left (min %s)', part.sku, part.quantity, part.min_level)
                outcome.messages.extend(notifications.compact([
                    notifications.low_stock(part.name, part.quantity, self.config),
                ]))
        branch = self._branch_or_none(report.branch_id)
        outcome.messages.extend(notifications.compact([
            notifications.completion(report, self._manager_phone(branch), self.config),
        ]))
        return outcome

    def close(self, report_id: str, actor: Actor, notes: Optional[str] = None) -> Outcome:
        report = self.get(report_id)
        self._move(report, STATUS_CLOSED, actor, notes)
        if notes:
            report.admin_notes = notes
        self.store.save_report(report)
        return Outcome(report)

    def comment(self, report_id: str, actor: Actor, text: str) -> Outcome:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError('comment text required', fields=['text'])
        report = self.get(report_id)
        self._log(report, actor, text.strip(), LOG_COMMENT)
        self.store.save_report(report)
        return Outcome(report)

    def reality_edit(self, report_id: str, actor: Actor, changes: Dict[str, Any]) -> Outcome:
        """Administrative correction of any report attribute, status included.

        Bypasses the transition graph. The change is recorded as a FORCED_EDIT
        log entry listing every attribute that actually changed.
        """
        if not isinstance(changes, dict) or not changes:
            raise ValidationError('no changes given')
        locked = sorted(set(changes) & _LOCKED_KEYS)
        if locked:
            raise ValidationError(f'cannot edit {", ".join(locked)}', fields=locked)
        if 'status' in changes:
            validate_choice(changes['status'], ALL_STATUSES, 'status')
        if 'priority' in changes:
            validate_choice(changes['priority'], ALL_PRIORITIES, 'priority')

        report = self.get(report_id)
        before = report.to_dict()
        unknown = sorted(k for k in changes if k not in before)
        if unknown:
            raise ValidationError(f"unknown report attributes: {', '.join(unknown)}", fields=unknown)
        merged = dict(before)
        for key, value in changes.items():
            if key == 'dynamicData':
                if not isinstance(value, dict):
                    raise ValidationError('dynamicData must be an object', fields=['dynamicData'])
                merged['dynamicData'] = {**before['dynamicData'], **value}
            else:
                merged[key] = value
        edited = Report.from_dict(merged)
        self._sync_answers(edited)
        after = edited.to_dict()

        diffs = [k for k in changes if before.get(k) != after.get(k)]
        if not diffs:
            return Outcome(report)
        text = '; '.join(f'{k}: {before.get(k)!r} -> {after.get(k)!r}' for k in diffs)
        self._log(edited, actor, f'forced edit: {text}', LOG_FORCED_EDIT)
        logger.warning('forced edit on report %s by %s: %s', report_id, actor.id, ', '.join(diffs))
        self.store.save_report(edited)
        return Outcome(edited)

    def _sync_answers(self, report: Report) -> None:
        """Keep ``dynamicAnswers`` in step with ``dynamicData`` after a forced edit.

        Existing snapshots keep their label and type; keys without a snapshot get
        one built from the current field definition.
        """
        data = report.dynamic_data
        seen = set()
        for answer in report.dynamic_answers:
            seen.add(answer.field_id)
            if answer.field_id in data:
                answer.value = data[answer.field_id]
        by_id = {f.id: f for f in self.config.all_fields()}
        for key, value in data.items():
            f = by_id.get(key)
            if key in seen or f is None or not is_answered(f, value):
                continue
            report.dynamic_answers.append(Answer(f.id, f.label_ar, value, f.type.value))

    def upsert(self, payload: Dict[str, Any], report_id: Optional[str] = None, actor: Optional[Actor] = None) -> Report:
        """Idempotent save of a whole report (offline replay target).

        Non-admin callers may only replay edges of the report graph that their
        own actions produce; anything else is a forced edit and goes through
        ``reality_edit``.
        """
        report = Report.from_dict(payload)
        if report_id is not None and report.id != report_id:
            raise ValidationError('report id does not match the path', fields=['id'])
        validate_choice(report.status, ALL_STATUSES, 'status')
        validate_choice(report.priority, ALL_PRIORITIES, 'priority')
        if actor is not None and actor.role != ROLE_ADMIN:
            self._check_replay(report)
        return self.store.save_report(report)

    def _check_replay(self, report: Report) -> None:
        existing = self.store.get_report(report.id)
        if existing is None:
            return
        if report.priority != existing.priority:
            raise ValidationError('priority can only be changed by an admin', fields=['priority'])
        if report.status == existing.status:
            return
        if not REPORT_FSM.reachable(existing.status, report.status, via=_REPLAY_TARGETS):
            raise InvalidTransitionError(existing.status, report.status)


__all__ = ['ReportService', 'Outcome', 'SYSTEM_ACTOR']
