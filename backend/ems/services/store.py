from __future__ import annotations
"""Persistence port consumed by the core services, plus two adapters.

``SqlStore`` is the production adapter over a SQLAlchemy session. ``MemoryStore``
keeps everything in dictionaries; tests and offline tooling use it.

``get_config`` returns the raw JSON document (or None) so the config store can
detect and recover from a malformed payload itself.
"""
import copy
import logging
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ems.errors import PersistenceError, ValidationError
from ems.models.config_document import ConfigDocument
from ems.models.directory import BranchRecord, StaffUser
from ems.models.inventory_part import InventoryPart
from ems.models.report import MaintenanceReport
from ems.services.records import Branch, Report, SparePart, User

logger = logging.getLogger(__name__)


class Persistence(Protocol):
    def get_config(self) -> Optional[Dict[str, Any]]: ...
    def save_config(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...
    def get_reports(self) -> List[Report]: ...
    def get_report(self, report_id: str) -> Optional[Report]: ...
    def save_report(self, report: Report) -> Report: ...
    def get_branches(self) -> List[Branch]: ...
    def get_users(self) -> List[User]: ...
    def get_inventory(self) -> List[SparePart]: ...
    def save_spare_part(self, part: SparePart) -> SparePart: ...
    def save_closeout(self, report: Report, parts: List[SparePart]) -> Report: ...
    def delete_spare_part(self, part_id: str) -> None: ...


class MemoryStore:
    def __init__(self, config: Optional[Dict[str, Any]] = None, branches=(), users=(), parts=()):
        self.config = copy.deepcopy(config)
        self.reports: Dict[str, Dict[str, Any]] = {}
        self.branches = {b.id: b for b in branches}
        self.users = {u.id: u for u in users}
        self.parts = {p.id: p for p in parts}
        self.config_saves = 0
        self.report_saves = 0

    def get_config(self):
        return copy.deepcopy(self.config)

    def save_config(self, payload):
        self.config = copy.deepcopy(payload)
        self.config_saves += 1
        return copy.deepcopy(payload)

    def get_reports(self):
        rows = sorted(self.reports.values(), key=lambda r: r['createdAt'], reverse=True)
        return [Report.from_dict(r) for r in rows]

    def get_report(self, report_id):
        data = self.reports.get(report_id)
        return Report.from_dict(data) if data else None

    def save_report(self, report):
        self.reports[report.id] = copy.deepcopy(report.to_dict())
        self.report_saves += 1
        return report

    def get_branches(self):
        return list(self.branches.values())

    def get_users(self):
        return list(self.users.values())

    def get_inventory(self):
        return [copy.copy(p) for p in self.parts.values()]

    def save_spare_part(self, part):
        self.parts[part.id] = copy.copy(part)
        return part

    def save_closeout(self, report, parts):
        self.save_report(report)
        for part in parts:
            self.save_spare_part(part)
        return report

    def delete_spare_part(self, part_id):
        self.parts.pop(part_id, None)


def report_from_row(row: MaintenanceReport) -> Report:
    return Report.from_dict({
        'id': row.id,
        'branchId': row.branch_id,
        'branchName': row.branch_name,
        'createdByUserId': row.created_by_user_id,
        'createdByName': row.created_by_name,
        'createdAt': row.created_at,
        'priority': row.priority,
        'status': row.status,
        'machineType': row.machine_type,
        'description': row.description,
        'assignedTechnicianId': row.assigned_technician_id,
        'assignedTechnicianName': row.assigned_technician_name,
        'dynamicAnswers': row.dynamic_answers,
        'dynamicData': row.dynamic_data,
        'locationCoords': row.location_coords,
        'imagesBefore': row.images_before,
        'imagesAfter': row.images_after,
        'cost': row.cost,
        'partsUsed': row.parts_used,
        'partsUsageList': row.parts_usage_list,
        'adminNotes': row.admin_notes,
        'logs': row.logs,
    })


def _apply_report(row: MaintenanceReport, report: Report) -> None:
    data = report.to_dict()
    row.branch_id = report.branch_id
    row.branch_name = report.branch_name
    row.created_by_user_id = report.created_by_user_id
    row.created_by_name = report.created_by_name
    row.created_at = report.created_at
    row.priority = report.priority
    row.status = report.status
    row.machine_type = report.machine_type
    row.description = report.description
    row.assigned_technician_id = report.assigned_technician_id
    row.assigned_technician_name = report.assigned_technician_name
    row.dynamic_answers = data['dynamicAnswers']
    row.dynamic_data = data['dynamicData']
    row.location_coords = data['locationCoords']
    row.images_before = data['imagesBefore']
    row.images_after = data['imagesAfter']
    row.cost = report.cost
    row.parts_used = report.parts_used
    row.parts_usage_list = data['partsUsageList']
    row.admin_notes = report.admin_notes
    row.logs = data['logs']


class SqlStore:
    def __init__(self, session):
        self.session = session

    def _commit(self, what: str):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ValidationError(f'{what} conflicts with an existing record')
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error('failed to persist %s: %s', what, exc)
            raise PersistenceError(f'could not save {what}')

    def get_config(self):
        try:
            row = self.session.get(ConfigDocument, ConfigDocument.SYSTEM_KEY)
        except SQLAlchemyError as exc:
            raise PersistenceError(f'could not load config: {exc}')
        return copy.deepcopy(row.payload) if row else None

    def save_config(self, payload):
        row = self.session.get(ConfigDocument, ConfigDocument.SYSTEM_KEY)
        if row is None:
            row = ConfigDocument(key=ConfigDocument.SYSTEM_KEY)
            self.session.add(row)
        row.payload = copy.deepcopy(payload)
        row.version = int(payload.get('version') or 0)
        self._commit('config')
        return copy.deepcopy(payload)

    def get_reports(self):
        rows = self.session.execute(select(MaintenanceReport).order_by(MaintenanceReport.created_at.desc())).scalars()
        return [report_from_row(r) for r in rows]

    def get_report(self, report_id):
        row = self.session.get(MaintenanceReport, report_id)
        return report_from_row(row) if row else None

    def _stage_report(self, report):
        row = self.session.get(MaintenanceReport, report.id)
        if row is None:
            row = MaintenanceReport(id=report.id)
            self.session.add(row)
        _apply_report(row, report)

    def save_report(self, report):
        self._stage_report(report)
        self._commit(f'report {report.id}')
        return report

    def get_branches(self):
        rows = self.session.execute(select(BranchRecord).order_by(BranchRecord.id)).scalars()
        return [Branch(r.id, r.name, r.location, r.manager_id, r.manager_phone) for r in rows]

    def get_users(self):
        rows = self.session.execute(select(StaffUser).order_by(StaffUser.id)).scalars()
        return [User(r.id, r.name, r.role, r.branch_id, r.phone, r.avatar) for r in rows]

    def get_inventory(self):
        rows = self.session.execute(select(InventoryPart).order_by(InventoryPart.name)).scalars()
        return [SparePart(r.id, r.name, r.sku, r.quantity, r.price, r.min_level, r.category) for r in rows]

    def _stage_part(self, part):
        row = self.session.get(InventoryPart, part.id)
        if row is None:
            row = InventoryPart(id=part.id)
            self.session.add(row)
        row.name, row.sku, row.quantity = part.name, part.sku, part.quantity
        row.price, row.min_level, row.category = part.price, part.min_level, part.category

    def save_spare_part(self, part):
        self._stage_part(part)
        self._commit(f'spare part {part.id}')
        return part

    def save_closeout(self, report, parts):
        """Stock decrements and the completed report land in one commit."""
        try:
            for part in parts:
                self._stage_part(part)
            self._stage_report(report)
        except Exception:
            self.session.rollback()
            raise
        self._commit(f'closeout of report {report.id}')
        return report

    def delete_spare_part(self, part_id):
        row = self.session.get(InventoryPart, part_id)
        if row is not None:
            self.session.delete(row)
            self._commit(f'spare part {part_id}')


__all__ = ['Persistence', 'MemoryStore', 'SqlStore', 'report_from_row']
