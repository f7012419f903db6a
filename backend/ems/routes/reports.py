from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import func, select
from ems import get_db
from ems.constants.roles import (
    ALL_PRIORITIES, ALL_STATUSES, ROLE_ADMIN, ROLE_BRANCH_MANAGER, ROLE_TECHNICIAN,
)
from ems.decorators.audit import audit_log
from ems.decorators.auth import require_role
from ems.errors import ReportNotFoundError, ValidationError
from ems.models.report import MaintenanceReport
from ems.services.policy import assert_branch_access, assert_report_access, current_actor
from ems.services.store import report_from_row
from ems.services.wiring import report_service
from ems.utils.filters import apply_filters
from ems.utils.listing import apply_pagination, handle_conditional, make_cached_item_response, make_cached_list_response
from ems.utils.sorting import apply_multi_sort
from ems.utils.validation import optional_int, require_text

rep_bp = Blueprint('reports', __name__)

SORTABLE = {
    'createdAt': MaintenanceReport.created_at,
    'priority': MaintenanceReport.priority,
    'status': MaintenanceReport.status,
    'branchId': MaintenanceReport.branch_id,
    'updatedAt': MaintenanceReport.updated_at,
    'id': MaintenanceReport.id,
}

FILTERS = {
    'status': {'choices': ALL_STATUSES, 'op': lambda q, v: q.filter(MaintenanceReport.status == v)},
    'priority': {'choices': ALL_PRIORITIES, 'op': lambda q, v: q.filter(MaintenanceReport.priority == v)},
    'branch_id': {'op': lambda q, v: q.filter(MaintenanceReport.branch_id == v)},
    'technician_id': {'op': lambda q, v: q.filter(MaintenanceReport.assigned_technician_id == v)},
}


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return data


def _scoped(q, actor):
    if actor.role == ROLE_BRANCH_MANAGER:
        return q.filter(MaintenanceReport.branch_id == actor.branch_id)
    if actor.role == ROLE_TECHNICIAN:
        return q.filter(MaintenanceReport.assigned_technician_id == actor.id)
    return q


def _load_for_action(report_id: str):
    """Service and actor, once the caller's access to the report is checked."""
    svc = report_service()
    actor = current_actor()
    assert_report_access(svc.get(report_id), actor)
    return svc, actor


def _prefetch(args, kwargs):
    report = get_db().get(MaintenanceReport, kwargs.get('report_id'))
    if report is None:
        return {}
    return {
        'report.status': report.status,
        'report.priority': report.priority,
        'report.assignedTechnicianId': report.assigned_technician_id,
    }


def _report_meta(data, rv, args, kwargs):
    report = data.get('report') or data
    meta = {'status': report.get('status'), 'priority': report.get('priority')}
    if data.get('notifications'):
        meta['notifications'] = len(data['notifications'])
    return meta


@rep_bp.get('')
@require_role()
def list_reports():
    session = get_db()
    actor = current_actor()
    q = _scoped(session.query(MaintenanceReport), actor)
    q = apply_filters(q, FILTERS, request.args)
    q = apply_multi_sort(q, request.args.get('sort') or '-createdAt', SORTABLE, MaintenanceReport.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    stamps = [r.updated_at for r in rows if r.updated_at]
    latest_ts = max(stamps) if stamps else None
    resp, etag = make_cached_list_response([report_from_row(r).to_dict() for r in rows], total, limit, offset, latest_ts)
    return handle_conditional(etag, latest_ts) or resp


@rep_bp.get('/summary')
@require_role()
def summary():
    """Report counts per status within the caller's scope."""
    session = get_db()
    actor = current_actor()
    q = _scoped(session.query(MaintenanceReport.status, func.count(MaintenanceReport.id)), actor)
    counts = dict(q.group_by(MaintenanceReport.status).all())
    return {'counts': {s: counts.get(s, 0) for s in ALL_STATUSES}, 'total': sum(counts.values())}


@rep_bp.get('/<report_id>')
@require_role()
def get_report(report_id: str):
    row = get_db().execute(select(MaintenanceReport).where(MaintenanceReport.id == report_id)).scalar_one_or_none()
    if row is None:
        raise ReportNotFoundError(report_id)
    report = report_from_row(row)
    assert_report_access(report)
    resp, etag = make_cached_item_response(report.to_dict(), row.updated_at)
    return handle_conditional(etag, row.updated_at) or resp


@rep_bp.post('')
@require_role(ROLE_BRANCH_MANAGER, ROLE_ADMIN)
@audit_log('REPORT.CREATE', entity='Report', entity_id_key='report.id', meta_builder=_report_meta)
def create_report():
    data = _body()
    actor = current_actor()
    branch_id = data.get('branchId') or actor.branch_id
    if not branch_id:
        raise ValidationError('branchId required', fields=['branchId'])
    assert_branch_access(branch_id, actor)
    values = data.get('values') or {}
    if not isinstance(values, dict):
        raise ValidationError('values must be an object', fields=['values'])
    outcome = report_service().create(branch_id, actor, values, data.get('priority'))
    return outcome.to_dict(), 201


@rep_bp.post('/<report_id>/assign')
@require_role(ROLE_ADMIN)
@audit_log('REPORT.ASSIGN', entity='Report', entity_id_arg='report_id', meta_builder=_report_meta,
           diff_keys=['report.assignedTechnicianId'], pre_fetch=_prefetch)
def assign_report(report_id: str):
    svc, actor = _load_for_action(report_id)
    outcome = svc.assign(report_id, require_text(_body(), 'technicianId'), actor)
    return outcome.to_dict()


@rep_bp.post('/<report_id>/start')
@require_role(ROLE_TECHNICIAN, ROLE_ADMIN)
@audit_log('REPORT.START', entity='Report', entity_id_arg='report_id', meta_builder=_report_meta)
def start_report(report_id: str):
    data = _body()
    svc, actor = _load_for_action(report_id)
    outcome = svc.start(report_id, actor, data.get('location'), bool(data.get('degraded')))
    return outcome.to_dict()


@rep_bp.post('/<report_id>/request-parts')
@require_role(ROLE_TECHNICIAN, ROLE_ADMIN)
@audit_log('REPORT.PARTS.REQUEST', entity='Report', entity_id_arg='report_id', meta_builder=_report_meta)
def request_parts(report_id: str):
    data = _body()
    svc, actor = _load_for_action(report_id)
    quantity = optional_int(data, 'quantity')
    outcome = svc.request_parts(report_id, actor, require_text(data, 'partName'),
                                1 if quantity is None else quantity, data.get('notes'))
    return outcome.to_dict()


@rep_bp.post('/<report_id>/complete')
@require_role(ROLE_TECHNICIAN, ROLE_ADMIN)
@audit_log('REPORT.COMPLETE', entity='Report', entity_id_arg='report_id', meta_builder=_report_meta)
def complete_report(report_id: str):
    data = _body()
    parts = data.get('parts') or []
    if not isinstance(parts, list):
        raise ValidationError('parts must be a list', fields=['parts'])
    svc, actor = _load_for_action(report_id)
    outcome = svc.complete(report_id, actor, data.get('values') or {}, data.get('location'),
                           parts, bool(data.get('degraded')))
    return outcome.to_dict()


@rep_bp.post('/<report_id>/close')
@require_role(ROLE_ADMIN)
@audit_log('REPORT.CLOSE', entity='Report', entity_id_arg='report_id', meta_builder=_report_meta)
def close_report(report_id: str):
    data = request.get_json(silent=True) or {}
    svc, actor = _load_for_action(report_id)
    return svc.close(report_id, actor, data.get('notes')).to_dict()


@rep_bp.post('/<report_id>/comments')
@require_role()
@audit_log('REPORT.COMMENT', entity='Report', entity_id_arg='report_id')
def add_comment(report_id: str):
    data = _body()
    svc, actor = _load_for_action(report_id)
    return svc.comment(report_id, actor, data.get('text')).to_dict(), 201


@rep_bp.patch('/<report_id>')
@require_role(ROLE_ADMIN)
@audit_log('REPORT.FORCED_EDIT', entity='Report', entity_id_arg='report_id', meta_builder=_report_meta,
           diff_keys=['report.status', 'report.priority', 'report.assignedTechnicianId'], pre_fetch=_prefetch)
def reality_edit(report_id: str):
    svc, actor = _load_for_action(report_id)
    return svc.reality_edit(report_id, actor, _body()).to_dict()


@rep_bp.put('/<report_id>')
@require_role(ROLE_TECHNICIAN, ROLE_ADMIN)
@audit_log('REPORT.UPSERT', entity='Report', entity_id_key='id', meta_keys=['status'])
def upsert_report(report_id: str):
    """Whole-report save used by offline replay; repeating it is harmless."""
    data = _body()
    svc = report_service()
    actor = current_actor()
    existing = svc.store.get_report(report_id)
    if existing is not None:
        assert_report_access(existing, actor)
    elif actor.role != ROLE_ADMIN:
        abort(403, description='Only existing reports can be replayed')
    return svc.upsert(data, report_id, actor).to_dict()
