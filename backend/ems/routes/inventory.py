from __future__ import annotations
from flask import Blueprint, request, abort
from ems.constants.roles import ROLE_ADMIN
from ems.decorators.audit import audit_log
from ems.decorators.auth import require_role
from ems.services.records import SparePart
from ems.services.wiring import sql_store

inv_bp = Blueprint('inventory', __name__)


def _part_json(p: SparePart):
    return {**p.to_dict(), 'low': p.is_low}


@inv_bp.get('/parts')
@require_role()
def list_parts():
    parts = sql_store().get_inventory()
    if request.args.get('low') in ('1', 'true'):
        parts = [p for p in parts if p.is_low]
    return {'data': [_part_json(p) for p in parts]}


@inv_bp.post('/parts')
@require_role(ROLE_ADMIN)
@audit_log('INVENTORY.PART.SAVE', entity='SparePart', entity_id_key='id', meta_keys=['sku', 'quantity'])
def save_part():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    part = sql_store().save_spare_part(SparePart.from_dict(data))
    return _part_json(part), 201


@inv_bp.delete('/parts/<part_id>')
@require_role(ROLE_ADMIN)
@audit_log('INVENTORY.PART.DELETE', entity='SparePart', entity_id_arg='part_id')
def delete_part(part_id: str):
    sql_store().delete_spare_part(part_id)
    return {'deleted': part_id}
