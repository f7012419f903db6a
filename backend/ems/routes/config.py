from __future__ import annotations
from flask import Blueprint, request, abort, make_response
from ems.constants.roles import ROLE_ADMIN
from ems.decorators.auth import require_role
from ems.decorators.audit import audit_log
from ems.errors import ValidationError
from ems.forms.fields import DynamicField, Section, parse_section
from ems.forms.interpreter import FormState
from ems.forms.wizard import STEP_DETAILS, STEP_EVIDENCE, IntakeWizard
from ems.services.classifier import keywords_for, match, text_of
from ems.services.wiring import config_store

cfg_bp = Blueprint('config', __name__)


def _expected_version():
    """Optimistic concurrency token from ``If-Match`` or ``expectedVersion``; None = last write wins."""
    raw = request.headers.get('If-Match')
    if raw is None and request.is_json:
        raw = (request.get_json(silent=True) or {}).get('expectedVersion')
    if raw is None or raw == '*':
        return None
    try:
        return int(str(raw).strip('"'))
    except ValueError:
        raise ValidationError('If-Match must be a config version number')


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return data


def _config_response(config, status: int = 200):
    resp = make_response(config.to_dict(), status)
    resp.headers['ETag'] = f'"{config.version}"'
    return resp


def _meta(data, rv, args, kwargs):
    return {'version': data.get('version'), **kwargs}


@cfg_bp.get('')
@require_role()
def get_config():
    return _config_response(config_store().load())


@cfg_bp.post('/<section>/fields')
@require_role(ROLE_ADMIN)
@audit_log('CONFIG.FIELD.ADD', entity='SystemConfig', entity_id_arg='section', meta_builder=_meta)
def add_field(section: str):
    field = DynamicField.from_dict(_body())
    config = config_store().add_field(parse_section(section), field, _expected_version())
    return config.to_dict(), 201


@cfg_bp.patch('/<section>/fields/<field_id>')
@require_role(ROLE_ADMIN)
@audit_log('CONFIG.FIELD.UPDATE', entity='SystemConfig', entity_id_arg='field_id', meta_builder=_meta)
def update_field(section: str, field_id: str):
    partial = {k: v for k, v in _body().items() if k != 'expectedVersion'}
    config = config_store().update_field(parse_section(section), field_id, partial, _expected_version())
    return config.to_dict()


@cfg_bp.delete('/<section>/fields/<field_id>')
@require_role(ROLE_ADMIN)
@audit_log('CONFIG.FIELD.REMOVE', entity='SystemConfig', entity_id_arg='field_id', meta_builder=_meta)
def remove_field(section: str, field_id: str):
    config = config_store().remove_field(parse_section(section), field_id, _expected_version())
    return config.to_dict()


@cfg_bp.post('/<section>/reorder')
@require_role(ROLE_ADMIN)
@audit_log('CONFIG.FIELD.REORDER', entity='SystemConfig', entity_id_arg='section', meta_builder=_meta)
def reorder_fields(section: str):
    data = _body()
    try:
        src, dst = int(data['from']), int(data['to'])
    except (KeyError, TypeError, ValueError):
        raise ValidationError('from, to required (integers)', fields=['from', 'to'])
    config = config_store().reorder(parse_section(section), src, dst, _expected_version())
    return config.to_dict()


@cfg_bp.put('/features/<name>')
@require_role(ROLE_ADMIN)
@audit_log('CONFIG.FEATURE.SET', entity='SystemConfig', entity_id_arg='name', meta_builder=_meta)
def set_feature(name: str):
    value = _body().get('value')
    if not isinstance(value, bool):
        raise ValidationError('value must be a boolean', fields=['value'])
    config = config_store().toggle_feature(name, value, _expected_version())
    return config.to_dict()


@cfg_bp.put('/keywords')
@require_role(ROLE_ADMIN)
@audit_log('CONFIG.KEYWORDS.SET', entity='SystemConfig', meta_builder=_meta)
def set_keywords():
    data = _body()
    critical, high = data.get('critical'), data.get('high')
    if not isinstance(critical, list) or not isinstance(high, list):
        raise ValidationError('critical, high must be lists of keywords', fields=['critical', 'high'])
    config = config_store().set_keywords(critical, high, _expected_version())
    return config.to_dict()


@cfg_bp.get('/<section>/form')
@require_role()
def render_form(section: str):
    sec = parse_section(section)
    config = config_store().load()
    form = FormState(config.section(sec))
    body = {'section': sec.value, 'version': config.version, 'fields': form.render()}
    if sec == Section.REPORT_QUESTIONS:
        wizard = IntakeWizard(config)
        body['steps'] = {
            'details': [f.id for f in wizard.fields_for_step(STEP_DETAILS)],
            'evidence': [f.id for f in wizard.fields_for_step(STEP_EVIDENCE)],
        }
    return body


@cfg_bp.post('/classify')
@require_role()
def classify_text():
    data = _body()
    values = data.get('values')
    if isinstance(values, dict):
        text = text_of(values)
    elif isinstance(data.get('text'), str):
        text = data['text']
    else:
        raise ValidationError('text or values required', fields=['text', 'values'])
    priority, keyword = match(text, keywords_for(config_store().load()))
    return {'priority': priority, 'keyword': keyword}
