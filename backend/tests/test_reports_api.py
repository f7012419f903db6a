from ems import get_db
from ems.models.audit import AuditLog
from tests.test_lifecycle_helpers import (
    BRANCH_COORDS, admin_headers, assert_action, closeout_values, create_report_and_assert,
    exercise_report_lifecycle, intake_values, manager_headers, tech_headers,
)
from tests.test_utils_seed import ensure_part


def test_full_lifecycle(client, app_instance):
    report = exercise_report_lifecycle(client, app_instance)
    assert report['adminNotes'] == 'تمت المراجعة'
    texts = [entry['text'] for entry in report['logs']]
    assert texts[0] == 'created as NEW'
    assert 'ASSIGNED -> IN_PROGRESS' in texts
    assert texts[-1] == 'COMPLETED -> CLOSED: تمت المراجعة'
    assert report['cost'] == 250


def test_create_returns_outcome_with_notifications(client, app_instance):
    resp = client.post('/reports', json={'values': intake_values('ماس كهربائي وشرار')},
                       headers=manager_headers(app_instance))
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['report']['branchId'] == 'br-1'
    assert body['report']['priority'] == 'CRITICAL'
    assert body['notifications'][0]['url'].startswith('https://wa.me/')
    assert body['warnings'] == []


def test_create_validation_errors(client, app_instance):
    resp = client.post('/reports', json={'branchId': 'br-1', 'values': {'machineType': 'أخرى'}},
                       headers=manager_headers(app_instance))
    assert resp.status_code == 400
    error = resp.get_json()['error']
    assert 'description' in error['fields']
    resp = client.post('/reports', json={'branchId': 'br-1', 'values': []}, headers=admin_headers(app_instance))
    assert resp.status_code == 400
    resp = client.post('/reports', json={'values': intake_values()}, headers=admin_headers(app_instance))
    assert resp.status_code == 400
    resp = client.post('/reports', json={'branchId': 'br-404', 'values': intake_values()}, headers=admin_headers(app_instance))
    assert resp.status_code == 404


def test_branch_scope_enforced(client, app_instance):
    other = manager_headers(app_instance, branch_id='br-2', user_id='mgr-br-2')
    resp = client.post('/reports', json={'branchId': 'br-1', 'values': intake_values()}, headers=other)
    assert resp.status_code == 403
    report = create_report_and_assert(client, manager_headers(app_instance))
    assert client.get(f"/reports/{report['id']}", headers=other).status_code == 403
    listed = client.get('/reports?limit=200', headers=other).get_json()['data']
    assert all(r['branchId'] == 'br-2' for r in listed)
    assert client.post('/reports', json={'branchId': 'br-1', 'values': intake_values()},
                       headers=tech_headers(app_instance)).status_code == 403


def test_technician_scope(client, app_instance):
    report = create_report_and_assert(client, manager_headers(app_instance))
    rid = report['id']
    assert_action(client, rid, 'assign', admin_headers(app_instance), {'technicianId': 'tech-2'})
    assert client.get(f'/reports/{rid}', headers=tech_headers(app_instance, 'tech-1')).status_code == 403
    assert client.get(f'/reports/{rid}', headers=tech_headers(app_instance, 'tech-2')).status_code == 200
    assert_action(client, rid, 'start', tech_headers(app_instance, 'tech-1'), {'location': BRANCH_COORDS},
                  expected_status=403)
    mine = client.get('/reports?limit=200', headers=tech_headers(app_instance, 'tech-2')).get_json()['data']
    assert rid in [r['id'] for r in mine]
    assert all(r['assignedTechnicianId'] == 'tech-2' for r in mine)


def test_arrival_needs_location(client, app_instance):
    report = create_report_and_assert(client, manager_headers(app_instance))
    tech = tech_headers(app_instance)
    resp = assert_action(client, report['id'], 'start', tech, {}, expected_status=422)
    assert resp.get_json()['error']['title'] == 'Location Unavailable'
    resp = assert_action(client, report['id'], 'start', tech, {'degraded': True}, expected_report_status='IN_PROGRESS')
    assert resp.get_json()['warnings']


def test_invalid_transition_is_400(client, app_instance):
    report = create_report_and_assert(client, manager_headers(app_instance))
    resp = assert_action(client, report['id'], 'close', admin_headers(app_instance), {}, expected_status=400)
    assert 'NEW -> CLOSED' in resp.get_json()['error']['detail']
    resp = assert_action(client, report['id'], 'complete', tech_headers(app_instance),
                         {'values': closeout_values(), 'location': BRANCH_COORDS}, expected_status=400)


def test_role_gates_on_actions(client, app_instance):
    report = create_report_and_assert(client, manager_headers(app_instance))
    rid = report['id']
    assert_action(client, rid, 'assign', manager_headers(app_instance), {'technicianId': 'tech-1'}, expected_status=403)
    assert_action(client, rid, 'start', manager_headers(app_instance), {'location': BRANCH_COORDS}, expected_status=403)
    assert_action(client, rid, 'assign', admin_headers(app_instance), {}, expected_status=400)


def test_parts_request_and_closeout_with_stock(client, app_instance):
    with app_instance.app_context():
        ensure_part('part-api-valve', quantity=3, min_level=1, price=80.0)
    report = create_report_and_assert(client, manager_headers(app_instance))
    rid = report['id']
    tech = tech_headers(app_instance)
    assert_action(client, rid, 'start', tech, {'location': BRANCH_COORDS})
    resp = assert_action(client, rid, 'request-parts', tech, {'partName': 'صمام', 'quantity': 2},
                         expected_report_status='PENDING_PARTS')
    assert resp.get_json()['notifications']
    assert_action(client, rid, 'request-parts', tech, {'partName': 'صمام', 'quantity': 'two'}, expected_status=400)
    assert_action(client, rid, 'start', tech, {'location': BRANCH_COORDS}, expected_report_status='IN_PROGRESS')
    too_many = {'values': closeout_values(), 'location': BRANCH_COORDS, 'parts': [{'partId': 'part-api-valve', 'quantity': 5}]}
    assert_action(client, rid, 'complete', tech, too_many, expected_status=400)
    payload = {'values': closeout_values(), 'location': BRANCH_COORDS, 'parts': [{'partId': 'part-api-valve', 'quantity': 2}]}
    resp = assert_action(client, rid, 'complete', tech, payload, expected_report_status='COMPLETED')
    body = resp.get_json()
    assert body['report']['partsUsageList'][0]['unitPrice'] == 80.0
    # stock 1 left at min level 1: low-stock alert plus manager completion message
    assert len(body['notifications']) == 2
    parts = client.get('/inventory/parts', headers=tech).get_json()['data']
    valve = [p for p in parts if p['id'] == 'part-api-valve'][0]
    assert valve['quantity'] == 1 and valve['low'] is True
    assert_action(client, rid, 'complete', tech, {'values': closeout_values(), 'location': BRANCH_COORDS,
                                                   'parts': 'valve'}, expected_status=400)


def test_comments(client, app_instance):
    report = create_report_and_assert(client, manager_headers(app_instance))
    resp = client.post(f"/reports/{report['id']}/comments", json={'text': 'تم التواصل'}, headers=manager_headers(app_instance))
    assert resp.status_code == 201
    assert resp.get_json()['report']['logs'][-1]['type'] == 'COMMENT'
    resp = client.post(f"/reports/{report['id']}/comments", json={'text': ''}, headers=manager_headers(app_instance))
    assert resp.status_code == 400


def test_forced_edit_is_admin_only_and_audited(client, app_instance):
    report = create_report_and_assert(client, manager_headers(app_instance))
    rid = report['id']
    assert client.patch(f'/reports/{rid}', json={'status': 'CLOSED'}, headers=manager_headers(app_instance)).status_code == 403
    resp = client.patch(f'/reports/{rid}', json={'status': 'CLOSED', 'priority': 'LOW'}, headers=admin_headers(app_instance))
    assert resp.status_code == 200
    body = resp.get_json()['report']
    assert body['status'] == 'CLOSED'
    assert body['logs'][-1]['type'] == 'FORCED_EDIT'
    with app_instance.app_context():
        row = get_db().query(AuditLog).filter_by(action='REPORT.FORCED_EDIT', entity_id=rid).one()
        assert row.meta['changes']['report.status'] == {'before': 'NEW', 'after': 'CLOSED'}
    assert client.patch(f'/reports/{rid}', json={'logs': []}, headers=admin_headers(app_instance)).status_code == 400


def test_upsert_for_offline_replay(client, app_instance):
    report = create_report_and_assert(client, manager_headers(app_instance))
    rid = report['id']
    report['status'] = 'IN_PROGRESS'
    report['assignedTechnicianId'] = 'tech-1'
    tech = tech_headers(app_instance)
    first = client.put(f'/reports/{rid}', json=report, headers=tech)
    second = client.put(f'/reports/{rid}', json=report, headers=tech)
    assert first.status_code == second.status_code == 200
    assert client.get(f'/reports/{rid}', headers=tech).get_json()['status'] == 'IN_PROGRESS'
    assert client.put(f'/reports/{rid}', json={**report, 'id': 'rep-other'}, headers=tech).status_code == 400
    assert client.put('/reports/rep-brand-new', json={**report, 'id': 'rep-brand-new'}, headers=tech).status_code == 403
    admin = client.put('/reports/rep-brand-new', json={**report, 'id': 'rep-brand-new'}, headers=admin_headers(app_instance))
    assert admin.status_code == 200
    assert client.put(f'/reports/{rid}', json=report, headers=manager_headers(app_instance)).status_code == 403


def test_replay_cannot_skip_the_workflow(client, app_instance):
    report = create_report_and_assert(client, manager_headers(app_instance))
    rid = report['id']
    tech = tech_headers(app_instance)
    resp = client.put(f'/reports/{rid}', json={**report, 'status': 'CLOSED', 'priority': 'LOW'}, headers=tech)
    assert resp.status_code == 400
    assert client.put(f'/reports/{rid}', json={**report, 'status': 'CLOSED'}, headers=tech).status_code == 400
    stored = client.get(f'/reports/{rid}', headers=tech).get_json()
    assert stored['status'] == report['status']
    assert stored['priority'] == report['priority']
    assert [e['type'] for e in stored['logs']] == [e['type'] for e in report['logs']]


def test_summary_counts(client, app_instance):
    create_report_and_assert(client, manager_headers(app_instance, branch_id='br-3', user_id='mgr-br-3'), branch_id='br-3')
    body = client.get('/reports/summary', headers=manager_headers(app_instance, branch_id='br-3', user_id='mgr-br-3')).get_json()
    assert set(body['counts']) == {'NEW', 'ASSIGNED', 'IN_PROGRESS', 'PENDING_PARTS', 'COMPLETED', 'CLOSED'}
    assert body['counts']['NEW'] >= 1
    assert body['total'] == sum(body['counts'].values())


def test_missing_report_is_404(client, app_instance):
    resp = client.get('/reports/rep-nope', headers=admin_headers(app_instance))
    assert resp.status_code == 404
    assert resp.get_json()['error']['detail'] == 'report rep-nope not found'
    assert_action(client, 'rep-nope', 'start', admin_headers(app_instance), {'location': BRANCH_COORDS}, expected_status=404)
