import pytest
from sqlalchemy.exc import OperationalError
from ems import get_db
from ems.errors import PersistenceError
from ems.models.audit import AuditLog
from ems.models.inventory_part import InventoryPart
from ems.services.store import SqlStore
from tests.test_lifecycle_helpers import admin_headers, create_report_and_assert, manager_headers, tech_headers
from tests.test_utils_seed import ensure_part


def test_list_parts_with_low_flag(client, app_instance):
    resp = client.get('/inventory/parts', headers=tech_headers(app_instance))
    assert resp.status_code == 200
    parts = {p['id']: p for p in resp.get_json()['data']}
    assert parts['part-fuse']['minLevel'] == 10
    assert 'low' in parts['part-fuse']
    low = client.get('/inventory/parts?low=1', headers=tech_headers(app_instance)).get_json()['data']
    assert all(p['low'] for p in low)


def test_save_and_delete_part(client, app_instance):
    headers = admin_headers(app_instance)
    payload = {'id': 'part-test-filter', 'name': 'فلتر مياه', 'sku': 'WT-FLT-9', 'quantity': 3, 'price': 55, 'minLevel': 5}
    resp = client.post('/inventory/parts', json=payload, headers=headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['low'] is True
    resp = client.post('/inventory/parts', json={**payload, 'quantity': 12}, headers=headers)
    assert resp.status_code == 201
    assert resp.get_json()['low'] is False
    with app_instance.app_context():
        assert get_db().query(AuditLog).filter_by(action='INVENTORY.PART.SAVE', entity_id='part-test-filter').count() == 2
    resp = client.delete('/inventory/parts/part-test-filter', headers=headers)
    assert resp.get_json() == {'deleted': 'part-test-filter'}
    ids = [p['id'] for p in client.get('/inventory/parts', headers=headers).get_json()['data']]
    assert 'part-test-filter' not in ids


def test_part_validation_and_roles(client, app_instance):
    headers = admin_headers(app_instance)
    assert client.post('/inventory/parts', json={'name': 'x'}, headers=headers).status_code == 400
    assert client.post('/inventory/parts', json={'name': 'x', 'sku': 'S', 'quantity': 'many'}, headers=headers).status_code == 400
    assert client.post('/inventory/parts', json=['x'], headers=headers).status_code == 400
    assert client.post('/inventory/parts', json={'name': 'x', 'sku': 'S'}, headers=tech_headers(app_instance)).status_code == 403


def test_duplicate_sku_rejected(client, app_instance):
    headers = admin_headers(app_instance)
    resp = client.post('/inventory/parts', json={'id': 'part-dupe', 'name': 'نسخة', 'sku': 'EL-FUSE-10'}, headers=headers)
    assert resp.status_code == 400
    assert 'conflicts' in resp.get_json()['error']['detail']


def test_closeout_commit_is_all_or_nothing(client, app_instance, monkeypatch):
    report = create_report_and_assert(client, manager_headers(app_instance))
    with app_instance.app_context():
        ensure_part('part-closeout-sql', 5)
        session = get_db()
        store = SqlStore(session)
        part = next(p for p in store.get_inventory() if p.id == 'part-closeout-sql')
        part.quantity -= 2
        loaded = store.get_report(report['id'])
        loaded.status = 'COMPLETED'

        def failing_commit():
            raise OperationalError('COMMIT', {}, Exception('disk I/O error'))

        monkeypatch.setattr(session, 'commit', failing_commit)
        with pytest.raises(PersistenceError):
            store.save_closeout(loaded, [part])
        monkeypatch.undo()
        assert session.get(InventoryPart, 'part-closeout-sql').quantity == 5
        assert store.get_report(report['id']).status == report['status']

        store.save_closeout(loaded, [part])
        assert session.get(InventoryPart, 'part-closeout-sql').quantity == 3
        assert store.get_report(report['id']).status == 'COMPLETED'
