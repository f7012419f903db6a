def _token(client, **payload):
    resp = client.post('/directory/session', json=payload)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    return body, {'Authorization': f"Bearer {body['access_token']}"}


def test_session_picks_directory_user(client):
    body, headers = _token(client, role='TECHNICIAN')
    assert body['user']['id'] == 'tech-1'
    me = client.get('/directory/me', headers=headers).get_json()
    assert me == {'id': 'tech-1', 'name': 'محمد الفني (ميكانيكا)', 'role': 'TECHNICIAN', 'branchId': None}


def test_session_for_specific_user(client):
    body, headers = _token(client, role='BRANCH_MANAGER', userId='mgr-br-1')
    assert body['user']['branchId'] == 'br-1'
    assert client.get('/directory/me', headers=headers).get_json()['branchId'] == 'br-1'


def test_session_errors(client):
    assert client.post('/directory/session', json={'role': 'GUEST'}).status_code == 400
    assert client.post('/directory/session', json={}).status_code == 400
    resp = client.post('/directory/session', json={'role': 'TECHNICIAN', 'userId': 'admin-1'})
    assert resp.status_code == 404


def test_branches_and_users(client):
    _, headers = _token(client, role='ADMIN')
    branches = client.get('/directory/branches', headers=headers).get_json()['data']
    assert branches[0]['id'] == 'br-1'
    assert branches[0]['managerPhone'] == '201000000101'
    techs = client.get('/directory/users?role=TECHNICIAN', headers=headers).get_json()['data']
    assert [u['id'] for u in techs] == ['tech-1', 'tech-2']
    _, tech = _token(client, role='TECHNICIAN')
    assert client.get('/directory/users', headers=tech).status_code == 403


def test_session_token_drives_report_creation(client):
    from tests.test_lifecycle_helpers import intake_values
    _, headers = _token(client, role='BRANCH_MANAGER')
    resp = client.post('/reports', json={'values': intake_values()}, headers=headers)
    assert resp.status_code == 201
    report = resp.get_json()['report']
    assert report['createdByUserId'] == 'mgr-br-1'
    assert report['createdByName'] == 'مدير فرع القاهرة'
