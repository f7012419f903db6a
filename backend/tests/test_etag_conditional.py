from tests.test_lifecycle_helpers import admin_headers, create_report_and_assert, manager_headers


def test_etag_conditional_reports(client, app_instance):
    headers = admin_headers(app_instance)
    create_report_and_assert(client, manager_headers(app_instance))
    first = client.get('/reports?limit=5', headers=headers)
    assert first.status_code == 200
    etag = first.headers.get('ETag')
    assert etag
    # Conditional request
    second = client.get('/reports?limit=5', headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304
    assert second.headers.get('ETag') == etag
    # If-Modified-Since should also 304 when using Last-Modified from first response
    lm = first.headers.get('Last-Modified')
    assert lm
    assert first.headers.get('X-Last-Modified-ISO', '').endswith('Z')
    third = client.get('/reports?limit=5', headers={**headers, 'If-Modified-Since': lm})
    assert third.status_code == 304
    assert third.headers.get('ETag') == etag


def test_etag_changes_with_page(client, app_instance):
    headers = admin_headers(app_instance)
    create_report_and_assert(client, manager_headers(app_instance))
    create_report_and_assert(client, manager_headers(app_instance))
    page1 = client.get('/reports?limit=1&offset=0', headers=headers)
    page2 = client.get('/reports?limit=1&offset=1', headers=headers)
    assert page1.headers['ETag'] != page2.headers['ETag']
    stale = client.get('/reports?limit=1&offset=1', headers={**headers, 'If-None-Match': page1.headers['ETag']})
    assert stale.status_code == 200


def test_single_report_etag(client, app_instance):
    headers = admin_headers(app_instance)
    report = create_report_and_assert(client, manager_headers(app_instance))
    first = client.get(f"/reports/{report['id']}", headers=headers)
    assert first.status_code == 200
    assert first.get_json()['id'] == report['id']
    etag = first.headers['ETag']
    again = client.get(f"/reports/{report['id']}", headers={**headers, 'If-None-Match': f'"{etag}"'})
    assert again.status_code == 304
