import json
import httpx
import pytest
from ems.errors import PersistenceError, ValidationError
from ems.services.records import Report
from ems.sync.client import HttpClient, ReportSyncClient
from ems.sync.ports import MemoryKeyValueStore
from ems.sync.queue import OfflineReplayQueue, save_or_enqueue


def _report(rid='rep-1', status='COMPLETED'):
    return Report(id=rid, branch_id='br-1', branch_name='فرع', created_by_user_id='u', created_by_name='n', status=status)


def _client(handler, token='tok'):
    return ReportSyncClient(HttpClient('https://ems.test', token=token, transport=httpx.MockTransport(handler)))


def test_save_report_puts_whole_document():
    seen = {}

    def handler(request: httpx.Request):
        seen['method'] = request.method
        seen['path'] = request.url.path
        seen['auth'] = request.headers.get('Authorization')
        body = json.loads(request.content)
        seen['status'] = body['status']
        return httpx.Response(200, json=body)

    saved = _client(handler).save_report(_report())
    assert saved.id == 'rep-1'
    assert seen == {'method': 'PUT', 'path': '/reports/rep-1', 'auth': 'Bearer tok', 'status': 'COMPLETED'}


@pytest.mark.parametrize('status', [500, 503, 429, 408])
def test_retryable_statuses_become_persistence_errors(status):
    client = _client(lambda request: httpx.Response(status, json={'error': {'detail': 'later'}}))
    with pytest.raises(PersistenceError):
        client.save_report(_report())


def test_client_errors_are_validation_errors():
    client = _client(lambda request: httpx.Response(400, json={'error': {'status': 400, 'detail': 'status invalid'}}))
    with pytest.raises(ValidationError) as exc:
        client.save_report(_report())
    assert 'status invalid' in exc.value.detail


def test_transport_errors_are_persistence_errors():
    def handler(request):
        raise httpx.ConnectError('no route to host', request=request)

    with pytest.raises(PersistenceError):
        _client(handler).save_report(_report())


def test_fetch_reports_passes_filters():
    def handler(request: httpx.Request):
        assert request.url.params['limit'] == '200'
        assert request.url.params['status'] == 'ASSIGNED'
        return httpx.Response(200, json={'data': [_report('rep-9', 'ASSIGNED').to_dict()], 'pagination': {}})

    reports = _client(handler, token=None).fetch_reports(status='ASSIGNED')
    assert [(r.id, r.status) for r in reports] == [('rep-9', 'ASSIGNED')]


def test_queue_replays_through_client_after_outage():
    state = {'up': False, 'puts': []}

    def handler(request):
        if not state['up']:
            return httpx.Response(503, json={'error': {'detail': 'down'}})
        state['puts'].append(request.url.path)
        return httpx.Response(200, json=json.loads(request.content))

    client = _client(handler)
    queue = OfflineReplayQueue(MemoryKeyValueStore())
    assert save_or_enqueue(_report('rep-1'), client.save_report, queue) is False
    assert queue.flush(client.save_report).remaining == 1
    state['up'] = True
    assert queue.flush(client.save_report).complete
    assert state['puts'] == ['/reports/rep-1']
    client.http.close()
