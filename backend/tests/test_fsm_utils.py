from ems.errors import InvalidTransitionError
from ems.utils.fsm import REPORT_FSM, TransitionValidator
import pytest


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(InvalidTransitionError) as exc:
        fsm.assert_can_transition('A', 'C')
    assert exc.value.status == 400
    assert 'A -> C' in exc.value.detail


def test_report_graph_edges():
    assert REPORT_FSM.can_transition('NEW', 'ASSIGNED')
    assert REPORT_FSM.can_transition('NEW', 'IN_PROGRESS')
    assert REPORT_FSM.can_transition('PENDING_PARTS', 'IN_PROGRESS')
    assert REPORT_FSM.can_transition('PENDING_PARTS', 'COMPLETED')
    assert not REPORT_FSM.can_transition('NEW', 'COMPLETED')
    assert not REPORT_FSM.can_transition('COMPLETED', 'IN_PROGRESS')
    assert REPORT_FSM.targets('CLOSED') == set()


def test_report_schema_exposes_transitions(client):
    body = client.get('/openapi.json').get_json()
    schema = body['components']['schemas']['Report']
    assert 'x-transitions' in schema
    assert schema['x-transitions'][0] == 'NEW'
    assert schema['x-transition-graph']['COMPLETED'] == ['CLOSED']


def test_reachable_through_allowed_states():
    assert REPORT_FSM.reachable('ASSIGNED', 'COMPLETED', via={'IN_PROGRESS', 'COMPLETED'})
    assert not REPORT_FSM.reachable('NEW', 'CLOSED', via={'IN_PROGRESS', 'PENDING_PARTS', 'COMPLETED'})
    assert REPORT_FSM.reachable('NEW', 'CLOSED')
    assert not REPORT_FSM.reachable('CLOSED', 'NEW')
