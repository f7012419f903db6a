import threading
import pytest
from ems.errors import LocationUnavailableError, ValidationError
from ems.forms.fields import DynamicField, FieldType
from ems.forms.interpreter import FormState
from ems.forms.location import acquire_location, check_presence
from ems.services.records import Coordinates


def test_acquire_returns_coordinates():
    coords = acquire_location(lambda: {'lat': 29.97, 'lng': 31.13}, timeout=1)
    assert coords == Coordinates(29.97, 31.13)


def test_acquire_times_out_without_waiting_for_provider():
    release = threading.Event()

    def stuck():
        release.wait(5)
        return {'lat': 1, 'lng': 1}

    try:
        with pytest.raises(LocationUnavailableError) as exc:
            acquire_location(stuck, timeout=0.05)
        assert 'timed out' in exc.value.detail
    finally:
        release.set()


def test_permission_denied():
    def denied():
        raise PermissionError('user said no')

    with pytest.raises(LocationUnavailableError) as exc:
        acquire_location(denied, timeout=1)
    assert 'denied' in exc.value.detail
    assert exc.value.status == 422


def test_provider_without_fix():
    with pytest.raises(LocationUnavailableError):
        acquire_location(lambda: None, timeout=1)


def test_failed_capture_leaves_field_unset():
    form = FormState([DynamicField('where', 'الموقع', FieldType.GPS, True)], {'where': {'lat': 1, 'lng': 2}})

    def denied():
        raise PermissionError()

    with pytest.raises(LocationUnavailableError):
        form.capture_location('where', denied, timeout=1)
    assert form.values['where'] is None
    assert form.missing_required() == ['where']


def test_env_timeout_default(monkeypatch):
    monkeypatch.setenv('EMS_LOCATION_TIMEOUT', '0.05')
    release = threading.Event()
    try:
        with pytest.raises(LocationUnavailableError):
            acquire_location(lambda: release.wait(5))
    finally:
        release.set()


def test_presence_check_blocks_without_location():
    with pytest.raises(LocationUnavailableError):
        check_presence(None)


def test_presence_check_degraded_warns():
    check = check_presence(None, degraded=True)
    assert check.coords is None
    assert check.warning


def test_presence_check_accepts_mapping():
    assert check_presence({'lat': 1, 'lng': 2}).coords == Coordinates(1.0, 2.0)
    with pytest.raises(ValidationError):
        check_presence({'lat': 'north', 'lng': 2})


def test_provider_failure_maps_to_unavailable():
    def broken():
        raise OSError('gps hardware failure')

    with pytest.raises(LocationUnavailableError) as exc:
        acquire_location(broken, timeout=1)
    assert isinstance(exc.value.__cause__, OSError)


@pytest.mark.parametrize('raw', [{}, {'lat': None, 'lng': None}, {'lat': 'north', 'lng': 2}, 'somewhere'])
def test_provider_without_usable_fix(raw):
    with pytest.raises(LocationUnavailableError):
        acquire_location(lambda: raw, timeout=1)


def test_capture_with_empty_fix_leaves_field_unset():
    form = FormState([DynamicField('where', 'الموقع', FieldType.GPS, True)], {'where': {'lat': 1, 'lng': 2}})
    with pytest.raises(LocationUnavailableError):
        form.capture_location('where', lambda: {'lat': None, 'lng': None}, timeout=1)
    assert form.values['where'] is None


def test_presence_check_null_coordinates():
    check = check_presence({'lat': None, 'lng': None}, degraded=True)
    assert check.coords is None
    assert check.warning
    with pytest.raises(LocationUnavailableError):
        check_presence({'lat': None, 'lng': None})
