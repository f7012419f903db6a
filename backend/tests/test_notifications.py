from urllib.parse import unquote
from ems.forms.fields import default_config
from ems.services import notifications
from ems.services.records import Branch, PartUsage, Report, User


def _report(**kw):
    base = dict(id='rep-abc123', branch_id='br-1', branch_name='فرع القاهرة 1', created_by_user_id='mgr-br-1',
                created_by_name='مدير', machine_type='تكييف مركزي', description='لا يبرد')
    base.update(kw)
    return Report(**base)


def test_whatsapp_url_encodes_text():
    url = notifications.whatsapp_url('201000000000', 'سطر 1\nسطر #2')
    assert url.startswith('https://wa.me/201000000000?text=')
    assert '\n' not in url and '#' not in url.split('?', 1)[1]
    assert unquote(url.split('text=', 1)[1]) == 'سطر 1\nسطر #2'


def test_new_ticket_goes_to_dispatch(monkeypatch):
    monkeypatch.setenv('EMS_DISPATCH_PHONE', '201555')
    msg = notifications.new_ticket(_report(priority='HIGH'), default_config())
    assert msg.phone == '201555'
    assert '#abc123' in msg.text
    assert 'HIGH' in msg.text


def test_disabled_feature_suppresses_messages():
    config = default_config()
    config.features['enableWhatsApp'] = False
    assert notifications.new_ticket(_report(), config) is None
    assert notifications.low_stock('فيوز', 1, config) is None


def test_assignment_needs_technician_phone():
    branch = Branch('br-1', 'فرع القاهرة 1', 'القاهرة, مصر')
    tech = User('tech-9', 'فني', 'TECHNICIAN')
    assert notifications.technician_assignment(_report(), tech, branch) is None
    tech = User('tech-9', 'فني', 'TECHNICIAN', phone='201000000209')
    msg = notifications.technician_assignment(_report(), tech, branch)
    assert msg.phone == '201000000209'
    assert 'https://www.google.com/maps/search/?api=1&query=' in msg.text


def test_completion_lists_parts_and_cost():
    report = _report(cost=450, assigned_technician_name='محمد',
                     parts_usage_list=[PartUsage('part-fuse', 'فيوز 10 أمبير', 2, 15.0)])
    msg = notifications.completion(report, '201000000101')
    assert '- فيوز 10 أمبير (2)' in msg.text
    assert '450' in msg.text
    empty = notifications.completion(_report(), '201000000101')
    assert 'لا يوجد قطع غيار' in empty.text
    assert notifications.completion(report, None) is None


def test_compact_drops_missing():
    msg = notifications.low_stock('سير', 1)
    assert notifications.compact([None, msg, None]) == [msg]
