"""Demo directory data: branches, staff and a starter spare-parts stock.

Used by ``scripts/seed_demo.py`` and the test fixtures.
"""
from ems.constants.roles import ROLE_ADMIN, ROLE_BRANCH_MANAGER, ROLE_TECHNICIAN

CITIES = ['القاهرة', 'الجيزة', 'الإسكندرية', 'المنصورة']


def branches(count: int = 20):
    out = []
    for i in range(1, count + 1):
        city = CITIES[i % len(CITIES)]
        out.append({
            'id': f'br-{i}',
            'name': f'فرع {city} {i}',
            'location': f'{city}, مصر',
            'manager_id': 'mgr-br-1' if i == 1 else None,
            'manager_phone': '201000000101' if i == 1 else None,
        })
    return out


USERS = [
    {'id': 'admin-1', 'name': 'المدير العام', 'role': ROLE_ADMIN, 'branch_id': None, 'phone': None},
    {'id': 'tech-1', 'name': 'محمد الفني (ميكانيكا)', 'role': ROLE_TECHNICIAN, 'branch_id': None, 'phone': '201000000201'},
    {'id': 'tech-2', 'name': 'أحمد الفني (كهرباء)', 'role': ROLE_TECHNICIAN, 'branch_id': None, 'phone': '201000000202'},
    {'id': 'mgr-br-1', 'name': 'مدير فرع القاهرة', 'role': ROLE_BRANCH_MANAGER, 'branch_id': 'br-1', 'phone': '201000000101'},
]

PARTS = [
    {'id': 'part-compressor', 'name': 'ضاغط تكييف', 'sku': 'AC-CMP-01', 'quantity': 4, 'price': 3500.0, 'min_level': 2, 'category': 'تكييف'},
    {'id': 'part-fuse', 'name': 'فيوز 10 أمبير', 'sku': 'EL-FUSE-10', 'quantity': 40, 'price': 15.0, 'min_level': 10, 'category': 'كهرباء'},
    {'id': 'part-belt', 'name': 'سير ناقل', 'sku': 'MC-BELT-02', 'quantity': 6, 'price': 420.0, 'min_level': 5, 'category': 'ميكانيكا'},
]
