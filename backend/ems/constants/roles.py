"""Role names and report lifecycle constants shared by services and routes.

Roles are plain strings carried in the access token; there is no permission
table behind them.
"""

ROLE_ADMIN = 'ADMIN'
ROLE_BRANCH_MANAGER = 'BRANCH_MANAGER'
ROLE_TECHNICIAN = 'TECHNICIAN'
ALL_ROLES = (ROLE_ADMIN, ROLE_BRANCH_MANAGER, ROLE_TECHNICIAN)

STATUS_NEW = 'NEW'
STATUS_ASSIGNED = 'ASSIGNED'
STATUS_IN_PROGRESS = 'IN_PROGRESS'
STATUS_PENDING_PARTS = 'PENDING_PARTS'
STATUS_COMPLETED = 'COMPLETED'
STATUS_CLOSED = 'CLOSED'
ALL_STATUSES = (
    STATUS_NEW, STATUS_ASSIGNED, STATUS_IN_PROGRESS,
    STATUS_PENDING_PARTS, STATUS_COMPLETED, STATUS_CLOSED,
)
OPEN_STATUSES = (STATUS_NEW, STATUS_ASSIGNED, STATUS_IN_PROGRESS, STATUS_PENDING_PARTS)

PRIORITY_LOW = 'LOW'
PRIORITY_NORMAL = 'NORMAL'
PRIORITY_HIGH = 'HIGH'
PRIORITY_CRITICAL = 'CRITICAL'
ALL_PRIORITIES = (PRIORITY_LOW, PRIORITY_NORMAL, PRIORITY_HIGH, PRIORITY_CRITICAL)

LOG_STATUS_CHANGE = 'STATUS_CHANGE'
LOG_COMMENT = 'COMMENT'
LOG_SYSTEM = 'SYSTEM'
LOG_FORCED_EDIT = 'FORCED_EDIT'

# Fallback identities used by the session endpoint when the directory has no
# user for the requested role (mirrors the demo login behaviour).
DEMO_USERS = {
    ROLE_ADMIN: {'id': 'adm-demo', 'name': 'المدير العام', 'role': ROLE_ADMIN, 'branchId': None},
    ROLE_BRANCH_MANAGER: {'id': 'br-demo', 'name': 'مدير الفرع', 'role': ROLE_BRANCH_MANAGER, 'branchId': 'br-1'},
    ROLE_TECHNICIAN: {'id': 'tech-demo', 'name': 'فني الصيانة', 'role': ROLE_TECHNICIAN, 'branchId': None},
}
