"""Runtime settings read from the environment (``.env`` is loaded by the app factory).

Everything here has a safe default so the core can be imported and tested
without any environment configured.
"""
import os
from typing import List, Optional

DEFAULT_LIMIT = 50
MAX_LIMIT = 200

DEFAULT_DATABASE_URL = 'sqlite:///ems.db'
DEFAULT_LOCATION_TIMEOUT = 10.0
DEFAULT_DISPATCH_PHONE = '201000000000'

# Arabic keyword defaults used by the priority classifier.
CRITICAL_KEYWORDS = (
    'حريق', 'نار', 'دخان', 'انفجار', 'كهرباء عارية', 'ماس', 'تسريب غاز',
    'خطر', 'صعق', 'إغماء',
)
HIGH_KEYWORDS = (
    'تكييف', 'سيرفر', 'ثلاجة', 'تعطل كامل', 'بوابة', 'مصعد',
)


def _split_env(name: str) -> Optional[List[str]]:
    raw = os.getenv(name)
    if not raw:
        return None
    words = [w.strip() for w in raw.split(',')]
    return [w for w in words if w]


def critical_keywords() -> tuple:
    return tuple(_split_env('EMS_CRITICAL_KEYWORDS') or CRITICAL_KEYWORDS)


def high_keywords() -> tuple:
    return tuple(_split_env('EMS_HIGH_KEYWORDS') or HIGH_KEYWORDS)


def location_timeout() -> float:
    try:
        return float(os.getenv('EMS_LOCATION_TIMEOUT', DEFAULT_LOCATION_TIMEOUT))
    except ValueError:
        return DEFAULT_LOCATION_TIMEOUT


def dispatch_phone() -> str:
    return os.getenv('EMS_DISPATCH_PHONE', DEFAULT_DISPATCH_PHONE)


def log_level() -> str:
    return os.getenv('EMS_LOG_LEVEL', 'INFO').upper()


def normalize_pagination(limit_raw, offset_raw):
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)
