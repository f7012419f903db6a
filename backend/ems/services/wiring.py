"""Per-request construction of the core services over the SQL store."""
from ems import get_db
from ems.services.config_store import ConfigStore
from ems.services.reports import ReportService
from ems.services.store import SqlStore


def sql_store() -> SqlStore:
    return SqlStore(get_db())


def config_store() -> ConfigStore:
    return ConfigStore(sql_store())


def report_service() -> ReportService:
    store = sql_store()
    return ReportService(store, ConfigStore(store).load())
