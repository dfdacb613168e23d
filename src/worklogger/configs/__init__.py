from .models import WorkConfig, WorkConfigRow
from .store import SqlAlchemyWorkConfigStore, WorkConfigRepository, ensure_work_config_schema

__all__ = [
    "WorkConfig",
    "WorkConfigRow",
    "SqlAlchemyWorkConfigStore",
    "WorkConfigRepository",
    "ensure_work_config_schema",
]
