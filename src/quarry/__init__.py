from importlib.metadata import version

from .base.hydrator import Hydrator
from .capability import Capabilities, Page, Pagination, capability
from .exception import (
    FilterError,
    QuarryError,
    RecordNotFound,
    UnsupportedOperation,
    WriteConflict,
)
from .quarry import Quarry
from .sql.executor import ModelExecutor
from .sql.mysql.executor import MysqlExecutor
from .sql.mysql.interface import MysqlPool
from .sql.postgres.executor import PostgresExecutor
from .sql.postgres.interface import PostgresPool
from .sql.sqlite.executor import SQLiteExecutor
from .sql.sqlite.interface import SQLitePool
from .transaction import (
    BackoffConfig,
    TransactionError,
    TransactionHandle,
    TransactionState,
    run_with_retry,
)

__version__ = version("quarry")

__all__ = (
    "capability",
    "run_with_retry",
    "BackoffConfig",
    "Capabilities",
    "FilterError",
    "Hydrator",
    "ModelExecutor",
    "MysqlExecutor",
    "MysqlPool",
    "Page",
    "Pagination",
    "PostgresExecutor",
    "PostgresPool",
    "Quarry",
    "QuarryError",
    "RecordNotFound",
    "SQLiteExecutor",
    "SQLitePool",
    "TransactionError",
    "TransactionHandle",
    "TransactionState",
    "UnsupportedOperation",
    "WriteConflict",
)
