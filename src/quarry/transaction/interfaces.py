from enum import Enum

from quarry.exception import QuarryError


class TransactionState(Enum):
    """Lifecycle of an externally controlled transaction"""

    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


class TransactionError(QuarryError):
    """Raised when a transaction handle is misused"""

    code = "transaction"
