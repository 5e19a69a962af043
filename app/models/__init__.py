from app.models.account import Account, Transaction
from app.models.audit_log import AuditLog
from app.models.failed_job import FailedJob

__all__ = [
    "Account",
    "Transaction",
    "AuditLog",
    "FailedJob",
]
