"""Foundation database access.

Provides:
- RecordStore protocol and insert payloads used by the commit orchestrator
- Connection handling for the MySQL-protocol database
- Repository classes and the SQL-backed RecordStore
"""

from .client import check_connection, execute_query, get_connection, get_cursor
from .repository import ActivityLogRepository, GrantRepository, OrganizationRepository, SqlRecordStore
from .store import ActivityEntry, NewGrant, NewOrganization, RecordStore, StoreError

__all__ = [
    # Client
    "get_connection",
    "get_cursor",
    "execute_query",
    "check_connection",
    # Store contract
    "RecordStore",
    "StoreError",
    "NewOrganization",
    "NewGrant",
    "ActivityEntry",
    # Repositories
    "OrganizationRepository",
    "GrantRepository",
    "ActivityLogRepository",
    "SqlRecordStore",
]
