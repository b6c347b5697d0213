"""
Savepoint naming for nested transactions.

Savepoint names are interpolated into SQL, so only plain identifiers are
accepted.
"""

import re

from auditdal.exception import TransactionError

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def savepoint_name(level: int) -> str:
    """Name used for an anonymous savepoint opened at ``level``"""
    return f"trans{level}"


def validate_savepoint(name: str) -> str:
    if not isinstance(name, str) or not IDENTIFIER.match(name):
        raise TransactionError(f"Invalid savepoint name: {name!r}")
    return name


def create_sql(name: str) -> str:
    return f"SAVEPOINT {validate_savepoint(name)}"


def release_sql(name: str) -> str:
    return f"RELEASE SAVEPOINT {validate_savepoint(name)}"


def rollback_sql(name: str) -> str:
    return f"ROLLBACK TO SAVEPOINT {validate_savepoint(name)}"
