"""
Application-wide constants.

Centralize magic strings and default values here.
"""

from enum import Enum


# ========================================
# Isolation Levels
# ========================================

class IsolationLevel(str, Enum):
    """
    Transaction isolation levels understood by SQLAlchemy.

    Usage:
        with gateway.transaction(IsolationLevel.SERIALIZABLE) as tx:
            ...
    """

    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"
    """Used by EntityRepository.save() around check + update/add."""


# ========================================
# Stored Procedures
# ========================================

DEFAULT_PROCEDURE_PREFIX = "Proc"
DEFAULT_PROCEDURE_SEPARATOR = "_"
PROCEDURE_EXEC_TEMPLATE = "EXEC {target}"

# ========================================
# Repository Columns
# ========================================

DEFAULT_KEY_COLUMN = "id"
DEFAULT_UPDATED_COLUMN = "updated_at"
DEFAULT_SOFT_DELETE_COLUMN = "deleted_at"

# Entity values are bound under this prefix in UPDATE statements; they
# replace caller parameters of the same name.
UPDATE_VALUE_PREFIX = "_"

# ========================================
# Sample Data
# ========================================

SAMPLE_NAMES = (
    "James",
    "Emma",
    "Oliver",
    "Sophia",
    "William",
    "Isabella",
    "Benjamin",
    "Charlotte",
    "Henry",
    "Amelia",
)

PERSON_ID_ALPHABET = (
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
)
PERSON_ID_LENGTH = 8
