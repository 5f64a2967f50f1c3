"""
Soft delete for SQLAlchemy repositories.

Deletes stamp a timestamp column instead of removing rows, reads hide stamped
rows unless asked otherwise, and rows can be restored or purged for good.
"""

from .cascade import CASCADE_CALLBACKS, AssociationCascade, CascadeDeleter
from .errors import InvalidArgumentError, MissingColumnError, SoftDeleteError
from .events import (
    AFTER_DELETE,
    AFTER_SAVE,
    BEFORE_DELETE,
    BEFORE_FIND,
    BEFORE_SAVE,
    PROCEED,
    Event,
    EventManager,
    Veto,
)
from .models import SoftDeleteMixin, as_naive_utc, utcnow
from .policy import DeleteOptions, DeletePolicy, SoftDeletePolicy
from .query import INCLUDE_DELETED, ONLY_DELETED, WITH_DELETED, QueryState, QueryType, SoftDeleteQuery
from .repository import Repository, TableLocator
from .rules import RulesChecker
from .session_filter import install_soft_delete_filter, remove_soft_delete_filter

__all__ = [
    "AFTER_DELETE",
    "AFTER_SAVE",
    "AssociationCascade",
    "BEFORE_DELETE",
    "BEFORE_FIND",
    "BEFORE_SAVE",
    "CASCADE_CALLBACKS",
    "CascadeDeleter",
    "DeleteOptions",
    "DeletePolicy",
    "Event",
    "EventManager",
    "INCLUDE_DELETED",
    "InvalidArgumentError",
    "MissingColumnError",
    "ONLY_DELETED",
    "PROCEED",
    "QueryState",
    "QueryType",
    "Repository",
    "RulesChecker",
    "SoftDeleteError",
    "SoftDeleteMixin",
    "SoftDeletePolicy",
    "SoftDeleteQuery",
    "TableLocator",
    "Veto",
    "WITH_DELETED",
    "install_soft_delete_filter",
    "remove_soft_delete_filter",
    "as_naive_utc",
    "utcnow",
]
