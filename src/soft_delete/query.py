"""
Soft Delete Query

Repository query object. Select queries are rewritten once, right before their
first execution, to hide soft-deleted rows unless the caller opts in.
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set
import copy
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import Result

from .events import BEFORE_FIND

logger = logging.getLogger(__name__)

# Execution option telling the session-level read filter that the statement
# already carries its own soft-delete criteria
INCLUDE_DELETED = "include_deleted"

WITH_DELETED = "with_deleted"
ONLY_DELETED = "only_deleted"


class QueryType(str, Enum):
    SELECT = "select"
    UPDATE = "update"
    DELETE = "delete"


class QueryState(str, Enum):
    UNREWRITTEN = "unrewritten"
    REWRITTEN = "rewritten"


class SoftDeleteQuery:
    """
    Chainable select/update/delete against one repository.

    Usage:
        orders.query().where(status="open").with_deleted().all()
        orders.query().update({"status": "closed"}).where(Order.id == 1).execute()

    The read filter is applied by ``trigger_before_find``, which every execution
    path calls. ``state`` moves from UNREWRITTEN to REWRITTEN exactly once; a
    REWRITTEN query (or a clone of one) is never filtered again.
    """

    def __init__(self, repository, entity: Any = None):
        self.repository = repository
        self.entity = entity if entity is not None else repository.model
        self.type = QueryType.SELECT
        self.criteria: List[Any] = []
        self.values: Dict[str, Any] = {}
        self.options: Set[str] = set()
        self.state = QueryState.UNREWRITTEN
        self._order_by: List[Any] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    def __repr__(self) -> str:
        return f"<SoftDeleteQuery {self.type.value} {self.repository.alias} state={self.state.value}>"

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def select(self) -> "SoftDeleteQuery":
        self.type = QueryType.SELECT
        return self

    def update(self, values: Optional[Dict[str, Any]] = None) -> "SoftDeleteQuery":
        self.type = QueryType.UPDATE
        if values:
            self.set(values)
        return self

    def delete(self) -> "SoftDeleteQuery":
        self.type = QueryType.DELETE
        return self

    def set(self, values: Dict[str, Any]) -> "SoftDeleteQuery":
        """Values for an update, keyed by column name"""
        self.values.update(values)
        return self

    def where(self, *criteria: Any, **filters: Any) -> "SoftDeleteQuery":
        self.criteria.extend(criteria)
        if filters:
            self.criteria.extend(self.repository.criteria(filters))
        return self

    and_where = where

    def order_by(self, *clauses: Any) -> "SoftDeleteQuery":
        self._order_by.extend(clauses)
        return self

    def limit(self, limit: Optional[int]) -> "SoftDeleteQuery":
        self._limit = limit
        return self

    def offset(self, offset: Optional[int]) -> "SoftDeleteQuery":
        self._offset = offset
        return self

    def apply_options(self, *names: str) -> "SoftDeleteQuery":
        self.options.update(names)
        return self

    def with_deleted(self) -> "SoftDeleteQuery":
        """Include soft-deleted rows"""
        return self.apply_options(WITH_DELETED)

    def only_deleted(self) -> "SoftDeleteQuery":
        """Return soft-deleted rows only"""
        return self.apply_options(ONLY_DELETED)

    def clone(self) -> "SoftDeleteQuery":
        cloned = copy.copy(self)
        cloned.criteria = list(self.criteria)
        cloned.values = dict(self.values)
        cloned.options = set(self.options)
        cloned._order_by = list(self._order_by)
        return cloned

    @property
    def is_rewritten(self) -> bool:
        return self.state is QueryState.REWRITTEN

    # ------------------------------------------------------------------
    # Rewriting
    # ------------------------------------------------------------------

    def trigger_before_find(self) -> None:
        if self.type is not QueryType.SELECT or self.state is QueryState.REWRITTEN:
            return

        self.state = QueryState.REWRITTEN
        try:
            self.repository.events.dispatch(BEFORE_FIND, query=self)

            policy = self.repository.soft_delete
            if policy is None:
                return

            column = self.repository.alias_field(policy.get_soft_delete_field(), self.entity)
            if ONLY_DELETED in self.options:
                self.criteria.append(column.is_not(None))
            elif WITH_DELETED not in self.options:
                self.criteria.append(column.is_(None))
        except Exception:
            self.state = QueryState.UNREWRITTEN
            raise

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def statement(self):
        model = self.repository.model

        if self.type is QueryType.UPDATE:
            values = {self.repository.attribute(name): value for name, value in self.values.items()}
            stmt = update(model).values(values)
        elif self.type is QueryType.DELETE:
            stmt = delete(model)
        else:
            stmt = select(self.entity)
            if self._order_by:
                stmt = stmt.order_by(*self._order_by)
            if self._limit is not None:
                stmt = stmt.limit(self._limit)
            if self._offset is not None:
                stmt = stmt.offset(self._offset)

        if self.criteria:
            stmt = stmt.where(*self.criteria)
        return stmt

    def execute(self) -> Result:
        self.trigger_before_find()
        stmt = self.statement()

        if self.type is QueryType.SELECT:
            stmt = stmt.execution_options(**{INCLUDE_DELETED: True})
        else:
            # Callers of update/delete keep the identity map in sync themselves
            stmt = stmt.execution_options(synchronize_session=False)

        logger.debug("Executing %r", self)
        return self.repository.session.execute(stmt)

    def all(self) -> List[Any]:
        return list(self.execute().scalars().all())

    def first(self) -> Optional[Any]:
        return self.execute().scalars().first()

    def one_or_none(self) -> Optional[Any]:
        return self.execute().scalars().one_or_none()

    def count(self) -> int:
        self.trigger_before_find()
        subquery = self.statement().order_by(None).subquery()
        stmt = select(func.count()).select_from(subquery).execution_options(**{INCLUDE_DELETED: True})
        return self.repository.session.execute(stmt).scalar_one()

    def __iter__(self) -> Iterator[Any]:
        return iter(self.all())
