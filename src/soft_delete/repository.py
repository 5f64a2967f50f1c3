"""
Repositories

Table abstraction over a SQLAlchemy session and a mapped model: primary-key
extraction, schema lookups, rules, events, a save path and a delete policy.
Repositories flush but never commit; transaction scope belongs to the caller.
"""

from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Type
import logging

from sqlalchemy import inspect
from sqlalchemy.orm import Mapper, Session

from .errors import InvalidArgumentError, SoftDeleteError
from .events import AFTER_SAVE, BEFORE_SAVE, EventManager
from .policy import DeleteOptions, DeletePolicy, SoftDeletePolicy
from .query import SoftDeleteQuery
from .rules import SAVE, RulesChecker

logger = logging.getLogger(__name__)


class Repository:
    """
    Repository for one mapped model bound to a session.

    Usage:
        orders = Repository(db, Order, soft_delete=True)
        order = orders.get(1)
        orders.delete(order)
        orders.find(status="open").all()
        orders.find(with_deleted=True).all()

    Soft delete is enabled with ``soft_delete=True`` or by naming the column
    (``soft_delete_field="removed_at"``), either as an argument or as a class
    attribute on a subclass. The column itself is only checked on first use.
    """

    model: Optional[Type[Any]] = None
    soft_delete_field: Optional[str] = None

    def __init__(
        self,
        session: Session,
        model: Optional[Type[Any]] = None,
        soft_delete: bool = False,
        soft_delete_field: Optional[str] = None,
        locator: Optional["TableLocator"] = None,
        cascade=None,
        clock=None,
    ):
        self.session = session
        self.model = model if model is not None else self.model
        if self.model is None:
            raise InvalidArgumentError(f"{type(self).__name__} requires a mapped model")

        self.locator = locator
        self.events = EventManager()
        self.rules = RulesChecker()
        self.build_rules(self.rules)

        field_name = soft_delete_field or self.soft_delete_field
        if soft_delete or field_name:
            self.policy: DeletePolicy = SoftDeletePolicy(self, field_name, cascade=cascade, clock=clock)
        else:
            self.policy = DeletePolicy(self, cascade=cascade)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.alias}>"

    def build_rules(self, rules: RulesChecker) -> None:
        """Hook for subclasses to register save/delete rules"""

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    @property
    def mapper(self) -> Mapper:
        return inspect(self.model)

    @property
    def table(self):
        return self.mapper.local_table

    @property
    def alias(self) -> str:
        return self.table.name

    @property
    def primary_key(self) -> List[str]:
        """Attribute names of the primary-key columns"""
        return [self.mapper.get_property_by_column(column).key for column in self.mapper.primary_key]

    @property
    def soft_delete(self) -> Optional[SoftDeletePolicy]:
        return self.policy if isinstance(self.policy, SoftDeletePolicy) else None

    def has_column(self, name: str) -> bool:
        return name in self.table.c

    def attribute(self, name: str, entity: Any = None):
        """Mapped attribute for a column name (or attribute name) on ``entity``"""
        if name in self.table.c:
            key = self.mapper.get_property_by_column(self.table.c[name]).key
        elif name in self.mapper.column_attrs:
            key = name
        else:
            raise InvalidArgumentError(f"Unknown column `{name}` on table `{self.alias}`")
        return getattr(entity if entity is not None else self.model, key)

    def alias_field(self, name: str, entity: Any = None):
        return self.attribute(name, entity)

    def criteria(self, conditions: Any = None) -> List[Any]:
        """
        Normalize conditions into a list of SQL criteria.

        Accepts a mapping of column names to values (sequences become IN),
        a single SQL expression, or a list mixing both.
        """
        if conditions is None:
            return []

        if isinstance(conditions, Mapping):
            result = []
            for name, value in conditions.items():
                column = self.attribute(name)
                if isinstance(value, (list, tuple, set, frozenset)):
                    result.append(column.in_(list(value)))
                elif value is None:
                    result.append(column.is_(None))
                else:
                    result.append(column == value)
            return result

        if isinstance(conditions, (list, tuple)):
            result = []
            for condition in conditions:
                result.extend(self.criteria(condition))
            return result

        return [conditions]

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def is_new(self, entity: Any) -> bool:
        """True until the entity has been flushed and given an identity"""
        return inspect(entity).key is None

    def primary_key_conditions(self, entity: Any) -> List[Any]:
        state = inspect(entity)
        conditions = []
        for index, key in enumerate(self.primary_key):
            if key in state.dict:
                value = state.dict[key]
            elif state.identity is not None:
                value = state.identity[index]
            else:
                value = None

            if value is None:
                raise InvalidArgumentError("Deleting requires all primary key values.")
            conditions.append(getattr(self.model, key) == value)
        return conditions

    def check_rules(self, entity: Any, mode: str, options: Any = None) -> bool:
        return self.rules.check(entity, mode, options)

    def save(self, entity: Any, check_rules: bool = True, **options: Any) -> Any:
        """
        Add and flush an entity.

        Returns:
            The entity, False when rules fail, or a vetoing listener's result
        """
        if check_rules and not self.check_rules(entity, SAVE, options):
            return False

        event = self.events.dispatch(BEFORE_SAVE, entity=entity, options=options)
        if event.stopped:
            return event.result

        self.session.add(entity)
        self.session.flush()

        self.events.dispatch(AFTER_SAVE, entity=entity, options=options)
        return entity

    def forget(self, entity: Any) -> None:
        """Drop an entity whose row is gone from the session"""
        if entity in self.session:
            self.session.expunge(entity)

    def forget_where(self, key: str, predicate: Callable[[Any], bool]) -> None:
        """Expunge session entities whose loaded ``key`` value matches ``predicate``"""
        for entity in list(self.session.identity_map.values()):
            if not isinstance(entity, self.model):
                continue
            loaded = inspect(entity).dict
            if key in loaded and predicate(loaded[key]):
                self.session.expunge(entity)

    def expire_field(self, name: str) -> None:
        """Expire one column on every session entity of this model"""
        key = self.attribute(name).key
        for entity in list(self.session.identity_map.values()):
            if isinstance(entity, self.model):
                self.session.expire(entity, [key])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(self, entity: Any = None) -> SoftDeleteQuery:
        return SoftDeleteQuery(self, entity)

    def find(self, *criteria: Any, with_deleted: bool = False, only_deleted: bool = False, **filters: Any) -> SoftDeleteQuery:
        query = self.query().where(*criteria, **filters)
        if with_deleted:
            query.with_deleted()
        if only_deleted:
            query.only_deleted()
        return query

    def get(self, primary_key: Any, with_deleted: bool = False) -> Optional[Any]:
        """Load by primary key from the database, bypassing the identity map"""
        if isinstance(primary_key, Mapping):
            values = [primary_key.get(key) for key in self.primary_key]
        elif isinstance(primary_key, (list, tuple)):
            values = list(primary_key)
        else:
            values = [primary_key]

        if len(values) != len(self.primary_key) or any(value is None for value in values):
            raise InvalidArgumentError(
                f"Table `{self.alias}` expects primary key values for {', '.join(self.primary_key)}"
            )

        criteria = [getattr(self.model, key) == value for key, value in zip(self.primary_key, values)]
        return self.find(*criteria, with_deleted=with_deleted).one_or_none()

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def delete(self, entity: Any, options: Any = None, **overrides: Any) -> Any:
        return self.policy.delete(entity, DeleteOptions.coerce(options, **overrides))

    def delete_all(self, conditions: Any = None) -> int:
        return self.policy.delete_all(conditions)

    def _require_soft_delete(self) -> SoftDeletePolicy:
        if self.soft_delete is None:
            raise SoftDeleteError(f"Soft delete is not enabled on table `{self.alias}`")
        return self.soft_delete

    def get_soft_delete_field(self) -> str:
        return self._require_soft_delete().get_soft_delete_field()

    def hard_delete(self, entity: Any) -> bool:
        return self._require_soft_delete().hard_delete(entity)

    def hard_delete_all(self, until) -> int:
        return self._require_soft_delete().hard_delete_all(until)

    def restore(self, entity: Any, **save_options: Any) -> Any:
        return self._require_soft_delete().restore(entity, **save_options)


class TableLocator:
    """
    Repositories sharing one session, keyed by model.

    Cascades look up dependent tables here so each dependent follows its own
    table's delete policy.
    """

    def __init__(self, session: Session):
        self.session = session
        self._tables: Dict[Type[Any], Repository] = {}

    def add(self, model: Type[Any], repository_class: Type[Repository] = Repository, **config: Any) -> Repository:
        repository = repository_class(self.session, model, locator=self, **config)
        self._tables[repository.model] = repository
        return repository

    def get(self, model: Type[Any]) -> Optional[Repository]:
        return self._tables.get(model)

    def by_name(self, name: str) -> Optional[Repository]:
        for repository in self._tables.values():
            if repository.alias == name:
                return repository
        return None

    def soft_delete_tables(self) -> List[Repository]:
        return [repository for repository in self._tables.values() if repository.soft_delete is not None]

    def __iter__(self) -> Iterator[Repository]:
        return iter(list(self._tables.values()))

    def __contains__(self, model: Type[Any]) -> bool:
        return model in self._tables

    def __len__(self) -> int:
        return len(self._tables)
