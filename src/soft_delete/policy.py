"""
Deletion Policies

``DeletePolicy`` is the plain delete lifecycle of a repository: rules, events,
cascade, then a conditional DELETE by primary key. ``SoftDeletePolicy`` keeps
the lifecycle but replaces the DELETE with an UPDATE stamping the soft-delete
column, and adds restore, hard delete and retention purge.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Union
import logging

from sqlalchemy.orm.attributes import set_committed_value

from . import config
from .cascade import AssociationCascade
from .errors import MissingColumnError
from .events import AFTER_DELETE, BEFORE_DELETE
from .models import as_naive_utc, utcnow
from .rules import DELETE

logger = logging.getLogger(__name__)


@dataclass
class DeleteOptions:
    """
    Per-call options for a delete.

    ``primary`` is False for deletes issued by a cascade. ``extra`` is passed
    through untouched to rules, listeners and cascaded deletes.
    """

    check_rules: bool = True
    primary: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(
        cls, options: Union["DeleteOptions", Mapping[str, Any], None] = None, **overrides: Any
    ) -> "DeleteOptions":
        if isinstance(options, cls):
            base = options
        else:
            values = dict(options or {})
            base = cls(
                check_rules=values.pop("check_rules", True),
                primary=values.pop("primary", True),
                extra=values,
            )
        return base.derive(**overrides) if overrides else base

    def derive(self, **changes: Any) -> "DeleteOptions":
        extra = dict(self.extra)
        for key in list(changes):
            if key not in ("check_rules", "primary"):
                extra[key] = changes.pop(key)
        return replace(self, extra=extra, **changes)

    def get(self, key: str, default: Any = None) -> Any:
        if key in ("check_rules", "primary"):
            return getattr(self, key)
        return self.extra.get(key, default)


class DeletePolicy:
    """Delete lifecycle of a repository without soft-delete support"""

    def __init__(self, repository, cascade=None):
        self.repository = repository
        self.cascade = cascade if cascade is not None else AssociationCascade(repository)

    def delete(self, entity: Any, options: Union[DeleteOptions, Mapping[str, Any], None] = None) -> Any:
        """
        Delete a single entity.

        Returns:
            True on success, False when there was nothing to delete (unsaved entity,
            failed rules, no row matched), or the result of a vetoing before_delete listener.

        Raises:
            InvalidArgumentError: if a primary key value is missing on the entity
        """
        options = DeleteOptions.coerce(options)
        repository = self.repository

        if repository.is_new(entity):
            logger.debug("Skipping delete of unsaved %r", entity)
            return False

        conditions = repository.primary_key_conditions(entity)

        if options.check_rules and not repository.check_rules(entity, DELETE, options):
            return False

        event = repository.events.dispatch(BEFORE_DELETE, entity=entity, options=options)
        if event.stopped:
            return event.result

        self.cascade.cascade_delete(entity, options.derive(primary=False))

        if self._remove(entity, conditions) == 0:
            return False

        repository.events.dispatch(AFTER_DELETE, entity=entity, options=options)
        return True

    def delete_all(self, conditions: Any = None) -> int:
        result = self.repository.query().delete().where(*self.repository.criteria(conditions)).execute()
        logger.info("Deleted %s rows from %s", result.rowcount, self.repository.alias)
        return result.rowcount

    def _remove(self, entity: Any, conditions) -> int:
        result = self.repository.query().delete().where(*conditions).execute()
        if result.rowcount:
            self.repository.forget(entity)
        return result.rowcount


class SoftDeletePolicy(DeletePolicy):
    """
    Soft-delete behaviour attached to a repository.

    Usage:
        orders = Repository(session, Order, soft_delete=True)
        orders.delete(order)                 # stamps orders.deleted
        orders.restore(order)                # clears it again
        orders.hard_delete_all(cutoff)       # purges rows deleted before cutoff
    """

    def __init__(
        self,
        repository,
        field: Optional[str] = None,
        cascade=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(repository, cascade)
        self.field = field or config.SOFT_DELETE_FIELD
        self.clock = clock or utcnow
        self._verified = False

    def get_soft_delete_field(self) -> str:
        """
        Get the configured soft-delete column name.

        Raises:
            MissingColumnError: if the column does not exist on the table
        """
        if not self._verified:
            if not self.repository.has_column(self.field):
                raise MissingColumnError(self.field, self.repository.alias)
            self._verified = True
        return self.field

    def delete(self, entity: Any, options: Union[DeleteOptions, Mapping[str, Any], None] = None) -> Any:
        if self.repository.is_new(entity):
            return False
        self.get_soft_delete_field()
        return super().delete(entity, options)

    def delete_all(self, conditions: Any = None) -> int:
        """Soft delete every row matching ``conditions``; no cascade, no events"""
        field_name = self.get_soft_delete_field()
        result = (
            self.repository.query()
            .update({field_name: self.clock()})
            .where(*self.repository.criteria(conditions))
            .execute()
        )
        self.repository.expire_field(field_name)
        logger.info("Soft deleted %s rows from %s", result.rowcount, self.repository.alias)
        return result.rowcount

    def hard_delete(self, entity: Any) -> bool:
        """Soft delete ``entity`` (cascade and events included), then remove its row"""
        if not self.delete(entity):
            return False

        conditions = self.repository.primary_key_conditions(entity)
        return super()._remove(entity, conditions) > 0

    def hard_delete_all(self, until: datetime) -> int:
        """
        Permanently remove rows soft deleted at or before ``until``.

        Active rows are never touched.
        """
        until = as_naive_utc(until)
        field_name = self.get_soft_delete_field()
        column = self.repository.attribute(field_name)
        result = self.repository.query().delete().where(column.is_not(None), column <= until).execute()
        self.repository.forget_where(column.key, lambda value: value is not None and value <= until)
        logger.info("Purged %s rows soft deleted before %s from %s", result.rowcount, until, self.repository.alias)
        return result.rowcount

    def restore(self, entity: Any, **save_options: Any) -> Any:
        """Clear the soft-delete column and save; returns the entity or False"""
        field_name = self.get_soft_delete_field()
        setattr(entity, self.repository.attribute(field_name).key, None)
        return self.repository.save(entity, **save_options)

    def _remove(self, entity: Any, conditions) -> int:
        field_name = self.get_soft_delete_field()
        now = self.clock()
        result = self.repository.query().update({field_name: now}).where(*conditions).execute()
        if result.rowcount:
            set_committed_value(entity, self.repository.attribute(field_name).key, now)
        return result.rowcount
