"""
Association Cascade

Removes rows that depend on an entity being deleted. Dependents go through
their own table's repository when one is registered, so a dependent table with
a soft-delete policy soft deletes its rows while a plain table loses them.
"""

from typing import Any, List, Protocol
import logging

from sqlalchemy import delete
from sqlalchemy.orm import RelationshipDirection, RelationshipProperty

logger = logging.getLogger(__name__)

# Set in ``relationship(info=...)`` to delete dependents one at a time
# through their repository, firing their events and rules
CASCADE_CALLBACKS = "cascade_callbacks"


class CascadeDeleter(Protocol):
    def cascade_delete(self, entity: Any, options: Any) -> None:
        ...


class AssociationCascade:
    """CascadeDeleter driven by the SQLAlchemy mapper's relationships"""

    def __init__(self, repository):
        self.repository = repository

    def cascade_delete(self, entity: Any, options: Any) -> None:
        for relationship in self.repository.mapper.relationships:
            if relationship.secondary is not None:
                self._unlink(relationship, entity)
            elif relationship.direction is RelationshipDirection.ONETOMANY and relationship.cascade.delete:
                self._delete_dependents(relationship, entity, options)

    def _local_value(self, entity: Any, column) -> Any:
        prop = self.repository.mapper.get_property_by_column(column)
        return getattr(entity, prop.key)

    def _unlink(self, relationship: RelationshipProperty, entity: Any) -> None:
        """Clear join-table rows of a many-to-many association"""
        criteria = [
            remote == self._local_value(entity, local)
            for local, remote in relationship.synchronize_pairs
        ]
        result = self.repository.session.execute(delete(relationship.secondary).where(*criteria))
        logger.debug(
            "Cleared %s join rows in %s for %r", result.rowcount, relationship.secondary.name, entity
        )

    def _delete_dependents(self, relationship: RelationshipProperty, entity: Any, options: Any) -> None:
        criteria: List[Any] = [
            remote == self._local_value(entity, local)
            for local, remote in relationship.local_remote_pairs
        ]
        target_model = relationship.mapper.class_

        locator = self.repository.locator
        target = locator.get(target_model) if locator is not None else None

        if target is None:
            result = self.repository.session.execute(
                delete(target_model).where(*criteria).execution_options(synchronize_session=False)
            )
            logger.debug("Removed %s %s rows dependent on %r", result.rowcount, target_model.__name__, entity)
            return

        if relationship.info.get(CASCADE_CALLBACKS):
            for dependent in target.find(*criteria).all():
                target.delete(dependent, options)
            return

        count = target.delete_all(criteria)
        logger.debug("Deleted %s %s rows dependent on %r", count, target_model.__name__, entity)
