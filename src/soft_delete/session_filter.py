"""
Session Read Filter

Extends the read-time contract to statements executed directly on a session:

    install_soft_delete_filter(SessionLocal, locator)
    db.execute(select(Order))                                          # active rows only
    db.execute(select(Order).execution_options(include_deleted=True))  # everything
"""

from typing import Any, Callable, Iterable, List, Tuple, Union
import logging

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, with_loader_criteria

from .query import INCLUDE_DELETED

logger = logging.getLogger(__name__)


def _soft_delete_columns(tables: Iterable[Any]) -> List[Tuple[Any, Any]]:
    columns = []
    for repository in tables:
        policy = repository.soft_delete
        if policy is None:
            continue
        columns.append((repository.model, repository.alias_field(policy.get_soft_delete_field())))
    return columns


def install_soft_delete_filter(target: Any, tables: Union[Iterable[Any], Callable[[], Iterable[Any]]]) -> Callable:
    """
    Register a ``do_orm_execute`` listener hiding soft-deleted rows.

    Args:
        target: Session, sessionmaker or Session subclass to listen on
        tables: repositories (a TableLocator works) or a callable returning them;
            only repositories with a soft-delete policy contribute criteria

    Returns:
        The listener, for ``remove_soft_delete_filter``
    """

    def _filter_soft_deleted(state: ORMExecuteState) -> None:
        if not state.is_select or state.is_column_load or state.is_relationship_load:
            return
        if state.execution_options.get(INCLUDE_DELETED, False):
            return

        repositories = tables() if callable(tables) else tables
        options = [
            with_loader_criteria(model, column.is_(None), include_aliases=True)
            for model, column in _soft_delete_columns(repositories)
        ]
        if options:
            state.statement = state.statement.options(*options)

    event.listen(target, "do_orm_execute", _filter_soft_deleted)
    logger.debug("Installed soft-delete read filter on %r", target)
    return _filter_soft_deleted


def remove_soft_delete_filter(target: Any, listener: Callable) -> None:
    event.remove(target, "do_orm_execute", listener)
