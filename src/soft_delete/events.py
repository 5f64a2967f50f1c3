"""
Repository Events

Named-event dispatch with veto semantics. Listeners return ``PROCEED`` (or ``None``)
to let an operation continue, or ``Veto(result)`` to stop it and hand ``result``
back to the caller as the operation's return value.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

BEFORE_FIND = "before_find"
BEFORE_DELETE = "before_delete"
AFTER_DELETE = "after_delete"
BEFORE_SAVE = "before_save"
AFTER_SAVE = "after_save"


class _Proceed:
    """Sentinel outcome: let the operation continue"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PROCEED"


PROCEED = _Proceed()


@dataclass(frozen=True)
class Veto:
    """Outcome that stops the operation and substitutes ``result``"""

    result: Any = False


@dataclass
class Event:
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    stopped: bool = False
    result: Any = None

    def stop(self, result: Any = False) -> None:
        self.stopped = True
        self.result = result


Listener = Callable[..., Optional[Any]]


class EventManager:
    """Per-repository listener registry"""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, name: str, listener: Listener) -> Listener:
        self._listeners.setdefault(name, []).append(listener)
        return listener

    def off(self, name: str, listener: Listener) -> None:
        listeners = self._listeners.get(name, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, name: str) -> List[Listener]:
        return list(self._listeners.get(name, []))

    def dispatch(self, name: str, **data: Any) -> Event:
        """
        Call every listener registered for ``name`` in registration order.

        The first listener returning a ``Veto`` stops the event; remaining
        listeners are not called.
        """
        event = Event(name=name, data=data)
        for listener in self.listeners(name):
            outcome = listener(**data)
            if isinstance(outcome, Veto):
                logger.debug("Event %s vetoed by %r", name, listener)
                event.stop(outcome.result)
                break
        return event
