"""All-or-nothing execution of state mutating entry points."""

import copy
import functools
import logging
from typing import Any, Callable, Dict, Iterable, Tuple, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Stateful:
    """
    Component whose mutable state can be checkpointed and restored.

    Subclasses list their mutable attributes in ``_state_fields``. Those
    attributes hold immutable values or flat containers (dict, set, list)
    of immutable values, so a shallow copy is a full checkpoint.
    """

    _state_fields: Tuple[str, ...] = ()

    def checkpoint(self) -> Dict[str, Any]:
        return {name: copy.copy(getattr(self, name)) for name in self._state_fields}

    def restore(self, saved: Dict[str, Any]) -> None:
        for name, value in saved.items():
            setattr(self, name, value)

    def participants(self) -> Iterable["Stateful"]:
        """Components whose state a call on this one may mutate."""
        return (self,)


def atomic(method: F) -> F:
    """
    Roll back every participant when the wrapped call raises.

    A failed call leaves the component and its collaborators exactly as
    they were before the call.
    """

    @functools.wraps(method)
    def wrapper(self: Stateful, *args, **kwargs):
        saved = [(participant, participant.checkpoint()) for participant in self.participants()]
        try:
            return method(self, *args, **kwargs)
        except Exception as e:
            for participant, state in reversed(saved):
                participant.restore(state)
            logger.debug(f"{type(self).__name__}.{method.__name__} reverted: {e}")
            raise

    return wrapper  # type: ignore[return-value]
