"""
State Observation

Components publish immutable state snapshots to listeners instead of
sharing mutable references with rendering surfaces.
"""

from typing import Callable, Generic, List, TypeVar

import structlog

S = TypeVar("S")

Listener = Callable[[S], None]


class StateObservable(Generic[S]):
    """Base class for components that publish state snapshots."""
    
    def __init__(self):
        self._listeners: List[Listener] = []
        self._observable_logger = structlog.get_logger(__name__)
    
    @property
    def state(self) -> S:
        raise NotImplementedError
    
    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with every new state snapshot.
        
        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)
        
        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        
        return remove
    
    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                # A failing surface must not break the component's transition
                self._observable_logger.error(
                    "State listener failed",
                    component=self.__class__.__name__,
                    error=str(e),
                    exc_info=True
                )
