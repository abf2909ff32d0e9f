import threading
from typing import Any, Callable


class Once:
    """
    Runs an expensive step at most once and shares its outcome.

    Every caller of `do` observes the result of the first call. When the first
    call raised, later callers get the same exception raised again instead of
    retrying the step.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._done = False
        self._result: Any = None
        self._error: BaseException | None = None

    @property
    def done(self) -> bool:
        return self._done

    def do(self, fn: Callable[[], Any]) -> Any:
        with self._lock:
            if not self._done:
                try:
                    self._result = fn()
                except Exception as e:
                    self._error = e
                self._done = True

        if self._error is not None:
            raise self._error
        return self._result

    def __repr__(self):
        return f"Once(done={self._done})"
