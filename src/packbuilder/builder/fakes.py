"""
Test doubles for lifecycle phases.

FakePhaseFactory records what it was asked to build, so phase operations can be
checked without a container runtime.
"""

from typing import Callable, Optional

from ..protocols import RunnerCleaner
from .provider import PhaseConfigProvider


class FakePhase:
    def __init__(self, run_error: Optional[Exception] = None, cleanup_error: Optional[Exception] = None):
        self.run_error = run_error
        self.cleanup_error = cleanup_error
        self.run_call_count = 0
        self.cleanup_call_count = 0

    async def run(self) -> None:
        self.run_call_count += 1
        if self.run_error is not None:
            raise self.run_error

    def cleanup(self) -> None:
        self.cleanup_call_count += 1
        if self.cleanup_error is not None:
            raise self.cleanup_error


class FakePhaseFactory:
    def __init__(self, *ops: Callable[["FakePhaseFactory"], None], return_for_new: Optional[RunnerCleaner] = None):
        self.return_for_new: RunnerCleaner = return_for_new if return_for_new is not None else FakePhase()
        self.new_call_count = 0
        self.new_called_with_name: Optional[str] = None
        self.new_called_with_provider: Optional[PhaseConfigProvider] = None
        for op in ops:
            op(self)

    def new(self, name: str, provider: PhaseConfigProvider) -> RunnerCleaner:
        self.new_call_count += 1
        self.new_called_with_name = name
        self.new_called_with_provider = provider
        return self.return_for_new


def which_returns_for_new(phase: RunnerCleaner) -> Callable[[FakePhaseFactory], None]:
    def op(factory: FakePhaseFactory) -> None:
        factory.return_for_new = phase
    return op
