#!/usr/bin/env python3

"""
Result Monad

Success/failure values returned by the configuration store, the settings
manager and the event bus. Event middleware is chained with flat_map.
Pipeline stages report through StageResult instead, which carries metrics
alongside the outcome.
"""

from typing import TypeVar, Generic, Callable, Optional
from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Result(Generic[T, E], ABC):
    """Outcome of an operation that may fail without raising"""

    @abstractmethod
    def flat_map(self, func: Callable[[T], 'Result[U, E]']) -> 'Result[U, E]':
        """Chains the next step; a failure short-circuits the rest"""
        pass

    @abstractmethod
    def is_success(self) -> bool:
        pass

    def is_failure(self) -> bool:
        return not self.is_success()

    @abstractmethod
    def get_value(self) -> Optional[T]:
        pass

    @abstractmethod
    def get_error(self) -> Optional[E]:
        pass


@dataclass(frozen=True)
class Success(Result[T, E]):
    value: T

    def flat_map(self, func: Callable[[T], Result[U, E]]) -> Result[U, E]:
        try:
            return func(self.value)
        except Exception as e:
            logger.debug(f"Step after Success({self.value!r}) raised: {e}")
            return Failure(e)

    def is_success(self) -> bool:
        return True

    def get_value(self) -> Optional[T]:
        return self.value

    def get_error(self) -> Optional[E]:
        return None

    def __str__(self) -> str:
        return f"Success({self.value})"


@dataclass(frozen=True)
class Failure(Result[T, E]):
    error: E

    def flat_map(self, func: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return self

    def is_success(self) -> bool:
        return False

    def get_value(self) -> Optional[T]:
        return None

    def get_error(self) -> Optional[E]:
        return self.error

    def __str__(self) -> str:
        return f"Failure({self.error})"


def from_callable(func: Callable[[], T]) -> Result[T, Exception]:
    """Run func, capturing any exception it raises as a Failure"""
    try:
        return Success(func())
    except Exception as e:
        logger.debug(f"Callable failed: {e}")
        return Failure(e)
