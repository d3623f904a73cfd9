"""
Provides support for the Command pattern

Every bidding and lifecycle operation is implemented as a command object. The command is
constructed once with its collaborators and then invoked as a function per request.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from logging import Logger
from typing import TypeVar, Generic, Callable

Args = TypeVar("Args")

Result = TypeVar("Result")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """
    Default clock
    """
    return datetime.now(UTC)


class Command(Generic[Args, Result], ABC):
    """
    Commands are invoked as functions
    """

    @abstractmethod
    def __call__(self, args: Args) -> Result:
        """
        Executes the command
        """

    def get_logger(self, name: str | None = None) -> Logger:
        """
        Returns a logger using the class name as the logger name.
        If `name` is specifed, then it is appended to the class name: `{self.__class__.__name__}.{name}`
        """
        if name is None:
            return logging.getLogger(self.__class__.__name__)

        return logging.getLogger(f"{self.__class__.__name__}.{name}")
