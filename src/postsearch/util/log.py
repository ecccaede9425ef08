import functools
import logging
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, TypeVar

from typing_extensions import ParamSpec

from postsearch.service.logging.configuration import LogLevel

if TYPE_CHECKING:
    LoggerAdapterType = logging.LoggerAdapter[logging.Logger]
else:
    LoggerAdapterType = logging.LoggerAdapter

P = ParamSpec("P")
T = TypeVar("T")


@contextmanager
def elapsed_time_logging(
    *,
    log_method: Callable[[str], None],
    message_prefix: str | None = None,
    skip_start: bool = False,
) -> Generator[None, None, None]:
    """Log how long the body of a `with` block took.

    If the block raises, the completion message names the exception
    instead, and the exception is re-raised.
    """
    prefix = f"{message_prefix}: " if message_prefix else ""
    if not skip_start:
        log_method(f"{prefix}Starting...")
    tic = time.perf_counter()
    failure = None
    try:
        yield
    except Exception as e:
        failure = e.__class__.__name__
        raise
    finally:
        elapsed_time = time.perf_counter() - tic
        outcome = "Completed" if failure is None else f"Failed (raised {failure})"
        log_method(f"{prefix}{outcome}. (elapsed time: {elapsed_time:0.4f} seconds)")


def log_elapsed_time(
    *,
    log_level: LogLevel,
    message_prefix: str | None = None,
    skip_start: bool = False,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator version of `elapsed_time_logging`.

    The decorated function must be a method (or classmethod) of a
    LoggerMixin, the records go to that class's logger.
    """

    def outer(fn: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            owner = args[0] if args else None
            if isinstance(owner, type) and issubclass(owner, LoggerMixin):
                logger = owner.logger()
            elif isinstance(owner, LoggerMixin):
                logger = owner.logger()
            else:
                raise RuntimeError(
                    "log_elapsed_time can only decorate methods of a LoggerMixin."
                )

            with elapsed_time_logging(
                log_method=getattr(logger, log_level.name),
                message_prefix=message_prefix,
                skip_start=skip_start,
            ):
                return fn(*args, **kwargs)

        return wrapper

    return outer


def logger_for_cls(cls: type[object]) -> logging.Logger:
    return logging.getLogger(f"{cls.__module__}.{cls.__name__}")


LoggerType = logging.Logger | LoggerAdapterType


class LoggerMixin:
    """Mixin that adds a logger named after the module and class."""

    @classmethod
    @functools.cache
    def logger(cls) -> logging.Logger:
        return logger_for_cls(cls)

    @property
    def log(self) -> LoggerType:
        return self.logger()


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """e.g. pluralize(2, "tag") is "2 tags"."""
    if plural is None:
        plural = singular + "s"
    return f"{count} {singular if count == 1 else plural}"
