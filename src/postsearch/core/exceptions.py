from typing import Any


class BasePostSearchException(Exception):
    """Base class for all Exceptions raised by the post search compiler."""

    def __init__(self, message: str | None = None):
        """Initializes a new instance of BasePostSearchException class

        :param message: String containing description of the exception that occurred
        """
        super().__init__(message)
        self.message = message

    def __getstate__(self) -> dict[str, Any]:
        return {"dict": self.__dict__, "args": self.args}

    def __setstate__(self, state: dict[str, Any] | None) -> None:
        # state is always a dict from __getstate__, but the signature must
        # accept None to match BaseException.__setstate__
        assert state is not None
        self.__dict__.update(state["dict"])
        self.args = state["args"]

    def __reduce__(self) -> tuple[Any, ...]:
        state = self.__getstate__()
        return self.__class__.__new__, (self.__class__,), state


class PostSearchValueError(BasePostSearchException, ValueError): ...


class CannotLoadConfiguration(BasePostSearchException):
    """The settings for a service could not be loaded from the environment.

    The message lists every environment variable that failed validation,
    so it can be shown to whoever is deploying the service.
    """


class PostSearchError(BasePostSearchException):
    """A search request was understood, but cannot be run as asked.

    The message of these exceptions is meant to be shown to the person
    who made the search.
    """


class TagQueryLimitExceeded(PostSearchError):
    """The search names more tags than a single search is allowed to."""

    def __init__(self, limit: int, tag_count: int) -> None:
        super().__init__(
            f"You cannot search for more than {limit} tags at a time"
        )
        self.limit = limit
        self.tag_count = tag_count
