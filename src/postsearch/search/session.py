from __future__ import annotations

from typing import Any

from attrs import frozen

from postsearch.search.configuration import QueryConfiguration


@frozen
class SessionContext:
    """What the compiler needs to know about the person searching.

    :param safe_mode: Only safe-rated posts may be returned.
    :param admin_mode: Deleted posts are not hidden by default.
    :param statement_timeout: The user's own query timeout, in
        milliseconds. When unset, `default_statement_timeout` is used.
    :param tag_query_limit: The most tags a single search may name.
    """

    safe_mode: bool = False
    admin_mode: bool = False
    statement_timeout: int | None = None
    tag_query_limit: int = 40
    default_statement_timeout: int = 3000

    @classmethod
    def from_configuration(
        cls, configuration: QueryConfiguration | None = None, **kwargs: Any
    ) -> SessionContext:
        configuration = configuration or QueryConfiguration()
        kwargs.setdefault("tag_query_limit", configuration.tag_query_limit)
        kwargs.setdefault(
            "default_statement_timeout", configuration.default_statement_timeout
        )
        return cls(**kwargs)

    @property
    def timeout(self) -> str:
        """The query timeout, in the form the search engine expects."""
        if self.statement_timeout is not None:
            return f"{self.statement_timeout}ms"
        return f"{self.default_statement_timeout}ms"
