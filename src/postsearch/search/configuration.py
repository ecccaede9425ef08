from pydantic import PositiveInt
from pydantic_settings import SettingsConfigDict

from postsearch.service.configuration.service_configuration import (
    ServiceConfiguration,
)


class QueryConfiguration(ServiceConfiguration):
    # The most tags a single search may name.
    tag_query_limit: PositiveInt = 40

    # Milliseconds the search engine may spend on a query, for users
    # without a statement timeout of their own.
    default_statement_timeout: PositiveInt = 3000

    model_config = SettingsConfigDict(env_prefix="POSTSEARCH_QUERY_")
