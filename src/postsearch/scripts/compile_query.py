"""Print the OpenSearch request a post search compiles to.

The search is read as a JSON object of metatags, e.g.

    {"score": {"operator": "gt", "value": 10},
     "order": "score",
     "tags": {"include": [], "exclude": ["comic"], "related": ["fox"]}}
"""

from __future__ import annotations

import argparse
import datetime
import json
import sys
from collections.abc import Mapping, Sequence
from typing import IO, Any

from postsearch.core.exceptions import PostSearchError, PostSearchValueError
from postsearch.search.configuration import QueryConfiguration
from postsearch.search.post_query import PostQueryBuilder
from postsearch.search.session import SessionContext
from postsearch.service.logging.log import setup_logging
from postsearch.util.datetime_helpers import strptime_utc
from postsearch.util.json import json_serializer
from postsearch.util.log import LoggerMixin


class CompilePostQueryScript(LoggerMixin):
    # Metatags whose bounds are dates rather than numbers.
    TEMPORAL_METATAGS = frozenset(("date", "age"))

    @classmethod
    def arg_parser(cls) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
        parser.add_argument(
            "input",
            nargs="?",
            type=argparse.FileType("r"),
            default=sys.stdin,
            help="JSON file containing the metatags. Defaults to standard input.",
        )
        parser.add_argument(
            "--admin", action="store_true", help="Search as an admin in admin mode."
        )
        parser.add_argument(
            "--safe-mode", action="store_true", help="Only return safe posts."
        )
        parser.add_argument(
            "--timeout",
            type=int,
            default=None,
            help="Query timeout in milliseconds.",
        )
        parser.add_argument(
            "--indent", type=int, default=2, help="Indentation of the JSON output."
        )
        return parser

    @classmethod
    def parse_command_line(
        cls, cmd_args: Sequence[str] | None = None
    ) -> argparse.Namespace:
        return cls.arg_parser().parse_args(cmd_args)

    @classmethod
    def parse_time(cls, time_string: str) -> datetime.datetime:
        """Try to parse the given string as a time."""
        for format in ("%Y-%m-%d", "%m/%d/%Y", "%Y%m%d"):
            for hours in ("", " %H:%M:%S", "T%H:%M:%S"):
                try:
                    return strptime_utc(time_string, format + hours)
                except ValueError:
                    continue
        raise PostSearchValueError("Could not parse time: %s" % time_string)

    @classmethod
    def load_metatags(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        """Turn the dates in temporal range metatags into datetimes."""
        metatags = dict(data)
        for key in cls.TEMPORAL_METATAGS:
            condition = metatags.get(key)
            if not isinstance(condition, Mapping):
                continue
            condition = dict(condition)
            for bound in ("value", "value2"):
                if isinstance(condition.get(bound), str):
                    condition[bound] = cls.parse_time(condition[bound])
            metatags[key] = condition
        return metatags

    def __init__(
        self,
        cmd_args: Sequence[str] | None = None,
        configuration: QueryConfiguration | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ) -> None:
        self.args = self.parse_command_line(cmd_args)
        self.configuration = configuration or QueryConfiguration()
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr

    def session(self) -> SessionContext:
        return SessionContext.from_configuration(
            self.configuration,
            admin_mode=self.args.admin,
            safe_mode=self.args.safe_mode,
            statement_timeout=self.args.timeout,
        )

    def read_metatags(self) -> dict[str, Any]:
        input = self.args.input
        try:
            data = json.load(input)
        except json.JSONDecodeError as e:
            raise PostSearchValueError(f"The search is not valid JSON: {e}") from e
        finally:
            if input is not sys.stdin:
                input.close()

        if not isinstance(data, Mapping):
            raise PostSearchValueError("The search must be a JSON object of metatags.")
        return self.load_metatags(data)

    def do_run(self) -> dict[str, Any]:
        metatags = self.read_metatags()
        return PostQueryBuilder(metatags, self.session()).to_dict()

    def run(self) -> int:
        try:
            body = self.do_run()
        except (PostSearchError, PostSearchValueError) as e:
            self.log.info("Search could not be compiled: %s", e.message)
            print(e.message, file=self.stderr)
            return 1
        print(json_serializer(body, indent=self.args.indent), file=self.stdout)
        return 0


def main() -> None:
    setup_logging()
    sys.exit(CompilePostQueryScript().run())


if __name__ == "__main__":
    main()
