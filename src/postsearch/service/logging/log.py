from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Mapping, Sequence
from typing import Any

from postsearch.service.logging.configuration import LoggingConfiguration, LogLevel
from postsearch.util.datetime_helpers import from_timestamp
from postsearch.util.json import json_serializer

# Libraries that log every request they make at INFO or DEBUG.
VERBOSE_LOGGERS = (
    "opensearch",
    "urllib3.connectionpool",
    "requests.packages.urllib3.connectionpool",
)


class JSONFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__()
        self.hostname = socket.getfqdn()
        self.main_thread_id = threading.main_thread().ident

    def format(self, record: logging.LogRecord) -> str:
        def ensure_str(s: Any) -> Any:
            """Ensure that unicode strings are used for a record's message.
            We don't want to try to interpolate an incompatible byte type; it
            could lead to a UnicodeDecodeError.
            """
            if isinstance(s, bytes):
                s = s.decode("utf-8")
            return s

        message = ensure_str(record.msg)
        if record.args:
            record_args: tuple[Any, ...] | dict[str, Any] | None = None
            if isinstance(record.args, Mapping):
                record_args = {
                    ensure_str(k): ensure_str(v) for k, v in record.args.items()
                }
            elif isinstance(record.args, Sequence):
                record_args = tuple(ensure_str(arg) for arg in record.args)

            if record_args is not None:
                try:
                    message = message % record_args
                except Exception as e:
                    # A broken log call shouldn't break the code doing the
                    # work, but it still has to show up so it gets fixed.
                    message = (
                        "Log message could not be formatted. Exception: %r. Original message: message=%r args=%r"
                        % (e, message, record_args)
                    )
        data = dict(
            host=self.hostname,
            name=record.name,
            level=record.levelname,
            filename=record.filename,
            message=message,
            timestamp=from_timestamp(record.created).isoformat(),
        )
        if record.exc_info:
            data["traceback"] = self.formatException(record.exc_info)
        if record.process:
            data["process"] = record.process
        if record.thread and record.thread != self.main_thread_id:
            data["thread"] = record.thread
        if record.stack_info:
            data["stack"] = self.formatStack(record.stack_info)

        return json_serializer(data)


def create_stream_handler(formatter: logging.Formatter) -> logging.Handler:
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    return stream_handler


def create_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter()
    return logging.Formatter("%(asctime)s %(name)s %(levelname)s: %(message)s")


def setup_logging(
    config: LoggingConfiguration | None = None,
    stream: logging.Handler | None = None,
) -> None:
    config = config or LoggingConfiguration()
    if stream is None:
        stream = create_stream_handler(create_formatter(config.json_format))

    # Set up the root logger
    logging.basicConfig(force=True, level=config.level.value, handlers=[stream])

    # Set the loggers for various verbose libraries to the verbose
    # log level, which is probably higher than the normal log level.
    verbose_level: LogLevel = config.verbose_level
    for logger in VERBOSE_LOGGERS:
        logging.getLogger(logger).setLevel(verbose_level.value)
