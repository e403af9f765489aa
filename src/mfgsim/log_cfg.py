"""Logging for mfgsim.

Every module logs through the shared :data:`logger`. Records are dropped
until a :class:`LogConfig` is created with ``enabled=True``, so using the
package as a library stays quiet.

Levels in use
=============
* ``logging.DEBUG``: one line per handled event
* ``logging.INFO``: run start/finish and written reports
* ``logging.WARNING``: breakdowns that found no idle unit
"""
from __future__ import annotations

import logging

import colorlog

LOGGER_NAME = "mfgsim"

logger = logging.getLogger(LOGGER_NAME)

_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "white",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


class LogConfig:
    """Route mfgsim records to a coloured console and, optionally, a file.

    Creating a new instance replaces the handlers of the previous one.

    Parameters
    ----------
    enabled : bool
        Records reach the handlers only while this is ``True``. It can be
        flipped later on the instance.
    console_level, file_level : int
        Handler thresholds.
    file_path : str, optional
        Log file, opened only for an enabled config.
    """

    def __init__(self, enabled=False, console_level=logging.INFO, file_level=logging.DEBUG,
                 file_path: str | None = "mfgsim.log"):
        self.enabled = enabled
        self.file_path = file_path
        self.logger = logger
        self.logger.setLevel(logging.DEBUG)
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        console = logging.StreamHandler()
        console.setFormatter(colorlog.ColoredFormatter("%(log_color)s%(levelname)s:%(name)s:%(message)s",
                                                       log_colors=_LOG_COLORS))
        self._attach(console, console_level)

        if enabled and file_path:
            file_handler = logging.FileHandler(file_path)
            file_handler.setFormatter(logging.Formatter("%(asctime)s:%(levelname)s:%(message)s"))
            self._attach(file_handler, file_level)

    def _attach(self, handler: logging.Handler, level: int) -> None:
        handler.setLevel(level)
        handler.addFilter(lambda record: self.enabled)
        self.logger.addHandler(handler)
