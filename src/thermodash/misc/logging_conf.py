from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Final, Literal, NamedTuple, override

from .utils import cerr, cout

if TYPE_CHECKING:
    from rich.console import Console

    type LogLvl = Literal[10, 20, 30, 40, 50]


class _Level(NamedTuple):
    abbrev: str
    lvl: LogLvl
    color: str


# Order matters: the CLI lists choices in this order
LEVELS: Final = (
    _Level("DBG", logging.DEBUG, "green"),
    _Level("INF", logging.INFO, "cyan"),
    _Level("WRN", logging.WARNING, "yellow"),
    _Level("ERR", logging.ERROR, "red"),
    _Level("CRT", logging.CRITICAL, "bold red"),
)

LOG_ABBREV_2_LVL: Final[dict[str, LogLvl]] = {lv.abbrev: lv.lvl for lv in LEVELS}

# Third-party loggers that are too chatty below INFO
_QUIET_LOGGERS: Final = ("httpx", "httpcore", "uvicorn.access")

# Logger names are padded to this width so messages line up
_NAME_WIDTH: Final = 14


class _DashboardHandler(logging.Handler):
    """Prints records as Rich markup: level tag, clock time, logger name, message.

    WARNING and above go to stderr in the level's color.
    """

    _by_lvl: dict[int, _Level]

    @override
    def __init__(self, stdout: Console = cout, stderr: Console = cerr) -> None:
        super().__init__()
        self._stdout = stdout
        self._stderr = stderr
        self._by_lvl = {lv.lvl: lv for lv in LEVELS}

    @override
    def emit(self, record: logging.LogRecord) -> None:
        level = self._by_lvl.get(record.levelno)
        if level is None:
            self.handleError(record)
            return

        loud = record.levelno >= logging.WARNING
        msg = self.format(record)
        if loud:
            msg = f"[{level.color}]{msg}[/]"

        stamp = time.strftime("%X", time.localtime(record.created))
        name = record.name.ljust(_NAME_WIDTH)
        line = f"[dim][{level.color}][{level.abbrev}][/] [white]({stamp})[/] [blue]{name}[/] ::[/] {msg}"

        (self._stderr if loud else self._stdout).print(line, highlight=False)


def init_logging(lvl: LogLvl) -> None:
    """Initialize logging.

    Args:
        lvl: Logging level (third-party loggers never go below WARNING)
    """
    logging.basicConfig(
        level=lvl,
        format="%(message)s",
        handlers=[_DashboardHandler()],
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(lvl, logging.WARNING))
