from typing import Final

from .argparser import get_cli_args
from .env import Settings, load_settings
from .logging_conf import init_logging
from .utils import cerr, cout, fmt_time, utc_now

__all__: Final = ["Settings", "cerr", "cout", "fmt_time", "get_cli_args", "init_logging", "load_settings", "utc_now"]
