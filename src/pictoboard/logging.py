"""
Console logging for the board and its scripts.

Modules log through logging.getLogger(__name__); setup_logging() is called
once by entry points (Streamlit app, scripts) to attach a Rich handler.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

_CONFIGURED = False


def setup_logging(level: str = "INFO") -> None:
    global _CONFIGURED

    root = logging.getLogger("pictoboard")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if _CONFIGURED:
        return

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    # requests/urllib3 chatter stays out of the board log
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _CONFIGURED = True
