"""
Logging package for ``gedcom_import``.

Modules call ``get_logger("<component>")`` once at import time and log through
the returned logger; handlers and levels come from ``config/gedcom_import.yml``.
"""

from .logger import BASE_LOGGER_NAME, get_logger, set_console_level

__all__ = [
    "BASE_LOGGER_NAME",
    "get_logger",
    "set_console_level",
]
