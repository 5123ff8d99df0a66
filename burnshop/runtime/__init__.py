from .logging import LOGGER_NAME, setup_logger
from .settings import AppSettings

__all__ = [
    "AppSettings",
    "LOGGER_NAME",
    "setup_logger",
]
