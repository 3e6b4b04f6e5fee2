from .logger import setup_logging, get_logger, LogFormatter
from .output_formatter import OutputFormatter, output_formatter

__all__ = [
    "setup_logging",
    "get_logger",
    "LogFormatter",
    "OutputFormatter",
    "output_formatter",
]
