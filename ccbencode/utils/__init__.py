"""Shared utilities and infrastructure.

This module contains the error hierarchy and logging setup used throughout
the package.
"""

from __future__ import annotations

from ccbencode.utils.exceptions import (
    BencodeDecodeError,
    BencodeEncodeError,
    BencodeError,
    ConfigurationError,
    ValidationError,
)
from ccbencode.utils.logging_config import get_logger, setup_logging

__all__ = [
    "BencodeDecodeError",
    "BencodeEncodeError",
    "BencodeError",
    "ConfigurationError",
    "ValidationError",
    "get_logger",
    "setup_logging",
]
