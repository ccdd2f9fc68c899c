"""
Error types for Clarity.
"""

from __future__ import annotations


class ClarityError(Exception):
    """
    Base class for errors raised by Clarity itself.
    """


class ConfigurationError(ClarityError, ValueError):
    """
    Configuration file or override problem.
    """


class StructuredResponseError(ClarityError, ValueError):
    """
    A model response could not be parsed as a structured document.

    :param message: Human-readable failure description.
    :type message: str
    :param response_text: Raw response text returned by the model.
    :type response_text: str
    """

    def __init__(self, message: str, *, response_text: str) -> None:
        self.response_text = response_text
        preview = response_text[:120].replace("\n", " ")
        super().__init__(f"{message}: response_preview={preview!r}")
