"""Exceptions raised by the analysis pipeline and its request boundary."""
from __future__ import annotations


class AnalysisError(Exception):
    """Base class for failures that abort an analysis request."""

    details = "Please ensure your CSV file has proper headers and valid data"


class ParseError(AnalysisError):
    """The uploaded text is too short or has no usable header."""


class MissingFileError(AnalysisError):
    """The request carried no file payload."""

    details = "Attach a CSV file in the 'file' form field"


class UnsupportedFileTypeError(AnalysisError):
    """The uploaded file is not a ``.csv`` file."""

    details = "Only files with a .csv extension are accepted"


class UnknownActionError(AnalysisError):
    details = "Supported actions are: explain, forecast, query"


class InvalidRequestError(AnalysisError):
    """The request body or query parameters could not be understood."""

    details = "Send a JSON body matching the selected action"
