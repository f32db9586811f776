#!/usr/bin/env python3

"""
Custom exceptions for the isoform stack parser.

Fatal conditions are raised as specific exception types so callers can tell
input rejection apart from semantic absence (gene or transcripts missing).
"""


class StackParseError(Exception):
    """Base exception for all stack-file parsing errors."""
    pass


class InputRejectedError(StackParseError):
    """The input file was rejected before or while determining its format."""

    def __init__(self, message: str, filename: str = ""):
        super().__init__(message)
        self.filename = filename


class UnsupportedExtensionError(InputRejectedError):
    """File extension does not map to a supported annotation format."""
    pass


class InvalidColumnCountError(InputRejectedError):
    """A .bed file has a column count that matches no BED dialect."""

    def __init__(self, message: str, filename: str = "", column_count: int = 0):
        super().__init__(message, filename)
        self.column_count = column_count


class NoValidLinesError(InputRejectedError):
    """Content sniffing found no data line at all."""
    pass


class ChunkBoundaryError(InputRejectedError):
    """A full read window contains no newline."""

    def __init__(self, message: str, filename: str = "", offset: int = 0):
        super().__init__(message, filename)
        self.offset = offset


class NoGenesFoundError(StackParseError):
    """Gene discovery found no usable gene identifier."""
    pass


class NoTranscriptsForGeneError(StackParseError):
    """The gene was resolved but none of its transcripts could be extracted."""

    def __init__(self, message: str, gene: str = ""):
        super().__init__(message)
        self.gene = gene


class StrandLookupError(StackParseError):
    """The external gene lookup service failed or returned garbage."""

    def __init__(self, message: str, gene: str = "", url: str = ""):
        super().__init__(message)
        self.gene = gene
        self.url = url

    def __str__(self):
        if self.gene:
            return f"Lookup failed for gene {self.gene}: {super().__str__()}"
        return super().__str__()


class ConfigurationError(StackParseError):
    """Error in parser configuration."""
    pass


class MemoryLimitError(StackParseError):
    """Memory usage exceeded limits."""

    def __init__(self, message: str, current_usage: float, limit: float):
        super().__init__(message)
        self.current_usage = current_usage
        self.limit = limit

    def __str__(self):
        return f"Memory error: {super().__str__()} (current: {self.current_usage:.1f}MB, limit: {self.limit:.1f}MB)"
