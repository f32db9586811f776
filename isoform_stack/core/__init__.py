#!/usr/bin/env python3

"""
Core module for the isoform stack parser.

Contains data structures, exception types, configuration, chunked file
scanning, line parsers and the isoform/metagene assembly steps.
"""

from .data_structures import FileFormat, LineFormat, TranscriptRecord, Isoform, PrimaryDataset, ParseResult
from .exceptions import (
    StackParseError, InputRejectedError, UnsupportedExtensionError,
    InvalidColumnCountError, NoValidLinesError, ChunkBoundaryError,
    NoGenesFoundError, NoTranscriptsForGeneError, StrandLookupError,
    ConfigurationError, MemoryLimitError
)
from .config import StackParserConfig, load_config

__all__ = [
    'FileFormat', 'LineFormat', 'TranscriptRecord', 'Isoform', 'PrimaryDataset', 'ParseResult',
    'StackParseError', 'InputRejectedError', 'UnsupportedExtensionError',
    'InvalidColumnCountError', 'NoValidLinesError', 'ChunkBoundaryError',
    'NoGenesFoundError', 'NoTranscriptsForGeneError', 'StrandLookupError',
    'ConfigurationError', 'MemoryLimitError',
    'StackParserConfig', 'load_config'
]
