#!/usr/bin/env python3

"""
Isoform Stack Parser

Reads gene-annotation "stack" files (GFF3, GTF, BED12 and reduced BED
variants) and turns the transcripts of one gene into strand-oriented
isoforms plus a metagene of merged exonic regions.

Files are scanned in bounded chunks, so inputs of up to 2 GB never have to
be held in memory. Formats without a strand column get their strand from the
Ensembl REST service.

Modules:
- core: Data structures, exceptions, configuration, file scanning, line
  parsers, extraction and isoform/metagene assembly
- utils: Performance monitoring and progress reporting
- tests: Unit test suite
"""

__version__ = "1.0.0"
__author__ = "Isoform Stack Team"

# Import main components for easy access
from .core.data_structures import (
    FileFormat, LineFormat, TranscriptRecord, Isoform, PrimaryDataset, ParseResult
)
from .core.exceptions import (
    StackParseError, InputRejectedError, UnsupportedExtensionError,
    InvalidColumnCountError, NoValidLinesError, ChunkBoundaryError,
    NoGenesFoundError, NoTranscriptsForGeneError, StrandLookupError,
    ConfigurationError, MemoryLimitError
)
from .core.config import StackParserConfig, load_config
from .core.pipeline import StackFileParser, parse_stack_file
from .core.reference import ReferenceIsoformSet

__all__ = [
    # Main parser
    'StackFileParser', 'parse_stack_file',
    # Data structures
    'FileFormat', 'LineFormat', 'TranscriptRecord', 'Isoform', 'PrimaryDataset',
    'ParseResult', 'ReferenceIsoformSet',
    # Exceptions
    'StackParseError', 'InputRejectedError', 'UnsupportedExtensionError',
    'InvalidColumnCountError', 'NoValidLinesError', 'ChunkBoundaryError',
    'NoGenesFoundError', 'NoTranscriptsForGeneError', 'StrandLookupError',
    'ConfigurationError', 'MemoryLimitError',
    # Configuration
    'StackParserConfig', 'load_config'
]
