#!/usr/bin/env python3

"""
Stack file validation and format detection.

The format is taken from the filename extension. A bare ``.bed`` extension
does not say which BED dialect is used, so the column count of the first
data line decides between BED12, reduced BED (6-9 columns) and minimal BED
(4-5 columns).
"""

import logging
from typing import Optional

from .config import DEFAULT_CHUNK_SIZE
from .data_structures import FileFormat, LineFormat
from .exceptions import (
    InputRejectedError, UnsupportedExtensionError, InvalidColumnCountError,
    NoValidLinesError
)
from .file_io import ChunkReader, LineFilterScanner, StackFile

REDUCED_BED_COLUMNS = (6, 7, 8, 9)
MINIMAL_BED_COLUMNS = (4, 5)


def validate_stack_file(filename: str, size: int, min_size: int = 10,
                        max_size: int = 2147483648) -> None:
    """Reject files that are empty, too large, or have no extension."""
    if size < min_size:
        raise InputRejectedError("Please upload an isoform stack file.", filename)

    if size > max_size:
        raise InputRejectedError("Stack file size should be less than 2 GB.", filename)

    if not filename:
        raise InputRejectedError("Filename for isoform stack data is empty.", filename)

    if '.' not in filename:
        raise InputRejectedError(
            "Stack file does not contain a file extension. "
            "Please specify the correct file extension in its filename.", filename)


def format_from_extension(filename: str) -> Optional[FileFormat]:
    """
    Map a filename to its format.

    Returns None for a bare ``.bed`` file, whose dialect must be sniffed.
    Raises UnsupportedExtensionError for anything unrecognised.
    """
    lowered = filename.lower()

    if lowered.endswith('.gff3'):
        return FileFormat(LineFormat.GFF3)
    if lowered.endswith(('.gff', '.gff2', '.gtf')):
        return FileFormat(LineFormat.GTF)
    if lowered.endswith('.bed12'):
        return FileFormat(LineFormat.BED12, 12)
    if lowered.endswith('.bed'):
        return None

    extension = lowered[lowered.rfind('.') + 1:]
    for columns in REDUCED_BED_COLUMNS:
        if extension == f"bed{columns}":
            return FileFormat(LineFormat.REDUCED_BED, columns)
    for columns in MINIMAL_BED_COLUMNS:
        if extension == f"bed{columns}":
            return FileFormat(LineFormat.MINIMAL_BED, columns)

    raise UnsupportedExtensionError("Invalid stack file extension.", filename)


def format_from_column_count(num_columns: int, filename: str = "") -> FileFormat:
    """Choose the BED dialect for a data line with ``num_columns`` columns."""
    if num_columns <= 3 or num_columns in (10, 11) or num_columns >= 13:
        raise InvalidColumnCountError(
            "Incorrect number of columns found in the uploaded BED stack file. "
            "Please upload a BED4 to BED9 file or a BED12 file.",
            filename, num_columns)

    if num_columns == 12:
        return FileFormat(LineFormat.BED12, 12)
    if num_columns in REDUCED_BED_COLUMNS:
        return FileFormat(LineFormat.REDUCED_BED, num_columns)
    return FileFormat(LineFormat.MINIMAL_BED, num_columns)


def sniff_bed_format(scanner: LineFilterScanner) -> FileFormat:
    """Determine a .bed file's dialect from its first data line."""
    filename = scanner.reader.handle.name
    for lines, _ in scanner.iter_chunks():
        if not lines:
            continue
        num_columns = len(lines[0].split('\t'))
        logging.debug(f"First data line of {filename} has {num_columns} columns")
        return format_from_column_count(num_columns, filename)

    raise NoValidLinesError(
        "The uploaded BED stack file does not contain any valid BED line. "
        "Please upload a BED4 to BED9 file or a BED12 file.", filename)


def detect_format(handle: StackFile, chunk_size: int = DEFAULT_CHUNK_SIZE,
                  encoding: str = "utf-8") -> FileFormat:
    """Resolve the format of ``handle`` from its name, sniffing content if needed."""
    file_format = format_from_extension(handle.name)
    if file_format is None:
        scanner = LineFilterScanner(ChunkReader(handle, chunk_size, encoding))
        file_format = sniff_bed_format(scanner)

    logging.info(f"Detected {file_format} format for {handle.name}")
    return file_format
