#!/usr/bin/env python3

"""
Chunked streaming access to large annotation files.

A stack file is read in fixed-size byte windows. Each window is cut back to
its last newline so no line is ever split between two windows; the cut-off
tail is re-read at the start of the next window. Lines are then cleaned of
comments and blank lines and, optionally, pre-filtered on a gene substring.
"""

import logging
import os
from typing import Iterator, List, Optional, Tuple

from .config import DEFAULT_CHUNK_SIZE
from .exceptions import ChunkBoundaryError, InputRejectedError

END_OF_INPUT = -1


class StackFile:
    """Byte-addressable view of an annotation file."""

    name: str = ""

    @property
    def size(self) -> int:
        raise NotImplementedError

    def read_bytes(self, start: int, end: int) -> bytes:
        """Return bytes ``[start, end)``, clamped to the end of the file."""
        raise NotImplementedError

    def slice_to_text(self, start: int, end: int, encoding: str = "utf-8") -> str:
        """Return the decoded text of bytes ``[start, end)``."""
        return self.read_bytes(start, end).decode(encoding)


class LocalStackFile(StackFile):
    """Stack file on the local filesystem."""

    def __init__(self, path: str, name: Optional[str] = None):
        if not os.path.isfile(path):
            raise InputRejectedError(f"Stack file not found: {path}", filename=path)
        self.path = path
        self.name = name if name is not None else os.path.basename(path)
        self._size = os.path.getsize(path)

    @property
    def size(self) -> int:
        return self._size

    def read_bytes(self, start: int, end: int) -> bytes:
        if end <= start:
            return b""
        with open(self.path, 'rb') as f:
            f.seek(start)
            return f.read(end - start)

    def __repr__(self):
        return f"LocalStackFile({self.path!r})"


class InMemoryStackFile(StackFile):
    """Stack file whose content is already held in memory (e.g. an upload)."""

    def __init__(self, name: str, data: bytes):
        self.name = name
        self.data = data

    @classmethod
    def from_text(cls, name: str, text: str, encoding: str = "utf-8") -> 'InMemoryStackFile':
        return cls(name, text.encode(encoding))

    @property
    def size(self) -> int:
        return len(self.data)

    def read_bytes(self, start: int, end: int) -> bytes:
        return self.data[start:end]

    def __repr__(self):
        return f"InMemoryStackFile({self.name!r}, {self.size} bytes)"


class ChunkReader:
    """Reads line-aligned text windows from a StackFile."""

    def __init__(self, handle: StackFile, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 encoding: str = "utf-8"):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.handle = handle
        self.chunk_size = chunk_size
        self.encoding = encoding

    def read_window(self, offset: int) -> Tuple[str, int]:
        """
        Read the window starting at ``offset``.

        Returns the decoded text up to (not including) the last newline of a
        window, and the offset just past that newline. A window reaching the
        end of the file is the last one and yields ``END_OF_INPUT``.
        """
        data = self.handle.read_bytes(offset, offset + self.chunk_size)

        if offset + len(data) < self.handle.size:
            last_newline = data.rfind(b'\n')
            if last_newline == -1:
                raise ChunkBoundaryError(
                    f"No line break found within {self.chunk_size} bytes at offset {offset}. "
                    f"Lines longer than the read window are not supported.",
                    filename=self.handle.name, offset=offset)
            next_offset = offset + last_newline + 1
            data = data[:last_newline]
        else:
            next_offset = END_OF_INPUT

        return data.decode(self.encoding), next_offset


class LineFilterScanner:
    """Splits windows into data lines, optionally keeping gene-matching lines only."""

    def __init__(self, reader: ChunkReader, gene_filter: Optional[str] = None):
        self.reader = reader
        self.gene_filter = gene_filter.upper() if gene_filter else None

    def next_chunk(self, offset: int) -> Tuple[List[str], int]:
        """Return the filtered lines of the window at ``offset`` and the next offset."""
        try:
            text, next_offset = self.reader.read_window(offset)
        except (OSError, UnicodeDecodeError) as e:
            logging.warning(f"Could not read {self.reader.handle.name} at offset {offset}, "
                            f"stopping scan: {e}")
            return [], END_OF_INPUT

        return self.filter_lines(text), next_offset

    def filter_lines(self, text: str) -> List[str]:
        """Drop blank lines, comments and (if filtering) lines lacking the gene."""
        lines = []
        for line in text.replace('\r', '').split('\n'):
            if not line or line[0] == '#':
                continue
            if self.gene_filter and self.gene_filter not in line.upper():
                continue
            lines.append(line)
        return lines

    def iter_chunks(self) -> Iterator[Tuple[List[str], int]]:
        """Yield ``(lines, next_offset)`` for every window, in file order."""
        offset = 0
        while offset != END_OF_INPUT:
            lines, offset = self.next_chunk(offset)
            yield lines, offset

    def progress(self, next_offset: int) -> float:
        """Percentage of the file consumed once ``next_offset`` is reached."""
        size = self.reader.handle.size
        if next_offset == END_OF_INPUT or size <= 0:
            return 100.0
        return round(min(100.0, next_offset * 100 / size), 2)
