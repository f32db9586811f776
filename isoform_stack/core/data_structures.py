#!/usr/bin/env python3

"""
Core data structures for the isoform stack parser.

Defines the file-format descriptor, the per-transcript exon table built while
scanning, the gene catalog used during discovery, and the assembled
Isoform / PrimaryDataset / ParseResult types handed to consumers.

All genomic ranges are ``(start, end)`` tuples in 1-based inclusive
coordinates.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

GenomicRange = Tuple[int, int]

STRANDS = ('+', '-')


def strip_version(identifier: str) -> str:
    """Drop a version suffix: ``ENSG00000012048.23`` -> ``ENSG00000012048``."""
    return identifier.split('.')[0]


def normalize_gene_id(gene_id: str, strip: bool = True) -> str:
    """Case-insensitive gene key, version suffix removed unless ``strip`` is False."""
    if strip:
        gene_id = strip_version(gene_id)
    return gene_id.upper()


class LineFormat(Enum):
    """Line dialects understood by the parsers."""
    GFF3 = "GFF3"
    GTF = "GTF"
    BED12 = "BED12"
    REDUCED_BED = "REDUCED_BED"
    MINIMAL_BED = "MINIMAL_BED"


@dataclass(frozen=True)
class FileFormat:
    """Resolved format of a stack file."""
    kind: LineFormat
    columns: Optional[int] = None

    def __post_init__(self):
        if self.kind is LineFormat.REDUCED_BED:
            if self.columns not in (6, 7, 8, 9):
                raise ValueError(f"Reduced BED must have 6 to 9 columns, got {self.columns}")
        elif self.kind is LineFormat.MINIMAL_BED:
            if self.columns not in (4, 5):
                raise ValueError(f"Minimal BED must have 4 or 5 columns, got {self.columns}")
        elif self.kind is LineFormat.BED12:
            if self.columns not in (None, 12):
                raise ValueError(f"BED12 must have 12 columns, got {self.columns}")

    @property
    def filetype(self) -> str:
        """Coarse file type reported to consumers: GFF3, GTF or BED."""
        if self.kind in (LineFormat.GFF3, LineFormat.GTF):
            return self.kind.value
        return "BED"

    @property
    def has_strand(self) -> bool:
        """Whether lines of this format carry a strand column."""
        return self.kind is not LineFormat.MINIMAL_BED

    def __str__(self):
        if self.columns and self.kind in (LineFormat.REDUCED_BED, LineFormat.MINIMAL_BED):
            return f"BED{self.columns}"
        if self.kind is LineFormat.BED12:
            return "BED12"
        return self.kind.value


@dataclass
class TranscriptRecord:
    """Exons, strand and ORF of one transcript, in discovery order."""
    transcript_id: str
    exons: List[GenomicRange] = field(default_factory=list)
    strand: str = ""
    orf: List[GenomicRange] = field(default_factory=list)

    @property
    def exon_count(self) -> int:
        """Get number of exons."""
        return len(self.exons)

    def add_exon(self, exon: GenomicRange) -> None:
        """Append an exon at the next free index."""
        self.exons.append((exon[0], exon[1]))

    def set_exon(self, index: int, exon: GenomicRange) -> None:
        """Store an exon at a fixed index, replacing any exon already there."""
        exon = (exon[0], exon[1])
        if index < len(self.exons):
            self.exons[index] = exon
        elif index == len(self.exons):
            self.exons.append(exon)
        else:
            raise IndexError(f"Exon index {index} skips positions in transcript {self.transcript_id}")

    def add_cds(self, cds: GenomicRange) -> bool:
        """Append a CDS range; refused while the transcript has no exon."""
        if not self.exons:
            return False
        self.orf.append((cds[0], cds[1]))
        return True


class GeneCatalog:
    """Normalized gene identifiers seen during discovery, in first-seen order."""

    def __init__(self, genes: Optional[Sequence[str]] = None):
        self._genes: Dict[str, None] = {}
        for gene in genes or ():
            self.add(gene)

    def add(self, gene: str) -> bool:
        """Add a gene; returns False when it was already present."""
        if gene in self._genes:
            return False
        self._genes[gene] = None
        return True

    @property
    def genes(self) -> List[str]:
        return list(self._genes)

    def __contains__(self, gene: object) -> bool:
        return gene in self._genes

    def __iter__(self) -> Iterator[str]:
        return iter(self._genes)

    def __len__(self) -> int:
        return len(self._genes)

    def __repr__(self):
        return f"GeneCatalog({self.genes!r})"


@dataclass(frozen=True)
class Isoform:
    """Strand-oriented model of one transcript."""
    transcript_id: str
    exon_ranges: Tuple[GenomicRange, ...]
    strand: str
    orf: Tuple[GenomicRange, ...] = ()

    def __post_init__(self):
        """Validate isoform data after initialization."""
        if not self.transcript_id:
            raise ValueError("Transcript ID cannot be empty")
        if not self.exon_ranges:
            raise ValueError(f"Isoform {self.transcript_id} has no exons")
        if self.strand not in STRANDS:
            raise ValueError(f"Invalid strand: {self.strand}")
        object.__setattr__(self, 'exon_ranges', tuple((s, e) for s, e in self.exon_ranges))
        object.__setattr__(self, 'orf', tuple((s, e) for s, e in self.orf))

    @classmethod
    def from_record(cls, record: TranscriptRecord) -> 'Isoform':
        return cls(
            transcript_id=record.transcript_id,
            exon_ranges=tuple(record.exons),
            strand=record.strand,
            orf=tuple(record.orf),
        )

    @property
    def start(self) -> int:
        """Start in strand orientation; for '-' the end of the last listed exon."""
        if self.strand == '+':
            return self.exon_ranges[0][0]
        return self.exon_ranges[-1][1]

    @property
    def end(self) -> int:
        """End in strand orientation; for '-' the start of the first listed exon."""
        if self.strand == '+':
            return self.exon_ranges[-1][1]
        return self.exon_ranges[0][0]

    @property
    def length(self) -> int:
        return abs(self.end - self.start)

    @property
    def exon_count(self) -> int:
        return len(self.exon_ranges)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transcript_id': self.transcript_id,
            'strand': self.strand,
            'start': self.start,
            'end': self.end,
            'length': self.length,
            'exons': [list(exon) for exon in self.exon_ranges],
            'orf': [list(cds) for cds in self.orf],
        }


def select_isoforms(snapshot: Sequence[Isoform], transcript_ids: Sequence[str]) -> List[Isoform]:
    """
    Rebuild a working isoform list from a snapshot in caller-supplied order.

    Unknown IDs are ignored; repeated IDs yield repeated entries.
    """
    selected = []
    for transcript_id in transcript_ids:
        for isoform in snapshot:
            if isoform.transcript_id == transcript_id:
                selected.append(isoform)
    return selected


@dataclass
class PrimaryDataset:
    """Isoforms and metagene of one gene read from a stack file."""
    filetype: str
    file_format: FileFormat
    chromosome: str
    gene: str
    strand: str
    metagene: List[GenomicRange]
    isoforms: List[Isoform]
    transcript_order: List[str]
    all_isoforms: Tuple[Isoform, ...]
    is_strand_unknown: bool = False

    @property
    def min_exons(self) -> int:
        return len(self.metagene)

    @property
    def start(self) -> int:
        if self.strand == '+':
            return self.metagene[0][0]
        return self.metagene[-1][1]

    @property
    def end(self) -> int:
        if self.strand == '+':
            return self.metagene[-1][1]
        return self.metagene[0][0]

    @property
    def width(self) -> int:
        return abs(self.end - self.start)

    def update_transcript_order(self, transcript_ids: Sequence[str]) -> None:
        """Reorder or prune the working isoforms, drawing from the snapshot."""
        self.isoforms = select_isoforms(self.all_isoforms, transcript_ids)
        self.transcript_order = list(transcript_ids)

    def reset(self) -> None:
        """Restore every isoform from the snapshot in its original order."""
        self.isoforms = list(self.all_isoforms)
        self.transcript_order = [isoform.transcript_id for isoform in self.all_isoforms]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filetype': self.filetype,
            'format': str(self.file_format),
            'chromosome': self.chromosome,
            'gene': self.gene,
            'strand': self.strand,
            'start': self.start,
            'end': self.end,
            'width': self.width,
            'min_exons': self.min_exons,
            'is_strand_unknown': self.is_strand_unknown,
            'metagene': [list(interval) for interval in self.metagene],
            'transcript_order': list(self.transcript_order),
            'isoforms': [isoform.to_dict() for isoform in self.isoforms],
        }


@dataclass
class ParseResult:
    """Outcome of parsing a stack file, as handed to consumers."""
    valid: bool
    error: str = ""
    dataset: Optional[PrimaryDataset] = None
    genes: List[str] = field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        """More than one gene found; the caller must pick one."""
        return self.valid and self.dataset is None and len(self.genes) > 1

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'valid': self.valid, 'error': self.error, 'genes': list(self.genes)}
        if self.dataset is not None:
            result['dataset'] = self.dataset.to_dict()
        return result
