#!/usr/bin/env python3

"""
Line parsers for GFF3, GTF and the three BED dialects.

Every parser turns one physical line into a LineRecord. A malformed or short
line gives a record with ``valid=False``; parsing of that line stops at the
first problem, so no other field of an invalid record should be trusted.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote

from .data_structures import FileFormat, GenomicRange, LineFormat


@dataclass
class LineRecord:
    """One parsed annotation line."""
    kind: LineFormat
    valid: bool = False
    chromosome: str = ""
    start: int = 0
    end: int = 0
    strand: Optional[str] = None
    gene: str = ""
    transcript: str = ""
    feature: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    is_stringtie: bool = False
    block_count: int = 0
    block_sizes: List[int] = field(default_factory=list)
    block_starts: List[int] = field(default_factory=list)

    @property
    def range(self) -> GenomicRange:
        return (self.start, self.end)

    @property
    def is_exon(self) -> bool:
        return self.feature == "exon"

    @property
    def is_cds(self) -> bool:
        return self.feature == "CDS"

    def block_ranges(self) -> List[GenomicRange]:
        """Absolute exon ranges encoded by BED12 blocks, in block order."""
        ranges = []
        for block_start, block_size in zip(self.block_starts, self.block_sizes):
            exon_start = self.start + block_start
            ranges.append((exon_start, exon_start + block_size - 1))
        return ranges


def _to_int(value: str) -> Optional[int]:
    """Whole-token integer; ``"100.0"`` and ``"12abc"`` give None."""
    try:
        return int(value.strip())
    except ValueError:
        return None


def _parse_strand(value: str) -> Optional[str]:
    strand = value.strip()
    return strand if strand in ('+', '-') else None


def _int_list(value: str) -> List[int]:
    """Comma-separated integers; non-integer tokens are dropped."""
    output = []
    for token in value.split(','):
        number = _to_int(token)
        if number is not None:
            output.append(number)
    return output


def split_name_column(value: str) -> Optional[Tuple[str, str]]:
    """
    Split a BED name column into (transcript, gene).

    ``TRANSCRIPT|GENE`` is tried first, then ``TRANSCRIPT_GENE``.
    """
    for separator in ('|', '_'):
        parts = value.split(separator)
        if len(parts) >= 2:
            return parts[0], parts[1]
    return None


def _parse_gff3_attributes(attr_string: str) -> Dict[str, str]:
    """Parse GFF3 ``key=value;`` attributes with URI-decoded, lower-cased keys."""
    attributes = {}
    for entry in attr_string.split(';'):
        if len(entry) <= 1:
            continue
        pair = entry.strip().split('=')
        if len(pair) != 2:
            continue

        name = unquote(pair[0]).strip().lower()
        value = unquote(pair[1])
        if not name:
            continue

        # the last attribute may carry a trailing comment
        comment_index = value.find('#')
        if comment_index != -1:
            value = value[:comment_index].strip()
        if not value:
            continue

        attributes[name] = value
    return attributes


def _parse_gtf_attributes(attr_string: str) -> Dict[str, str]:
    """Parse GTF ``key "value";`` attributes with lower-cased keys."""
    attributes = {}
    for entry in attr_string.split(';'):
        if len(entry) <= 1:
            continue
        pair = entry.strip().split(' ')
        if len(pair) < 2:
            continue
        attributes[pair[0].lower()] = pair[1].replace('"', '')
    return attributes


def _parse_feature_columns(record: LineRecord, columns: List[str]) -> bool:
    """Shared GFF3/GTF columns 1, 3, 4, 5 and 7."""
    if len(columns) < 9:
        return False

    start = _to_int(columns[3])
    end = _to_int(columns[4])
    strand = _parse_strand(columns[6])
    if start is None or end is None or strand is None:
        return False

    record.chromosome = columns[0].strip()
    record.feature = columns[2].strip()
    record.start = start
    record.end = end
    record.strand = strand
    return True


def parse_gff3_line(line: str) -> LineRecord:
    record = LineRecord(LineFormat.GFF3)
    columns = line.strip().split('\t')
    if not _parse_feature_columns(record, columns):
        return record

    record.attributes = _parse_gff3_attributes(columns[8])
    record.gene = record.attributes.get('gene_id', '')
    record.transcript = record.attributes.get('transcript_id', '')
    record.valid = True
    return record


def parse_gtf_line(line: str) -> LineRecord:
    record = LineRecord(LineFormat.GTF)
    columns = line.split('\t')
    if not _parse_feature_columns(record, columns):
        return record

    # StringTie does not version its gene and transcript IDs
    record.is_stringtie = 'stringtie' in columns[1].lower()
    record.attributes = _parse_gtf_attributes(columns[8])
    record.gene = record.attributes.get('gene_id', '')
    record.transcript = record.attributes.get('transcript_id', '')
    record.valid = True
    return record


def _parse_bed_location(record: LineRecord, columns: List[str], has_strand: bool) -> bool:
    """Shared BED columns: chrom, chromStart, chromEnd, name and (optionally) strand."""
    start = _to_int(columns[1])
    end = _to_int(columns[2])
    if start is None or end is None:
        return False

    if has_strand:
        strand = _parse_strand(columns[5])
        if strand is None:
            return False
        record.strand = strand

    names = split_name_column(columns[3])
    if names is None:
        return False

    record.chromosome = columns[0]
    # BED is 0-based half-open
    record.start = start + 1
    record.end = end
    record.transcript = names[0].split('.')[0].strip()
    record.gene = names[1].split('.')[0].strip()
    return True


def parse_bed12_line(line: str) -> LineRecord:
    record = LineRecord(LineFormat.BED12, feature="exon")
    columns = line.split('\t')
    if len(columns) < 12:
        return record

    block_count = _to_int(columns[9])
    if block_count is None:
        return record
    if not _parse_bed_location(record, columns, has_strand=True):
        return record

    record.block_count = block_count
    record.block_sizes = _int_list(columns[10])
    record.block_starts = _int_list(columns[11])
    record.valid = (len(record.block_sizes) == block_count
                    and len(record.block_starts) == block_count)
    return record


def parse_reduced_bed_line(line: str, num_columns: int) -> LineRecord:
    """One exon per line; exactly ``num_columns`` (6-9) columns with strand."""
    record = LineRecord(LineFormat.REDUCED_BED, feature="exon")
    columns = line.split('\t')
    if len(columns) != num_columns:
        return record

    record.valid = _parse_bed_location(record, columns, has_strand=True)
    return record


def parse_minimal_bed_line(line: str, num_columns: int) -> LineRecord:
    """One exon per line; exactly ``num_columns`` (4-5) columns, no strand."""
    record = LineRecord(LineFormat.MINIMAL_BED, feature="exon")
    columns = line.split('\t')
    if len(columns) != num_columns:
        return record

    record.valid = _parse_bed_location(record, columns, has_strand=False)
    return record


def parse_line(line: str, file_format: FileFormat) -> LineRecord:
    """Parse ``line`` with the parser matching ``file_format``."""
    kind = file_format.kind
    if kind is LineFormat.GFF3:
        return parse_gff3_line(line)
    if kind is LineFormat.GTF:
        return parse_gtf_line(line)
    if kind is LineFormat.BED12:
        return parse_bed12_line(line)
    if kind is LineFormat.REDUCED_BED:
        return parse_reduced_bed_line(line, file_format.columns)
    return parse_minimal_bed_line(line, file_format.columns)
