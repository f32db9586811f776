#!/usr/bin/env python3

"""
Line-level extractors used by the two scan phases.

GeneDiscoverer collects every gene identifier of a file (phase 1).
ExonExtractor keeps the exon and CDS lines of one gene and assembles them
into a transcript table (phase 2).
"""

import logging
from typing import Callable, Dict, List, Optional

from .data_structures import (
    FileFormat, GeneCatalog, LineFormat, TranscriptRecord,
    normalize_gene_id, strip_version
)
from .parsers import LineRecord, parse_line
from .strand import StrandResolver, UNKNOWN_STRAND
from ..utils.progress import ProgressReporter


class GeneDiscoverer:
    """Collects normalized gene identifiers of every valid line."""

    def __init__(self, file_format: FileFormat):
        self.file_format = file_format
        self.catalog = GeneCatalog()
        self.lines_seen = 0
        self.lines_rejected = 0

    def collect(self, lines: List[str]) -> None:
        for line in lines:
            self.lines_seen += 1
            record = parse_line(line, self.file_format)
            if not record.valid:
                self.lines_rejected += 1
                continue
            if not record.gene:
                continue
            self.catalog.add(normalize_gene_id(record.gene, strip=not record.is_stringtie))


class ExonExtractor:
    """Builds the transcript table of one gene from exon (and CDS) lines."""

    def __init__(self, file_format: FileFormat, gene: str,
                 strand_resolver: Optional[StrandResolver] = None,
                 progress: Optional[ProgressReporter] = None):
        self.file_format = file_format
        self.gene = gene
        self.strand_resolver = strand_resolver or StrandResolver(enabled=False)
        self.progress = progress or ProgressReporter()

        self.transcripts: Dict[str, TranscriptRecord] = {}
        self.chromosome = ""
        self.is_strand_unknown = False
        self._gene_strand: Optional[str] = None

        self.lines_seen = 0
        self.lines_rejected = 0
        self.cds_dropped = 0

        handlers: Dict[LineFormat, Callable[[LineRecord, str], None]] = {
            LineFormat.GFF3: self._add_single_exon,
            LineFormat.GTF: self._add_gtf,
            LineFormat.BED12: self._add_bed12,
            LineFormat.REDUCED_BED: self._add_single_exon,
            LineFormat.MINIMAL_BED: self._add_unstranded_exon,
        }
        self._handler = handlers[file_format.kind]

    def extract(self, lines: List[str]) -> None:
        for line in lines:
            self.lines_seen += 1
            record = parse_line(line, self.file_format)
            if not record.valid:
                self.lines_rejected += 1
                continue
            if not self._is_wanted_feature(record):
                continue
            if not self.matches_gene(record):
                continue

            if not self.chromosome and record.chromosome:
                self.chromosome = record.chromosome

            transcript_id = record.transcript
            if not transcript_id:
                continue
            if not record.is_stringtie:
                transcript_id = strip_version(transcript_id)

            self._handler(record, transcript_id)

    def matches_gene(self, record: LineRecord) -> bool:
        """Case-insensitive, version-insensitive match against the target gene."""
        if not record.gene:
            return False
        strip = not record.is_stringtie
        return normalize_gene_id(record.gene, strip) == normalize_gene_id(self.gene, strip)

    def _is_wanted_feature(self, record: LineRecord) -> bool:
        kind = self.file_format.kind
        if kind is LineFormat.GFF3:
            return record.is_exon
        if kind is LineFormat.GTF:
            return record.is_exon or record.is_cds
        return True

    def _transcript(self, transcript_id: str) -> TranscriptRecord:
        if transcript_id not in self.transcripts:
            self.transcripts[transcript_id] = TranscriptRecord(transcript_id)
        return self.transcripts[transcript_id]

    def _add_gtf(self, record: LineRecord, transcript_id: str) -> None:
        if record.is_exon:
            self._add_single_exon(record, transcript_id)
            return

        # CDS lines must follow the exons of their transcript
        transcript = self.transcripts.get(transcript_id)
        if transcript is None or not transcript.add_cds(record.range):
            self.cds_dropped += 1

    def _add_bed12(self, record: LineRecord, transcript_id: str) -> None:
        if record.block_count == 0:
            return
        transcript = self._transcript(transcript_id)
        for index, exon in enumerate(record.block_ranges()):
            transcript.set_exon(index, exon)
        transcript.strand = record.strand

    def _add_single_exon(self, record: LineRecord, transcript_id: str) -> None:
        transcript = self._transcript(transcript_id)
        transcript.add_exon(record.range)
        transcript.strand = record.strand

    def _add_unstranded_exon(self, record: LineRecord, transcript_id: str) -> None:
        transcript = self._transcript(transcript_id)
        transcript.add_exon(record.range)
        transcript.strand = self._resolve_gene_strand(record.gene)

    def _resolve_gene_strand(self, gene_symbol: str) -> str:
        if self._gene_strand is None:
            gene = strip_version(gene_symbol)
            self.progress.update_message(f"Determining strandedness of gene '{gene}'...")
            self.progress.update_percentage(0)

            strand = self.strand_resolver.resolve(gene)
            if strand == UNKNOWN_STRAND:
                # unknown strandedness: treat everything as forward strand
                self.is_strand_unknown = True
                strand = '+'
            self._gene_strand = strand
        return self._gene_strand

    def log_summary(self) -> None:
        logging.debug(f"Exon extraction for '{self.gene}': {self.lines_seen} lines seen, "
                      f"{self.lines_rejected} malformed, {self.cds_dropped} CDS lines dropped")
