#!/usr/bin/env python3

"""
Main parser classes for isoform stack files.

AnnotationExtractor runs the two scan phases over a file: gene discovery
(only when no gene was requested) and exon extraction for the resolved gene.
StackFileParser validates the input, detects its format, drives the
extractor and assembles the PrimaryDataset.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config import StackParserConfig
from .data_structures import (
    FileFormat, GeneCatalog, ParseResult, PrimaryDataset, TranscriptRecord,
    strip_version
)
from .ensembl import EnsemblClient
from .exceptions import (
    InputRejectedError, NoGenesFoundError, NoTranscriptsForGeneError, StackParseError
)
from .extractors import ExonExtractor, GeneDiscoverer
from .file_io import END_OF_INPUT, ChunkReader, LineFilterScanner, LocalStackFile, StackFile
from .formats import detect_format, validate_stack_file
from .processors import IsoformBuilder, MetageneMerger
from .strand import StrandResolver
from ..utils.performance_monitor import PerformanceMonitor
from ..utils.progress import ProgressReporter


@dataclass
class ExtractionResult:
    """Transcript table of the resolved gene, or the candidates if ambiguous."""
    gene: Optional[str]
    genes: List[str]
    transcripts: Dict[str, TranscriptRecord] = field(default_factory=dict)
    chromosome: str = ""
    is_strand_unknown: bool = False

    @property
    def is_ambiguous(self) -> bool:
        return self.gene is None and len(self.genes) > 1


class AnnotationExtractor:
    """Two-phase scan of a stack file."""

    def __init__(self, handle: StackFile, file_format: FileFormat,
                 config: Optional[StackParserConfig] = None,
                 progress: Optional[ProgressReporter] = None,
                 strand_resolver: Optional[StrandResolver] = None,
                 monitor: Optional[PerformanceMonitor] = None):
        self.handle = handle
        self.file_format = file_format
        self.config = config or StackParserConfig()
        self.progress = progress or ProgressReporter()
        self.strand_resolver = strand_resolver or StrandResolver(enabled=False)
        self.monitor = monitor or PerformanceMonitor(
            self.config.memory_limit_mb, enforce_limit=self.config.enable_memory_monitoring)

    def run(self, gene: Optional[str] = None) -> ExtractionResult:
        """
        Extract the transcripts of ``gene``, discovering it first if not given.

        Raises NoGenesFoundError or NoTranscriptsForGeneError. A file with
        several genes and no requested gene gives an ambiguous result.
        """
        if gene:
            genes = [gene]
        else:
            catalog = self.discover_genes()
            genes = catalog.genes
            if not genes:
                raise NoGenesFoundError(
                    "No genes found from the stack file. "
                    "Please upload a stack file with at least one gene.")
            if len(genes) > 1:
                logging.info(f"Found {len(genes)} genes in {self.handle.name}; "
                             f"a gene must be chosen")
                return ExtractionResult(gene=None, genes=genes)
            gene = genes[0]

        extractor = self.extract_transcripts(gene)
        if not extractor.transcripts:
            raise NoTranscriptsForGeneError(
                "Stack file contains the searched gene ID but does not contain "
                "any of its transcripts.", gene=gene)

        logging.info(f"Extracted {len(extractor.transcripts)} transcripts of gene '{gene}' "
                     f"on chromosome {extractor.chromosome or '?'}")
        return ExtractionResult(
            gene=gene,
            genes=genes,
            transcripts=extractor.transcripts,
            chromosome=extractor.chromosome,
            is_strand_unknown=extractor.is_strand_unknown,
        )

    def discover_genes(self) -> GeneCatalog:
        """Phase 1: collect every gene identifier in the file."""
        discoverer = GeneDiscoverer(self.file_format)
        self.progress.update_message(f"Getting genes from {self.file_format.filetype} file...")
        self._scan("gene_discovery", None, discoverer.collect)

        logging.info(f"Found {len(discoverer.catalog)} genes "
                     f"({discoverer.lines_rejected} malformed lines skipped)")
        return discoverer.catalog

    def extract_transcripts(self, gene: str) -> ExonExtractor:
        """Phase 2: collect the exons of ``gene``, pre-filtering lines on its name."""
        extractor = ExonExtractor(self.file_format, gene, self.strand_resolver, self.progress)
        self.progress.update_message(
            f"Getting isoform exons of gene '{gene}' from {self.file_format.filetype} file...")
        self._scan("exon_extraction", strip_version(gene), extractor.extract)

        extractor.log_summary()
        return extractor

    def _scan(self, phase_name: str, gene_filter: Optional[str],
              consume: Callable[[List[str]], None]) -> None:
        reader = ChunkReader(self.handle, self.config.chunk_size, self.config.encoding)
        scanner = LineFilterScanner(reader, gene_filter)

        with self.monitor.phase_context(phase_name):
            offset = 0
            while offset != END_OF_INPUT:
                lines, next_offset = scanner.next_chunk(offset)
                consume(lines)

                consumed_to = self.handle.size if next_offset == END_OF_INPUT else next_offset
                self.monitor.record_chunk(consumed_to - offset, len(lines))
                self.progress.update_percentage(scanner.progress(next_offset))
                offset = next_offset


class StackFileParser:
    """Parses a stack file into a PrimaryDataset."""

    def __init__(self, config: Optional[StackParserConfig] = None,
                 progress: Optional[ProgressReporter] = None,
                 client: Optional[EnsemblClient] = None):
        self.config = config or StackParserConfig()
        self.progress = progress or ProgressReporter()
        self.client = client
        self.monitor: Optional[PerformanceMonitor] = None

    def parse(self, handle: StackFile, gene: Optional[str] = None) -> ParseResult:
        """Parse ``handle``; failures are reported in the result, not raised."""
        try:
            return self.run(handle, gene)
        except StackParseError as e:
            logging.error(f"Failed to parse {handle.name}: {e}")
            return ParseResult(valid=False, error=str(e))

    def run(self, handle: StackFile, gene: Optional[str] = None) -> ParseResult:
        """Parse ``handle``, raising StackParseError subclasses on failure."""
        config = self.config
        validate_stack_file(handle.name, handle.size, config.min_file_size, config.max_file_size)

        self.monitor = PerformanceMonitor(
            config.memory_limit_mb, enforce_limit=config.enable_memory_monitoring)

        with self.monitor.phase_context("format_detection"):
            file_format = detect_format(handle, config.chunk_size, config.encoding)

        extractor = AnnotationExtractor(
            handle, file_format, config, self.progress,
            strand_resolver=self._strand_resolver(file_format),
            monitor=self.monitor)
        extraction = extractor.run(gene)

        if config.debug_mode:
            self.monitor.log_performance_report()

        if extraction.is_ambiguous:
            return ParseResult(valid=True, genes=extraction.genes)

        dataset = self.assemble(file_format, extraction)
        return ParseResult(valid=True, dataset=dataset, genes=extraction.genes)

    def assemble(self, file_format: FileFormat, extraction: ExtractionResult) -> PrimaryDataset:
        """Build isoforms and metagene from an extraction result."""
        builder = IsoformBuilder(self.config.reference_prefix)
        order, isoforms = builder.build(extraction.transcripts)
        if not isoforms:
            raise NoTranscriptsForGeneError(
                "Stack file contains the searched gene ID but does not contain "
                "any of its transcripts.", gene=extraction.gene or "")

        metagene = MetageneMerger().merge(isoforms)
        logging.info(f"Built {len(isoforms)} isoforms; metagene has {len(metagene)} exonic regions")

        return PrimaryDataset(
            filetype=file_format.filetype,
            file_format=file_format,
            chromosome=extraction.chromosome,
            gene=extraction.gene,
            strand=isoforms[0].strand,
            metagene=metagene,
            isoforms=list(isoforms),
            transcript_order=order,
            all_isoforms=tuple(isoforms),
            is_strand_unknown=extraction.is_strand_unknown,
        )

    def _strand_resolver(self, file_format: FileFormat) -> StrandResolver:
        """A fresh resolver per parse, so cached lookups never leak between files."""
        if file_format.has_strand or not self.config.enable_strand_lookup:
            return StrandResolver(enabled=False)

        client = self.client or EnsemblClient.from_config(self.config)
        return StrandResolver(client, reference_prefix=self.config.reference_prefix)


def parse_stack_file(path: str, gene: Optional[str] = None,
                     config: Optional[StackParserConfig] = None,
                     progress: Optional[ProgressReporter] = None,
                     client: Optional[EnsemblClient] = None) -> ParseResult:
    """Parse the stack file at ``path``."""
    parser = StackFileParser(config, progress, client)
    try:
        handle = LocalStackFile(path)
    except InputRejectedError as e:
        logging.error(str(e))
        return ParseResult(valid=False, error=str(e))
    return parser.parse(handle, gene)
