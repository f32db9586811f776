#!/usr/bin/env python3

"""
End-to-end tests for stack file parsing.

Covers every supported format, gene discovery and selection, gene ID
normalization, strand lookup for minimal BED files and the user-facing
error messages.
"""

import unittest
from unittest import mock
import tempfile
import os
import sys

# Add the parent directory to the path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from isoform_stack.core.config import StackParserConfig
from isoform_stack.core.data_structures import FileFormat, LineFormat
from isoform_stack.core.ensembl import EnsemblClient
from isoform_stack.core.exceptions import (
    NoGenesFoundError, NoTranscriptsForGeneError, StrandLookupError, UnsupportedExtensionError
)
from isoform_stack.core.file_io import InMemoryStackFile
from isoform_stack.core.pipeline import StackFileParser, parse_stack_file
from isoform_stack.utils.progress import CallbackProgressReporter


def gtf_line(start, end, gene, transcript, feature="exon", strand="+", source="HAVANA"):
    return (f'chr1\t{source}\t{feature}\t{start}\t{end}\t.\t{strand}\t.\t'
            f'gene_id "{gene}"; transcript_id "{transcript}";')


def gff3_line(start, end, gene, transcript, feature="exon", strand="+"):
    return (f"chr7\tHAVANA\t{feature}\t{start}\t{end}\t.\t{strand}\t.\t"
            f"ID={feature}:{transcript};gene_id={gene};transcript_id={transcript}")


def stack_file(name, lines):
    return InMemoryStackFile.from_text(name, "\n".join(lines) + "\n")


SIMPLE_GTF = [
    gtf_line(100, 200, "G1", "T1"),
    gtf_line(300, 400, "G1", "T1"),
    gtf_line(150, 250, "G1", "T2"),
]


class PipelineTestCase(unittest.TestCase):
    """Shared parser set-up with recorded progress."""

    def setUp(self):
        self.messages = []
        self.percentages = []
        self.progress = CallbackProgressReporter(self.messages.append, self.percentages.append)
        self.config = StackParserConfig(enable_memory_monitoring=False)

    def make_parser(self, client=None, **config_overrides):
        config = self.config
        if config_overrides:
            values = config.to_dict()
            values.update(config_overrides)
            config = StackParserConfig.from_dict(values)
        return StackFileParser(config, self.progress, client=client)


class TestGTFParsing(PipelineTestCase):
    """Parsing GTF stack files."""

    def test_single_gene(self):
        """Single gene, discovered automatically."""
        parser = self.make_parser()
        result = parser.parse(stack_file("stack.gtf", SIMPLE_GTF))

        self.assertTrue(result.valid)
        self.assertEqual(result.error, "")
        dataset = result.dataset
        self.assertEqual(dataset.filetype, "GTF")
        self.assertEqual(dataset.gene, "G1")
        self.assertEqual(dataset.chromosome, "chr1")
        self.assertEqual(dataset.strand, '+')
        self.assertEqual(dataset.metagene, [(100, 250), (300, 400)])
        self.assertEqual(dataset.min_exons, 2)
        self.assertEqual(dataset.transcript_order, ["T1", "T2"])

        t1, t2 = dataset.isoforms
        self.assertEqual((t1.start, t1.end, t1.length), (100, 400, 300))
        self.assertEqual(t2.length, 100)
        self.assertEqual((dataset.start, dataset.end, dataset.width), (100, 400, 300))
        self.assertFalse(dataset.is_strand_unknown)

        self.assertEqual(set(parser.monitor.phase_metrics),
                         {"format_detection", "gene_discovery", "exon_extraction"})

    def test_progress_reporting(self):
        self.make_parser().parse(stack_file("stack.gtf", SIMPLE_GTF))

        self.assertEqual(self.messages, [
            "Getting genes from GTF file...",
            "Getting isoform exons of gene 'G1' from GTF file...",
        ])
        self.assertEqual(self.percentages[-1], 100.0)
        self.assertTrue(all(0 <= value <= 100 for value in self.percentages))

    def test_small_chunks_give_same_result(self):
        lines = []
        for i in range(30):
            lines.append(gtf_line(1000 + i * 100, 1050 + i * 100, "G1", f"T{i % 4}"))
        handle = stack_file("stack.gtf", lines)

        whole = self.make_parser().parse(handle).dataset
        chunked = self.make_parser(chunk_size=100).parse(handle).dataset

        self.assertEqual(chunked.metagene, whole.metagene)
        self.assertEqual(chunked.isoforms, whole.isoforms)
        self.assertGreater(len([p for p in self.percentages if p < 100]), 1)

    def test_multiple_genes_are_ambiguous(self):
        lines = SIMPLE_GTF + [gtf_line(900, 950, "G2", "T9")]
        result = self.make_parser().parse(stack_file("stack.gtf", lines))

        self.assertTrue(result.valid)
        self.assertTrue(result.is_ambiguous)
        self.assertIsNone(result.dataset)
        self.assertEqual(result.genes, ["G1", "G2"])
        self.assertEqual(len(self.messages), 1)

    def test_requested_gene_among_several(self):
        lines = SIMPLE_GTF + [gtf_line(900, 950, "G2", "T9")]
        parser = self.make_parser()
        result = parser.parse(stack_file("stack.gtf", lines), gene="G2")

        self.assertTrue(result.valid)
        self.assertEqual(result.genes, ["G2"])
        self.assertEqual(result.dataset.gene, "G2")
        self.assertEqual(result.dataset.transcript_order, ["T9"])
        self.assertEqual(result.dataset.metagene, [(900, 950)])
        # a requested gene skips discovery
        self.assertNotIn("gene_discovery", parser.monitor.phase_metrics)

    def test_gene_ids_are_normalized(self):
        """Versions and case are ignored when matching a requested gene."""
        lines = [gtf_line(100, 200, "BRCA1.3", "ENST0001.2"), gtf_line(300, 400, "TP53", "T2")]

        result = self.make_parser().parse(stack_file("stack.gtf", lines), gene="brca1")
        self.assertTrue(result.valid)
        self.assertEqual(result.dataset.transcript_order, ["ENST0001"])

        result = self.make_parser().parse(stack_file("stack.gtf", lines), gene="TP53.9")
        self.assertTrue(result.valid)
        self.assertEqual(result.dataset.transcript_order, ["T2"])

    def test_discovered_genes_are_normalized(self):
        lines = [gtf_line(100, 200, "brca1.3", "T1"), gtf_line(300, 400, "BRCA1.4", "T2")]
        result = self.make_parser().parse(stack_file("stack.gtf", lines))

        self.assertTrue(result.valid)
        self.assertEqual(result.dataset.gene, "BRCA1")
        self.assertEqual(result.dataset.transcript_order, ["T1", "T2"])

    def test_reference_transcripts_first(self):
        lines = [
            gtf_line(100, 200, "G1", "9037-abc"),
            gtf_line(100, 200, "G1", "ENST00000111"),
            gtf_line(100, 200, "G1", "ENST00000002"),
            gtf_line(100, 200, "G1", "xyz-1"),
        ]
        result = self.make_parser().parse(stack_file("stack.gtf", lines))
        self.assertEqual(result.dataset.transcript_order,
                         ["ENST00000111", "ENST00000002", "9037-abc", "xyz-1"])

    def test_cds_before_exon_is_dropped(self):
        lines = [
            gtf_line(120, 150, "G1", "T1", feature="CDS"),
            gtf_line(100, 200, "G1", "T1"),
            gtf_line(160, 190, "G1", "T1", feature="CDS"),
            gtf_line(100, 200, "G1", "T1", feature="start_codon"),
        ]
        result = self.make_parser().parse(stack_file("stack.gtf", lines))

        isoform = result.dataset.isoforms[0]
        self.assertEqual(isoform.exon_ranges, ((100, 200),))
        self.assertEqual(isoform.orf, ((160, 190),))

    def test_stringtie_ids_keep_versions(self):
        lines = [
            gtf_line(100, 200, "STRG.1", "STRG.1.1", source="StringTie"),
            gtf_line(300, 400, "STRG.1", "STRG.1.2", source="StringTie"),
            gtf_line(900, 999, "STRG.2", "STRG.2.1", source="StringTie"),
        ]
        handle = stack_file("stack.gtf", lines)

        result = self.make_parser().parse(handle)
        self.assertEqual(result.genes, ["STRG.1", "STRG.2"])

        result = self.make_parser().parse(handle, gene="STRG.1")
        self.assertTrue(result.valid)
        self.assertEqual(result.dataset.transcript_order, ["STRG.1.1", "STRG.1.2"])
        self.assertEqual(result.dataset.metagene, [(100, 200), (300, 400)])

    def test_no_genes(self):
        lines = ['chr1\tsrc\texon\t1\t10\t.\t+\t.\tID=x', 'not\ta\tvalid\tline']
        parser = self.make_parser()
        result = parser.parse(stack_file("stack.gtf", lines))

        self.assertFalse(result.valid)
        self.assertEqual(result.error, "No genes found from the stack file. "
                                       "Please upload a stack file with at least one gene.")
        with self.assertRaises(NoGenesFoundError):
            parser.run(stack_file("stack.gtf", lines))

    def test_no_transcripts(self):
        lines = ['chr1\tsrc\texon\t1\t10\t.\t+\t.\tgene_id "G1";']
        parser = self.make_parser()
        result = parser.parse(stack_file("stack.gtf", lines))

        self.assertFalse(result.valid)
        self.assertEqual(result.error, "Stack file contains the searched gene ID but does not "
                                       "contain any of its transcripts.")
        with self.assertRaises(NoTranscriptsForGeneError) as context:
            parser.run(stack_file("stack.gtf", lines))
        self.assertEqual(context.exception.gene, "G1")

    def test_requested_gene_missing(self):
        result = self.make_parser().parse(stack_file("stack.gtf", SIMPLE_GTF), gene="NOPE")
        self.assertFalse(result.valid)
        self.assertIn("does not contain any of its transcripts", result.error)

    def test_transcript_reordering(self):
        dataset = self.make_parser().parse(stack_file("stack.gtf", SIMPLE_GTF)).dataset

        dataset.update_transcript_order(["T2"])
        self.assertEqual([i.transcript_id for i in dataset.isoforms], ["T2"])
        dataset.reset()
        self.assertEqual([i.transcript_id for i in dataset.isoforms], ["T1", "T2"])


class TestGFF3Parsing(PipelineTestCase):
    """Parsing GFF3 stack files."""

    def test_reverse_strand_gene(self):
        lines = [
            "##gff-version 3",
            gff3_line(100, 400, "ENSG01.2", "ENST01.1", feature="transcript", strand="-"),
            gff3_line(300, 400, "ENSG01.2", "ENST01.1", strand="-"),
            gff3_line(100, 200, "ENSG01.2", "ENST01.1", strand="-"),
        ]
        result = self.make_parser().parse(stack_file("stack.gff3", lines))

        self.assertTrue(result.valid)
        dataset = result.dataset
        self.assertEqual(dataset.filetype, "GFF3")
        self.assertEqual(dataset.gene, "ENSG01")
        self.assertEqual(dataset.chromosome, "chr7")
        self.assertEqual(dataset.strand, '-')
        self.assertEqual(dataset.transcript_order, ["ENST01"])
        self.assertEqual(dataset.isoforms[0].exon_ranges, ((300, 400), (100, 200)))
        self.assertEqual(dataset.metagene, [(100, 200), (300, 400)])
        self.assertEqual((dataset.start, dataset.end, dataset.width), (400, 100, 300))


class TestBEDParsing(PipelineTestCase):
    """Parsing BED12, reduced BED and minimal BED stack files."""

    BED12_LINES = [
        "chr1\t99\t400\tENST0001.1|G1\t0\t+\t99\t400\t0\t2\t101,100,\t0,201,",
        "chr1\t149\t250\tNOV1|G1\t0\t+\t149\t250\t0\t1\t101,\t0,",
    ]

    def test_bed12(self):
        result = self.make_parser().parse(stack_file("stack.bed12", self.BED12_LINES))

        dataset = result.dataset
        self.assertEqual(dataset.filetype, "BED")
        self.assertEqual(dataset.file_format, FileFormat(LineFormat.BED12, 12))
        self.assertEqual(dataset.transcript_order, ["ENST0001", "NOV1"])
        self.assertEqual(dataset.isoforms[0].exon_ranges, ((100, 200), (301, 400)))
        self.assertEqual(dataset.metagene, [(100, 250), (301, 400)])

    def test_sniffed_bed12(self):
        result = self.make_parser().parse(stack_file("stack.bed", self.BED12_LINES))
        self.assertTrue(result.valid)
        self.assertEqual(result.dataset.file_format, FileFormat(LineFormat.BED12, 12))

    def test_bed12_repeated_transcript_overwrites_blocks(self):
        lines = self.BED12_LINES + [
            "chr1\t109\t400\tENST0001.1|G1\t0\t+\t109\t400\t0\t1\t91,\t0,",
        ]
        result = self.make_parser().parse(stack_file("stack.bed12", lines))
        self.assertEqual(result.dataset.isoforms[0].exon_ranges, ((110, 200), (301, 400)))

    def test_reduced_bed(self):
        lines = [
            "chr2\t99\t200\tT1|G1\t0\t-",
            "chr2\t299\t400\tT1|G1\t0\t-",
            "chr2\t149\t250\tT2_G1\t0\t-",
        ]
        result = self.make_parser().parse(stack_file("stack.bed6", lines))

        dataset = result.dataset
        self.assertEqual(str(dataset.file_format), "BED6")
        self.assertEqual(dataset.strand, '-')
        self.assertEqual(dataset.metagene, [(100, 250), (300, 400)])
        self.assertEqual(dataset.chromosome, "chr2")

    def test_minimal_bed_with_strand_lookup(self):
        client = mock.Mock(spec=EnsemblClient)
        client.lookup_gene.return_value = {'strand': -1}
        lines = ["chr17\t99\t200\tT1|BRCA1", "chr17\t299\t400\tT1|BRCA1", "chr17\t99\t250\tT2|BRCA1"]

        result = self.make_parser(client=client).parse(stack_file("stack.bed4", lines))

        self.assertTrue(result.valid)
        dataset = result.dataset
        self.assertEqual(dataset.strand, '-')
        self.assertFalse(dataset.is_strand_unknown)
        self.assertTrue(all(isoform.strand == '-' for isoform in dataset.isoforms))
        client.lookup_gene.assert_called_once_with("BRCA1", reference_prefix="ENS")
        self.assertIn("Determining strandedness of gene 'BRCA1'...", self.messages)

    def test_minimal_bed_with_failed_lookup(self):
        client = mock.Mock(spec=EnsemblClient)
        client.lookup_gene.side_effect = StrandLookupError("timed out", gene="BRCA1")
        lines = ["chr17\t99\t200\tT1|BRCA1\t0", "chr17\t299\t400\tT1|BRCA1\t0"]

        with self.assertLogs(level='WARNING'):
            result = self.make_parser(client=client).parse(stack_file("stack.bed", lines))

        self.assertTrue(result.valid)
        self.assertEqual(result.dataset.strand, '+')
        self.assertTrue(result.dataset.is_strand_unknown)
        self.assertEqual(str(result.dataset.file_format), "BED5")

    def test_minimal_bed_without_lookup(self):
        lines = ["chr17\t99\t200\tT1|BRCA1", "chr17\t299\t400\tT1|BRCA1"]
        with mock.patch('isoform_stack.core.pipeline.EnsemblClient') as client_class:
            result = self.make_parser(enable_strand_lookup=False).parse(
                stack_file("stack.bed4", lines))

        client_class.from_config.assert_not_called()
        self.assertTrue(result.dataset.is_strand_unknown)
        self.assertEqual(result.dataset.strand, '+')

    def test_bed_with_bad_column_count(self):
        result = self.make_parser().parse(stack_file("stack.bed", ["chr1\t1\t2\tT|G\t0\t+\t1\t2\t0\t1"]))
        self.assertFalse(result.valid)
        self.assertIn("Incorrect number of columns", result.error)


class TestInputRejection(PipelineTestCase):
    """Files rejected before any scanning."""

    def test_unsupported_extension(self):
        parser = self.make_parser()
        result = parser.parse(stack_file("stack.txt", SIMPLE_GTF))

        self.assertFalse(result.valid)
        self.assertEqual(result.error, "Invalid stack file extension.")
        with self.assertRaises(UnsupportedExtensionError):
            parser.run(stack_file("stack.txt", SIMPLE_GTF))

    def test_too_small(self):
        result = self.make_parser().parse(InMemoryStackFile("stack.gtf", b"x"))
        self.assertEqual(result.error, "Please upload an isoform stack file.")

    def test_line_longer_than_window(self):
        result = self.make_parser(chunk_size=16).parse(stack_file("stack.gtf", SIMPLE_GTF))
        self.assertFalse(result.valid)
        self.assertIn("No line break found", result.error)


class TestParseStackFile(unittest.TestCase):
    """Test the parse_stack_file helper."""

    def test_local_file(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.gtf', delete=False) as f:
            f.write("\n".join(SIMPLE_GTF) + "\n")
            path = f.name

        try:
            result = parse_stack_file(path, config=StackParserConfig(enable_memory_monitoring=False))
            self.assertTrue(result.valid)
            self.assertEqual(result.dataset.metagene, [(100, 250), (300, 400)])
            self.assertEqual(result.to_dict()['dataset']['gene'], "G1")
        finally:
            os.unlink(path)

    def test_missing_file(self):
        result = parse_stack_file("/nonexistent/stack.gtf")
        self.assertFalse(result.valid)
        self.assertIn("not found", result.error)


if __name__ == '__main__':
    unittest.main()
