#!/usr/bin/env python3

"""
Reference isoforms of a gene that are not present in the stack file.

The transcripts come from an Ensembl ``lookup`` response expanded with its
transcripts (each with ``id``, ``Exon``, ``strand``, ``start``, ``end`` and
optionally ``display_name``).
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .data_structures import GenomicRange, Isoform, TranscriptRecord, select_isoforms
from .ensembl import EnsemblClient
from .processors import IsoformBuilder, MetageneMerger

NOVEL_SYMBOL = "Novel"


class ReferenceIsoformSet:
    """Isoforms of the reference annotation, merged with those of the stack."""

    def __init__(self, transcripts: Iterable[Mapping[str, Any]],
                 stack_transcript_ids: Sequence[str],
                 stack_isoforms: Sequence[Isoform] = (),
                 reference_prefix: str = "ENS"):
        self.id_to_symbol: Dict[str, str] = {}
        self.strand = ""
        self.start = -1
        self.end = -1
        self.records: Dict[str, TranscriptRecord] = {}

        excluded = set(stack_transcript_ids)
        for transcript in transcripts:
            transcript_id = transcript.get('id')
            exons = transcript.get('Exon')
            if not exons or not transcript_id:
                continue
            if transcript.get('start') is None or transcript.get('end') is None:
                logging.debug(f"Skipping reference transcript {transcript_id} without coordinates")
                continue
            if transcript_id in excluded:
                continue
            self._add_transcript(transcript_id, transcript, exons)

        builder = IsoformBuilder(reference_prefix)
        self.transcript_order, self.isoforms = builder.build(self.records)
        self.all_isoforms = tuple(self.isoforms)
        self.metagene: List[GenomicRange] = MetageneMerger().merge(
            list(self.isoforms) + list(stack_isoforms))

        logging.info(f"Loaded {len(self.isoforms)} reference isoforms "
                     f"({len(excluded)} stack transcripts excluded)")

    def _add_transcript(self, transcript_id: str, transcript: Mapping[str, Any],
                        exons: Sequence[Mapping[str, Any]]) -> None:
        self.id_to_symbol[transcript_id] = transcript.get('display_name') or NOVEL_SYMBOL

        strand = '+' if transcript.get('strand') == 1 else '-'
        if not self.strand:
            self.strand = strand
        self._extend(transcript['start'], transcript['end'])

        ordered = list(exons)
        if strand == '-':
            ordered.reverse()

        # isoforms take the strand of the gene, not of the transcript
        record = TranscriptRecord(transcript_id, strand=self.strand)
        for exon in ordered:
            record.add_exon((exon['start'], exon['end']))
        self.records[transcript_id] = record

    def _extend(self, start: int, end: int) -> None:
        if self.start == -1:
            self.start = start
            self.end = end
        elif self.strand == '+':
            self.start = min(start, self.start)
            self.end = max(end, self.end)
        else:
            self.start = max(start, self.start)
            self.end = min(end, self.end)

    def update_transcript_order(self, transcript_ids: Sequence[str]) -> None:
        """Reorder or prune the working isoforms, drawing from the snapshot."""
        self.isoforms = select_isoforms(self.all_isoforms, transcript_ids)
        self.transcript_order = list(transcript_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'strand': self.strand,
            'start': self.start,
            'end': self.end,
            'metagene': [list(interval) for interval in self.metagene],
            'transcript_order': list(self.transcript_order),
            'id_to_symbol': dict(self.id_to_symbol),
            'isoforms': [isoform.to_dict() for isoform in self.isoforms],
        }


def fetch_reference_transcripts(client: EnsemblClient, gene: str,
                                reference_prefix: str = "ENS") -> List[Dict[str, Any]]:
    """Transcripts of ``gene`` from an expanded Ensembl lookup."""
    data = client.lookup_gene(gene, expand=True, reference_prefix=reference_prefix)
    transcripts = data.get('Transcript') or []
    logging.info(f"Fetched {len(transcripts)} reference transcripts for {gene}")
    return transcripts
