#!/usr/bin/env python3

"""
Processing classes for isoform assembly and metagene construction.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .data_structures import GenomicRange, Isoform, TranscriptRecord


def prioritise_known_transcripts(transcript_ids: Iterable[str], prefix: str = "ENS") -> List[str]:
    """
    Move reference transcripts (IDs starting with ``prefix``) to the front.

    Discovery order is kept within both groups.
    """
    transcript_ids = list(transcript_ids)
    known = [t for t in transcript_ids if t.startswith(prefix)]
    others = [t for t in transcript_ids if not t.startswith(prefix)]
    return known + others


class IsoformBuilder:
    """Turns a transcript table into ordered Isoform objects."""

    def __init__(self, reference_prefix: str = "ENS"):
        self.reference_prefix = reference_prefix

    def build(self, transcripts: Dict[str, TranscriptRecord]) -> Tuple[List[str], List[Isoform]]:
        """Return the transcript order and the isoforms in that order."""
        order = []
        isoforms = []
        for transcript_id in prioritise_known_transcripts(transcripts, self.reference_prefix):
            record = transcripts[transcript_id]
            if not record.exons:
                logging.debug(f"Skipping transcript {transcript_id} without exons")
                continue
            order.append(transcript_id)
            isoforms.append(Isoform.from_record(record))
        return order, isoforms


class MetageneMerger:
    """
    Merges the exons of a set of isoforms into the metagene.

    The metagene is the sorted list of disjoint intervals covering every
    exon. Two ranges are merged when ``start1 < end2 and start2 < end1``;
    ranges sharing only a boundary coordinate stay separate.
    """

    def merge(self, isoforms: Iterable[Isoform]) -> List[GenomicRange]:
        return self.merge_ranges(
            exon for isoform in isoforms for exon in isoform.exon_ranges)

    def merge_ranges(self, ranges: Iterable[Sequence[int]]) -> List[GenomicRange]:
        exons: List[GenomicRange] = []
        for exon in ranges:
            exon = (exon[0], exon[1])
            if not self._contains(exon, exons):
                exons.append(exon)

        working: List[GenomicRange] = []
        for exon in exons:
            # a grown union may now reach intervals already passed, so rescan
            i = 0
            while i < len(working):
                union = self._union(working[i], exon)
                if union is not None:
                    del working[i]
                    exon = union
                    i = 0
                    continue
                i += 1
            working.append(exon)

        merged: List[GenomicRange] = []
        for interval in working:
            if not self._contains(interval, merged):
                merged.append(interval)
        merged.sort(key=lambda interval: interval[0])
        return merged

    @staticmethod
    def _union(range1: GenomicRange, range2: GenomicRange) -> Optional[GenomicRange]:
        """Union of two overlapping ranges, None if they do not overlap."""
        start1, end1 = range1
        start2, end2 = range2
        if start1 < end2 and start2 < end1:
            return (min(start1, start2), max(end1, end2))
        return None

    @staticmethod
    def _contains(entry: GenomicRange, ranges: List[GenomicRange]) -> bool:
        for value in ranges:
            if value == entry:
                return True
        return False


def merge_ranges(isoforms: Iterable[Isoform]) -> List[GenomicRange]:
    """Build the metagene of ``isoforms``."""
    return MetageneMerger().merge(isoforms)
