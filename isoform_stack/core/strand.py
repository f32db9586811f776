#!/usr/bin/env python3

"""
Strand resolution for formats that cannot encode strand (minimal BED).

The strand of a gene is asked of the lookup service once per parse and
cached. Service failures never fail a parse: they resolve to ``UNKNOWN``,
which callers treat as ``+`` while flagging the result.
"""

import logging
from typing import Dict, Optional

from .data_structures import strip_version
from .ensembl import EnsemblClient
from .exceptions import StrandLookupError

UNKNOWN_STRAND = "Unknown"

_STRAND_CODES = {1: '+', -1: '-'}


class StrandResolver:
    """Per-parse, caching strand lookup."""

    def __init__(self, client: Optional[EnsemblClient] = None,
                 reference_prefix: str = "ENS", enabled: bool = True):
        self.client = client
        self.reference_prefix = reference_prefix
        self.enabled = enabled and client is not None
        self._cache: Dict[str, str] = {}

    def resolve(self, gene_symbol: str) -> str:
        """Return ``+``, ``-`` or ``UNKNOWN_STRAND`` for ``gene_symbol``."""
        gene = strip_version(gene_symbol)
        if gene not in self._cache:
            self._cache[gene] = self._lookup(gene)
        return self._cache[gene]

    def _lookup(self, gene: str) -> str:
        if not self.enabled:
            logging.info(f"Strand lookup disabled; strand of gene '{gene}' is unknown")
            return UNKNOWN_STRAND

        logging.info(f"Determining strandedness of gene '{gene}'")
        try:
            response = self.client.lookup_gene(gene, reference_prefix=self.reference_prefix)
        except StrandLookupError as e:
            logging.warning(f"Strand lookup failed, strand of gene '{gene}' is unknown: {e}")
            return UNKNOWN_STRAND

        strand = _STRAND_CODES.get(response.get('strand'), UNKNOWN_STRAND)
        if strand == UNKNOWN_STRAND:
            logging.warning(f"Lookup service gave no usable strand for gene '{gene}'")
        else:
            logging.info(f"Gene '{gene}' is on the {strand} strand")
        return strand
