#!/usr/bin/env python3

"""
Minimal client for the Ensembl REST lookup endpoints.

Used to resolve the strand of genes read from formats that cannot encode it,
and to fetch the reference transcripts of a gene.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from .config import StackParserConfig
from .exceptions import StrandLookupError


class EnsemblClient:
    """Thin wrapper around ``requests`` for ``/lookup`` queries."""

    def __init__(self, species: str = "human", use_grch37: bool = False,
                 server: str = "https://rest.ensembl.org",
                 grch37_server: str = "https://grch37.rest.ensembl.org",
                 timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.species = species
        self.use_grch37 = use_grch37
        self.server = (grch37_server if use_grch37 else server).rstrip('/')
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    @classmethod
    def from_config(cls, config: StackParserConfig,
                    session: Optional[requests.Session] = None) -> 'EnsemblClient':
        return cls(
            species=config.species,
            use_grch37=config.use_grch37,
            server=config.ensembl_server,
            grch37_server=config.ensembl_grch37_server,
            timeout=config.lookup_timeout,
            session=session,
        )

    def lookup_id(self, stable_id: str, expand: bool = False) -> Dict[str, Any]:
        """Look up an Ensembl stable ID (``ENSG...``, ``ENST...``)."""
        params = {'species': self.species}
        if expand:
            params['expand'] = 1
        return self._get_json(f"lookup/id/{quote(stable_id)}", params, stable_id)

    def lookup_symbol(self, symbol: str, expand: bool = False) -> Dict[str, Any]:
        """Look up a gene symbol (``BRCA1``) for the configured species."""
        params = {'expand': 1} if expand else {}
        return self._get_json(f"lookup/symbol/{quote(self.species)}/{quote(symbol)}",
                              params, symbol)

    def lookup_gene(self, gene: str, expand: bool = False,
                    reference_prefix: str = "ENS") -> Dict[str, Any]:
        """Look up ``gene`` by stable ID or by symbol, whichever it looks like."""
        if gene.upper().startswith(reference_prefix):
            return self.lookup_id(gene, expand=expand)
        return self.lookup_symbol(gene, expand=expand)

    def _get_json(self, path: str, params: Dict[str, Any], gene: str) -> Dict[str, Any]:
        url = f"{self.server}/{path}"
        logging.debug(f"Querying {url} with {params}")

        try:
            response = self.session.get(
                url, params=params, timeout=self.timeout,
                headers={'Content-Type': 'application/json'})
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise StrandLookupError(str(e), gene=gene, url=url)
        except ValueError as e:
            raise StrandLookupError(f"Invalid JSON response: {e}", gene=gene, url=url)

        if not isinstance(data, dict):
            raise StrandLookupError("Unexpected response payload", gene=gene, url=url)
        if data.get('error'):
            raise StrandLookupError(str(data['error']), gene=gene, url=url)

        return data
