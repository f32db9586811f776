#!/usr/bin/env python3

"""
Test suite for the isoform stack parser.

Unit tests covering:
- Core data structures and configuration
- Chunked reading and format detection
- Line parsers for every supported format
- Two-phase extraction, strand resolution and metagene merging
- Error handling and edge cases
"""
