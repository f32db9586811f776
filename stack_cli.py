#!/usr/bin/env python3

"""
Command-line interface for the isoform stack parser.

Parses one stack file and prints the result (dataset, gene list or error)
as JSON.
"""

import argparse
import json
import sys
import logging

from isoform_stack.core.config import load_config
from isoform_stack.core.ensembl import EnsemblClient
from isoform_stack.core.exceptions import StackParseError, StrandLookupError
from isoform_stack.core.pipeline import parse_stack_file
from isoform_stack.core.reference import ReferenceIsoformSet, fetch_reference_transcripts
from isoform_stack.utils.progress import LoggingProgressReporter


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="isoform-stack",
        description="Extract isoforms and the metagene of one gene from an isoform stack file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single-gene file, gene discovered automatically
  isoform-stack brca1.gtf

  # Pick one gene of a multi-gene file and write the result to a file
  isoform-stack stack.bed12 --gene BRCA1 --output brca1.json

  # Minimal BED on GRCh37, strand looked up for mouse genes
  isoform-stack stack.bed4 --species mouse --grch37
        """
    )

    parser.add_argument(
        'stack_file',
        help='Isoform stack file (.gff3, .gtf, .gff, .gff2, .bed, .bed4 to .bed9, .bed12)'
    )
    parser.add_argument(
        '--gene',
        help='Gene to extract (required when the file holds several genes)'
    )
    parser.add_argument(
        '--species',
        help='Species used for strand and reference lookups (default: human)'
    )
    parser.add_argument(
        '--grch37',
        action='store_true',
        help='Use the GRCh37 lookup server'
    )
    parser.add_argument(
        '--config',
        help='Configuration file (JSON or YAML)'
    )
    parser.add_argument(
        '--chunk-size',
        type=int,
        help='Read window size in bytes (default: 5242880)'
    )
    parser.add_argument(
        '--no-strand-lookup',
        action='store_true',
        help='Never query the lookup service; minimal BED strands become unknown'
    )
    parser.add_argument(
        '--reference',
        action='store_true',
        help='Also fetch the reference isoforms of the gene that are not in the stack'
    )
    parser.add_argument(
        '--output',
        help='Write the JSON result to this file instead of standard output'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--memory-limit',
        type=int,
        help='Memory limit in MB (default: 4096)'
    )

    return parser


def add_reference_isoforms(output: dict, result, config) -> None:
    """
    Attach the reference isoforms of the parsed gene to ``output``.

    A failed lookup is recorded under ``reference_error``; the parse result
    itself is kept.
    """
    dataset = result.dataset
    client = EnsemblClient.from_config(config)
    try:
        transcripts = fetch_reference_transcripts(client, dataset.gene, config.reference_prefix)
    except StrandLookupError as e:
        logging.warning(f"Reference isoforms unavailable: {e}")
        output['reference_error'] = str(e)
        return

    reference = ReferenceIsoformSet(
        transcripts, dataset.transcript_order, dataset.isoforms, config.reference_prefix)
    output['reference'] = reference.to_dict()


def main():
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args()

    # Set up logging
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        # Load configuration
        config = load_config(config_path=args.config, use_env=True)

        # Override config with command line arguments
        if args.species is not None:
            config.species = args.species
        if args.grch37:
            config.use_grch37 = True
        if args.chunk_size is not None:
            config.chunk_size = args.chunk_size
        if args.no_strand_lookup:
            config.enable_strand_lookup = False
        if args.memory_limit is not None:
            config.memory_limit_mb = args.memory_limit

        # Re-validate after CLI overrides.
        config.validate()

        logger.info(f"Stack file: {args.stack_file}")
        if args.gene:
            logger.info(f"Requested gene: {args.gene}")

        result = parse_stack_file(args.stack_file, gene=args.gene, config=config,
                                  progress=LoggingProgressReporter())
        output = result.to_dict()

        if result.is_ambiguous:
            logger.warning(f"{len(result.genes)} genes found; rerun with --gene to pick one")
        elif not result.valid:
            logger.error(f"Parsing failed: {result.error}")
        elif args.reference:
            add_reference_isoforms(output, result, config)

        text = json.dumps(output, indent=2)
        if args.output:
            with open(args.output, 'w') as f:
                f.write(text + "\n")
            logger.info(f"Result written to {args.output}")
        else:
            print(text)

        return 0 if result.valid else 1

    except OSError as e:
        logger.error(f"File error: {e}")
        return 1
    except StackParseError as e:
        logger.error(f"Parser error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        logger.debug("Full traceback:", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
