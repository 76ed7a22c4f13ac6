"""
Command-line entry point: ``kmertax``.
"""

import argparse
import logging
import os
import sys

from kmertax import config
from kmertax.acquisition import EntrezSequenceSource, InMemorySequenceSource
from kmertax.exceptions import KmerTaxError
from kmertax.fasta_io import read_fasta
from kmertax.pipeline import KmerTaxonomyPipeline
from kmertax.refinement import select_feature_count

logger = logging.getLogger("kmertax")


def setup_logging(results_dir, verbose=False):
    """Log to stdout and to kmertax.log in the results directory."""
    os.makedirs(results_dir, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(os.path.join(results_dir, "kmertax.log")),
            logging.StreamHandler(sys.stdout),
        ],
    )


def build_parser():
    parser = argparse.ArgumentParser(
        prog="kmertax",
        description="K-mer random forest classifier with feature refinement for two taxa.",
    )
    parser.add_argument("--taxa", nargs=2, default=list(config.TAXON_LABELS),
                        metavar=("TAXON_A", "TAXON_B"), help="The two taxa to classify")
    parser.add_argument("--gene", default=config.GENE_NAME, help="Gene name to query")
    parser.add_argument("--length-range", nargs=2, type=int,
                        default=list(config.SEQUENCE_LENGTH_RANGE), metavar=("MIN", "MAX"),
                        help="Expected sequence length range")
    parser.add_argument("--fasta", nargs=2, action="append", metavar=("TAXON", "PATH"),
                        help="Read a taxon's sequences from a FASTA file instead of NCBI")
    parser.add_argument("--email", default=config.NCBI_EMAIL, help="NCBI Entrez email")
    parser.add_argument("--api-key", default=config.NCBI_API_KEY, help="NCBI API key")
    parser.add_argument("--max-records", type=int, default=config.MAX_RECORDS_PER_TAXON)
    parser.add_argument("--prop-ns-cutoff", type=float, default=config.PROP_NS_CUTOFF,
                        help="Maximum proportion of ambiguous bases")
    parser.add_argument("-k", "--kmer-size", type=int, default=config.K_MER_SIZE)
    parser.add_argument("--n-trees", type=int, default=config.N_TREES)
    parser.add_argument("--validation-fraction", type=float, default=config.VALIDATION_FRACTION)
    parser.add_argument("--max-feature-count", type=int, default=config.MAX_FEATURE_COUNT)
    parser.add_argument("--feature-offset", type=int, default=config.FEATURE_OFFSET,
                        help="Extra features per refinement step (1 reproduces i+1 runs)")
    parser.add_argument("--seed", type=int, default=config.RANDOM_SEED)
    parser.add_argument("--n-jobs", type=int, default=config.N_JOBS)
    parser.add_argument("--select-tolerance", type=float, default=None,
                        help="Report the smallest feature count within this tolerance "
                             "of the minimum validation error")
    parser.add_argument("--data-dir", default=config.DATA_OUTPUT_DIR)
    parser.add_argument("--results-dir", default=config.RESULTS_OUTPUT_DIR)
    parser.add_argument("--plots-dir", default=config.PLOTS_OUTPUT_DIR)
    parser.add_argument("--model-dir", default=config.MODEL_OUTPUT_DIR)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def build_source(args):
    if args.fasta:
        paths = dict(args.fasta)
        missing = set(args.taxa) - set(paths)
        if missing:
            raise SystemExit(f"--fasta given but no file for: {', '.join(sorted(missing))}")
        return InMemorySequenceSource(
            {taxon: read_fasta(paths[taxon], taxon) for taxon in args.taxa}
        )

    if args.email == "your.email@example.com":
        raise SystemExit(
            "NCBI email not configured. Pass --email (required by NCBI's usage policy) "
            "or use --fasta to read local files."
        )
    return EntrezSequenceSource(
        email=args.email, api_key=args.api_key, max_records=args.max_records
    )


def main(argv=None):
    """Main execution function."""
    args = build_parser().parse_args(argv)
    setup_logging(args.results_dir, args.verbose)

    source = build_source(args)
    try:
        pipeline = KmerTaxonomyPipeline(
            source=source,
            taxa=args.taxa,
            gene=args.gene,
            length_range=args.length_range,
            prop_ns_cutoff=args.prop_ns_cutoff,
            k=args.kmer_size,
            n_trees=args.n_trees,
            validation_fraction=args.validation_fraction,
            max_feature_count=args.max_feature_count,
            feature_offset=args.feature_offset,
            random_seed=args.seed,
            n_jobs=args.n_jobs,
            data_dir=args.data_dir,
            results_dir=args.results_dir,
            plots_dir=args.plots_dir,
            model_dir=args.model_dir,
        )
        result = pipeline.run()

        if args.select_tolerance is not None:
            chosen = select_feature_count(result.refinement, args.select_tolerance)
            logger.info(
                f"Selected {chosen} features (tolerance {args.select_tolerance}); "
                "inspect refinement_errors.csv to confirm"
            )
    except KmerTaxError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
