"""
K-mer Random Forest Pipeline
============================
Runs the full analysis for two taxa:
1. Fetch (or load cached) sequences for each taxon
2. Quality control per taxon, then balance taxa by downsampling
3. Extract k-mer frequency features
4. Split into training and validation sets
5. Train a random forest on all features and rank them
6. Retrain on growing top-ranked subsets and tabulate error rates
"""

import logging
import os
from dataclasses import dataclass

import numpy as np
import pandas as pd

from kmertax import config
from kmertax.exceptions import ConfigurationError
from kmertax.fasta_io import read_fasta, write_fasta
from kmertax.features import KMerFeatureExtractor
from kmertax.quality_control import QualityControlFilter, balance_classes
from kmertax.random_forest import RandomForestTaxonomyClassifier
from kmertax.refinement import refine_features
from kmertax import reports
from kmertax.splitting import split_dataset

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    qc_reports: list
    train_set: object
    validation_set: object
    classifier: RandomForestTaxonomyClassifier
    evaluation: dict
    ranking: pd.DataFrame
    refinement: pd.DataFrame


class KmerTaxonomyPipeline:
    """
    End-to-end k-mer feature selection and random forest refinement.
    """

    def __init__(
        self,
        source,
        taxa=config.TAXON_LABELS,
        gene=config.GENE_NAME,
        length_range=config.SEQUENCE_LENGTH_RANGE,
        prop_ns_cutoff=config.PROP_NS_CUTOFF,
        k=config.K_MER_SIZE,
        n_trees=config.N_TREES,
        validation_fraction=config.VALIDATION_FRACTION,
        max_feature_count=config.MAX_FEATURE_COUNT,
        feature_offset=config.FEATURE_OFFSET,
        random_seed=config.RANDOM_SEED,
        n_jobs=config.N_JOBS,
        data_dir=None,
        results_dir=None,
        plots_dir=None,
        model_dir=None,
    ):
        """
        Initialize the pipeline.

        Args:
            source: Object with fetch(taxon, gene, length_range) -> list of SequenceRecord
            taxa (tuple): The two taxon labels
            gene (str): Gene name
            length_range (tuple): Expected (min, max) sequence length
            prop_ns_cutoff (float): Ambiguous-base proportion cutoff
            k (int): K-mer size
            n_trees (int): Trees per forest
            validation_fraction (float): Fraction held out for validation
            max_feature_count (int): Refinement counts 1..max_feature_count
            feature_offset (int): Extra features per refinement step
            random_seed (int): Seed for every random step
            n_jobs (int): Parallel refinement steps
            data_dir (str): Cache directory for FASTA files (None disables caching)
            results_dir (str): Directory for CSV reports (None disables)
            plots_dir (str): Directory for plots (None disables)
            model_dir (str): Directory for the pickled model (None disables)
        """
        if len(taxa) != 2:
            raise ConfigurationError(f"Exactly two taxa are required, got {list(taxa)}")
        self.source = source
        self.taxa = tuple(taxa)
        self.gene = gene
        self.length_range = tuple(length_range)
        self.n_trees = n_trees
        self.validation_fraction = validation_fraction
        self.max_feature_count = max_feature_count
        self.feature_offset = feature_offset
        self.random_seed = random_seed
        self.n_jobs = n_jobs
        self.data_dir = data_dir
        self.results_dir = results_dir
        self.plots_dir = plots_dir
        self.model_dir = model_dir

        self.qc_filter = QualityControlFilter(prop_ns_cutoff=prop_ns_cutoff)
        self.feature_extractor = KMerFeatureExtractor(k=k)

        n_kmers = self.feature_extractor.n_features
        if feature_offset < 0:
            raise ConfigurationError(f"feature_offset must be non-negative, got {feature_offset}")
        if max_feature_count < 1 or max_feature_count + feature_offset > n_kmers:
            raise ConfigurationError(
                f"max_feature_count {max_feature_count} with offset {feature_offset} "
                f"needs between 1 and {n_kmers} features ({k}-mers)"
            )
        if not 0 < validation_fraction < 1:
            raise ConfigurationError(
                f"validation_fraction must be between 0 and 1, got {validation_fraction}"
            )

    def _cache_path(self, taxon, kind):
        return os.path.join(self.data_dir, f"{taxon}_{self.gene}_{kind}.fasta")

    def acquire(self, taxon):
        """
        Fetch records for a taxon, reusing the raw FASTA cache when present.
        """
        if self.data_dir:
            cached = self._cache_path(taxon, "raw")
            if os.path.exists(cached):
                return read_fasta(cached, taxon)

        records = self.source.fetch(taxon, self.gene, self.length_range)
        if self.data_dir:
            write_fasta(records, self._cache_path(taxon, "raw"))
        return records

    def run(self):
        """
        Run the complete pipeline.

        Returns:
            PipelineResult: Every intermediate product and report table
        """
        logger.info("=" * 60)
        logger.info(f"K-mer Random Forest Pipeline - {' vs '.join(self.taxa)} ({self.gene})")
        logger.info("=" * 60)
        rng = np.random.default_rng(self.random_seed)

        # Steps 1-2: acquisition and quality control, one taxon at a time
        cleaned, qc_reports = {}, []
        for taxon in self.taxa:
            records = self.acquire(taxon)
            result = self.qc_filter.filter(records, taxon=taxon)
            cleaned[taxon] = result.sequences
            qc_reports.append(result.report)

        cleaned = balance_classes(cleaned, rng)
        if self.data_dir:
            for taxon, seqs in cleaned.items():
                write_fasta(seqs, self._cache_path(taxon, "clean"))

        # Step 3: features
        sequences = [s for taxon in self.taxa for s in cleaned[taxon]]
        feature_set = self.feature_extractor.extract_features(sequences)

        # Step 4: split
        train_set, validation_set = split_dataset(
            feature_set, rng, validation_fraction=self.validation_fraction
        )

        # Step 5: full-feature model and ranking
        classifier = RandomForestTaxonomyClassifier(
            n_trees=self.n_trees, random_state=self.random_seed
        ).train(train_set)
        evaluation = classifier.evaluate(validation_set)
        ranking = classifier.feature_importance(train_set)

        # Step 6: refinement
        refinement = refine_features(
            ranking,
            train_set,
            validation_set,
            n_trees=self.n_trees,
            max_feature_count=self.max_feature_count,
            feature_offset=self.feature_offset,
            random_state=self.random_seed,
            n_jobs=self.n_jobs,
        )

        result = PipelineResult(
            qc_reports=qc_reports,
            train_set=train_set,
            validation_set=validation_set,
            classifier=classifier,
            evaluation=evaluation,
            ranking=ranking,
            refinement=refinement,
        )
        self.save_outputs(result)

        logger.info("=" * 60)
        logger.info("Pipeline Complete!")
        logger.info("=" * 60)
        return result

    def save_outputs(self, result):
        """Write CSV reports, plots and the model to the configured directories."""
        if self.results_dir:
            reports.write_qc_summary_csv(
                result.qc_reports, os.path.join(self.results_dir, "qc_summary.csv")
            )
            reports.write_importance_csv(
                result.ranking, os.path.join(self.results_dir, "feature_importance.csv")
            )
            reports.write_refinement_csv(
                result.refinement, os.path.join(self.results_dir, "refinement_errors.csv")
            )
        if self.plots_dir:
            reports.plot_feature_importance(
                result.ranking, os.path.join(self.plots_dir, "feature_importance.png")
            )
            reports.plot_refinement_errors(
                result.refinement, os.path.join(self.plots_dir, "refinement_errors.png")
            )
        if self.model_dir:
            result.classifier.save_model(self.model_dir)
