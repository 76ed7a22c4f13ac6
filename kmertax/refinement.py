"""
Feature Refinement
==================
Retrains a fresh forest on growing prefixes of the feature ranking and
tabulates per-class OOB error and validation error for each size.

No stopping rule is applied: the table is the result. The smallest
sufficient feature count is chosen by inspecting the table/plot, or
explicitly with select_feature_count().
"""

import logging

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from kmertax import config
from kmertax.exceptions import ConfigurationError
from kmertax.random_forest import RandomForestTaxonomyClassifier

logger = logging.getLogger(__name__)


def feature_subset(ranked_features, n_features, feature_offset=config.FEATURE_OFFSET):
    """
    Top-ranked features used for a nominal feature count.

    Args:
        ranked_features (list): Feature names by descending importance
        n_features (int): Nominal feature count
        feature_offset (int): Extra features beyond the nominal count

    Returns:
        list: The first ``n_features + feature_offset`` names
    """
    return list(ranked_features[: n_features + feature_offset])


def error_columns(classes):
    return ["n_features", "features_used", "added_feature"] + [
        f"error_{c}" for c in classes
    ] + ["oob_error", "validation_error"]


def _refinement_step(n_features, ranked_features, train_set, validation_set,
                     n_trees, random_state, feature_offset):
    used = feature_subset(ranked_features, n_features, feature_offset)
    classifier = RandomForestTaxonomyClassifier(n_trees=n_trees, random_state=random_state)
    classifier.train(train_set.select(used))
    validation = classifier.evaluate(validation_set.select(used))

    row = {
        "n_features": n_features,
        "features_used": len(used),
        "added_feature": used[-1],
        "oob_error": classifier.oob_error,
        "validation_error": validation["error_rate"],
    }
    for label, error in classifier.class_errors.items():
        row[f"error_{label}"] = error
    return row


def refine_features(
    ranking,
    train_set,
    validation_set,
    n_trees=config.N_TREES,
    max_feature_count=config.MAX_FEATURE_COUNT,
    feature_offset=config.FEATURE_OFFSET,
    random_state=config.RANDOM_SEED,
    n_jobs=config.N_JOBS,
):
    """
    Error rates for feature counts 1..max_feature_count.

    Every step trains an independent forest seeded with the same
    ``random_state``, so results do not depend on execution order or n_jobs.

    Args:
        ranking (pd.DataFrame or list): Output of feature_importance(), or
            feature names by descending importance
        train_set (FeatureSet): Training set with all features
        validation_set (FeatureSet): Validation set with all features
        n_trees (int): Trees per forest
        max_feature_count (int): Largest nominal feature count
        feature_offset (int): Extra features used beyond the nominal count
        random_state (int): Seed for every forest
        n_jobs (int): Parallel refinement steps (joblib)

    Returns:
        pd.DataFrame: One row per nominal count with columns n_features,
            features_used, added_feature, error_<class>..., oob_error,
            validation_error
    """
    if isinstance(ranking, pd.DataFrame):
        ranked_features = list(ranking["feature"])
    else:
        ranked_features = list(ranking)

    if max_feature_count < 1:
        raise ConfigurationError("max_feature_count must be at least 1")
    if feature_offset < 0:
        raise ConfigurationError(f"feature_offset must be non-negative, got {feature_offset}")
    if max_feature_count + feature_offset > len(ranked_features):
        raise ConfigurationError(
            f"Need {max_feature_count + feature_offset} ranked features, "
            f"only {len(ranked_features)} available"
        )

    logger.info(
        f"Refining features: counts 1..{max_feature_count} "
        f"(offset {feature_offset}), {n_trees} trees each"
    )
    counts = range(1, max_feature_count + 1)
    rows = Parallel(n_jobs=n_jobs)(
        delayed(_refinement_step)(
            i, ranked_features, train_set, validation_set,
            n_trees, random_state, feature_offset,
        )
        for i in tqdm(counts, desc="Refinement")
    )

    table = pd.DataFrame(rows, columns=error_columns(train_set.classes))
    best = table.loc[table["validation_error"].idxmin()]
    logger.info(
        f"Lowest validation error {best['validation_error']:.4f} "
        f"at {int(best['n_features'])} features ({int(best['features_used'])} used)"
    )
    return table


def select_feature_count(table, tolerance=0.0):
    """
    Optional selection policy: smallest nominal count whose validation error
    is within ``tolerance`` of the minimum.

    Args:
        table (pd.DataFrame): Output of refine_features()
        tolerance (float): Allowed excess over the minimum validation error

    Returns:
        int: Selected nominal feature count
    """
    if tolerance < 0:
        raise ConfigurationError("tolerance must be non-negative")
    threshold = table["validation_error"].min() + tolerance
    eligible = table[table["validation_error"] <= threshold + np.finfo(float).eps]
    return int(eligible["n_features"].min())
