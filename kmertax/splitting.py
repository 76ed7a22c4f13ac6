"""
Training/validation split with equal validation counts per class.
"""

import logging
import math

import numpy as np

from kmertax import config
from kmertax.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def validation_size_per_class(n_total, n_classes, validation_fraction=config.VALIDATION_FRACTION):
    """floor(validation_fraction * n_total / n_classes)"""
    return math.floor(validation_fraction * n_total / n_classes)


def split_dataset(feature_set, rng, validation_fraction=config.VALIDATION_FRACTION):
    """
    Split a feature set into training and validation subsets.

    The same number of vectors is drawn for validation from every class;
    training is the complement by identifier, so the two never overlap.

    Args:
        feature_set (FeatureSet): Full labeled feature set
        rng (np.random.Generator): Seeded generator
        validation_fraction (float): Fraction of the full set held out

    Returns:
        tuple: (train FeatureSet, validation FeatureSet)
    """
    classes = feature_set.classes
    per_class = validation_size_per_class(len(feature_set), len(classes), validation_fraction)

    counts = feature_set.labels.value_counts()
    short = counts[counts < per_class]
    if len(short):
        raise ConfigurationError(
            f"Cannot draw {per_class} validation vectors per class; too few in {short.to_dict()}"
        )

    validation_ids = []
    for label in classes:
        ids = feature_set.labels.index[(feature_set.labels == label).to_numpy()]
        chosen = rng.choice(len(ids), size=per_class, replace=False)
        validation_ids.extend(ids[np.sort(chosen)])

    held_out = set(validation_ids)
    train_ids = [i for i in feature_set.identifiers if i not in held_out]

    logger.info(
        f"Split: {len(train_ids)} training, {len(validation_ids)} validation "
        f"({per_class} per class)"
    )
    return feature_set.subset(train_ids), feature_set.subset(validation_ids)
