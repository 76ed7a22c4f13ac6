"""
K-mer Feature Extraction
========================
Turns cleaned nucleotide sequences into normalized k-mer frequency vectors.

Every vector has one component per possible k-mer (len(alphabet) ** k),
in lexicographic order, so columns are comparable across sequences of any
length. Windows that contain an ambiguous base are skipped entirely.
"""

import itertools
import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from kmertax import config
from kmertax.exceptions import (
    ConfigurationError,
    DuplicateIdentifierError,
    NoValidWindowsError,
)

logger = logging.getLogger(__name__)


@dataclass
class FeatureSet:
    """
    Labeled feature matrix.

    Attributes:
        features (pd.DataFrame): One row per sequence (indexed by identifier),
            one column per named feature
        labels (pd.Series): Taxon label per identifier, aligned with ``features``
    """

    features: pd.DataFrame
    labels: pd.Series

    def __post_init__(self):
        if not self.features.index.is_unique:
            dupes = self.features.index[self.features.index.duplicated()].unique().tolist()
            raise DuplicateIdentifierError(f"Duplicate identifiers: {dupes[:10]}")
        if not self.features.index.equals(self.labels.index):
            raise ValueError("features and labels must share the same identifier index")

    def __len__(self):
        return len(self.features)

    @property
    def identifiers(self):
        return self.features.index

    @property
    def feature_names(self):
        return list(self.features.columns)

    @property
    def classes(self):
        return sorted(self.labels.unique())

    def subset(self, identifiers):
        """Rows for the given identifiers, in that order."""
        identifiers = pd.Index(identifiers)
        return FeatureSet(self.features.loc[identifiers], self.labels.loc[identifiers])

    def select(self, feature_names):
        """Columns for the given feature names, in that order."""
        return FeatureSet(self.features.loc[:, list(feature_names)], self.labels)


class KMerFeatureExtractor:
    """
    Extract overlapping k-mer frequencies from nucleotide sequences.
    """

    def __init__(self, k=config.K_MER_SIZE, alphabet=config.NUCLEOTIDES):
        """
        Initialize K-mer feature extractor.

        Args:
            k (int): K-mer size
            alphabet (str): Unambiguous symbols; anything else breaks a window
        """
        if k < 1:
            raise ConfigurationError(f"k must be positive, got {k}")
        self.k = k
        self.alphabet = alphabet
        self.n_features = len(alphabet) ** k

        self._lookup = np.full(256, -1, dtype=np.int64)
        for code, symbol in enumerate(alphabet):
            self._lookup[ord(symbol.upper())] = code
            self._lookup[ord(symbol.lower())] = code
        self._powers = len(alphabet) ** np.arange(k - 1, -1, -1, dtype=np.int64)
        self._feature_names = None

    @property
    def feature_names(self):
        """All possible k-mers, in canonical (lexicographic) column order."""
        if self._feature_names is None:
            self._feature_names = [
                "".join(kmer) for kmer in itertools.product(self.alphabet, repeat=self.k)
            ]
        return self._feature_names

    def count_kmers(self, sequence):
        """
        Count k-mers with a sliding window of step 1.

        Args:
            sequence (str): Nucleotide sequence

        Returns:
            np.ndarray: Counts, length len(alphabet) ** k
        """
        codes = self._lookup[np.frombuffer(sequence.encode("ascii", "replace"), dtype=np.uint8)]
        if len(codes) < self.k:
            return np.zeros(self.n_features, dtype=np.int64)

        windows = np.lib.stride_tricks.sliding_window_view(codes, self.k)
        valid = windows[(windows >= 0).all(axis=1)]
        return np.bincount(valid @ self._powers, minlength=self.n_features)

    def frequency_vector(self, sequence):
        """
        Normalized k-mer frequencies of one sequence.

        Args:
            sequence (str): Nucleotide sequence

        Returns:
            np.ndarray: Frequencies summing to 1

        Raises:
            NoValidWindowsError: If no window is free of ambiguous symbols
        """
        counts = self.count_kmers(sequence)
        total = counts.sum()
        if total == 0:
            raise NoValidWindowsError(
                f"No valid {self.k}-mer windows in sequence of length {len(sequence)}"
            )
        return counts / total

    def extract_features(self, sequences):
        """
        Build the feature set for a batch of cleaned sequences.

        Args:
            sequences (list): CleanedSequence objects

        Returns:
            FeatureSet: Frequencies (float32) indexed by identifier, with taxon labels
        """
        logger.info(f"Extracting {self.k}-mer features from {len(sequences)} sequences...")

        matrix = np.empty((len(sequences), self.n_features), dtype=np.float32)
        for row, seq in enumerate(sequences):
            try:
                matrix[row] = self.frequency_vector(seq.sequence)
            except NoValidWindowsError as e:
                raise NoValidWindowsError(f"{seq.identifier}: {e}") from e

        index = pd.Index([s.identifier for s in sequences], name="identifier")
        features = pd.DataFrame(matrix, index=index, columns=self.feature_names)
        labels = pd.Series([s.taxon for s in sequences], index=index, name="taxon")

        logger.info(f"Feature matrix shape: {features.shape}")
        return FeatureSet(features, labels)
