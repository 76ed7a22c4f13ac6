import unittest

import numpy as np
import pandas as pd

from kmertax.exceptions import ConfigurationError
from kmertax.features import FeatureSet
from kmertax.splitting import split_dataset, validation_size_per_class


def labeled_set(counts):
    labels, ids = [], []
    for label, n in counts.items():
        labels += [label] * n
        ids += [f"{label}{i}" for i in range(n)]
    index = pd.Index(ids, name="identifier")
    features = pd.DataFrame(
        np.random.default_rng(0).random((len(ids), 4)), index=index, columns=list("ACGT")
    )
    return FeatureSet(features, pd.Series(labels, index=index, name="taxon"))


class TestSplitDataset(unittest.TestCase):
    def test_balanced_example(self):
        feature_set = labeled_set({"Alpha": 200, "Beta": 200})
        train, validation = split_dataset(feature_set, np.random.default_rng(42))

        self.assertEqual(validation.labels.value_counts().to_dict(), {"Alpha": 40, "Beta": 40})
        self.assertEqual(len(train), 320)
        self.assertFalse(set(train.identifiers) & set(validation.identifiers))
        self.assertEqual(
            set(train.identifiers) | set(validation.identifiers), set(feature_set.identifiers)
        )

    def test_imbalanced_input(self):
        feature_set = labeled_set({"Alpha": 30, "Beta": 10})
        train, validation = split_dataset(feature_set, np.random.default_rng(1))
        self.assertEqual(validation.labels.value_counts().to_dict(), {"Alpha": 4, "Beta": 4})
        self.assertEqual(len(train), 32)

    def test_deterministic(self):
        feature_set = labeled_set({"Alpha": 50, "Beta": 50})
        _, first = split_dataset(feature_set, np.random.default_rng(7))
        _, second = split_dataset(feature_set, np.random.default_rng(7))
        self.assertEqual(list(first.identifiers), list(second.identifiers))

    def test_class_too_small(self):
        feature_set = labeled_set({"Alpha": 95, "Beta": 5})
        with self.assertRaises(ConfigurationError):
            split_dataset(feature_set, np.random.default_rng(0), validation_fraction=0.2)

    def test_validation_size(self):
        self.assertEqual(validation_size_per_class(400, 2), 40)
        self.assertEqual(validation_size_per_class(45, 2, 0.2), 4)


if __name__ == "__main__":
    unittest.main()
