import os
import tempfile
import unittest

import numpy as np
import pandas as pd

from kmertax.exceptions import FeatureSchemaError
from kmertax.features import FeatureSet
from kmertax.random_forest import RandomForestTaxonomyClassifier, labeled_confusion_matrix
from kmertax.splitting import split_dataset

from synthetic import two_taxa_feature_set


class TestRandomForestTaxonomyClassifier(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        feature_set = two_taxa_feature_set(n_per_taxon=40, k=3)
        cls.train, cls.validation = split_dataset(feature_set, np.random.default_rng(0))
        cls.classifier = RandomForestTaxonomyClassifier(n_trees=25, random_state=42)
        cls.classifier.train(cls.train)
        cls.ranking = cls.classifier.feature_importance(cls.train)

    def test_separable_classes(self):
        metrics = self.classifier.evaluate(self.validation)
        self.assertGreater(metrics["accuracy"], 0.8)
        self.assertAlmostEqual(metrics["error_rate"], 1 - metrics["accuracy"])
        self.assertEqual(list(metrics["confusion_matrix"].index), ["Alpha", "Beta"])

    def test_oob_diagnostics(self):
        self.assertEqual(list(self.classifier.class_errors.index), ["Alpha", "Beta"])
        self.assertGreaterEqual(self.classifier.oob_error, 0.0)
        self.assertLess(self.classifier.oob_error, 0.5)
        self.assertEqual(len(self.classifier.oob_coverage), len(self.train))

    def test_ranking(self):
        self.assertEqual(len(self.ranking), 64)
        self.assertEqual(set(self.ranking["feature"]), set(self.train.feature_names))
        self.assertGreater(self.ranking["mean_decrease_accuracy"].iloc[0], 0.0)
        self.assertTrue(self.ranking["mean_decrease_accuracy"].is_monotonic_decreasing)
        self.assertAlmostEqual(self.ranking["mean_decrease_gini"].sum(), 1.0)

    def test_deterministic(self):
        other = RandomForestTaxonomyClassifier(n_trees=25, random_state=42).train(self.train)
        for a, b in zip(self.classifier.model.estimators_, other.model.estimators_):
            np.testing.assert_array_equal(a.tree_.feature, b.tree_.feature)
            np.testing.assert_array_equal(a.tree_.threshold, b.tree_.threshold)
        self.assertEqual(self.classifier.oob_error, other.oob_error)
        pd.testing.assert_frame_equal(self.classifier.oob_confusion, other.oob_confusion)
        pd.testing.assert_frame_equal(self.ranking, other.feature_importance(self.train))

    def test_reordered_columns_rejected(self):
        reordered = self.validation.features[self.validation.feature_names[::-1]]
        with self.assertRaises(FeatureSchemaError):
            self.classifier.predict(reordered)

    def test_missing_columns_rejected(self):
        with self.assertRaises(FeatureSchemaError):
            self.classifier.predict(self.validation.select(self.validation.feature_names[:10]))

    def test_untrained_predict(self):
        with self.assertRaises(RuntimeError):
            RandomForestTaxonomyClassifier(n_trees=5).predict(self.validation)

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = self.classifier.save_model(tmp)
            self.assertTrue(os.path.exists(path))
            loaded = RandomForestTaxonomyClassifier.load_model(path)
        np.testing.assert_array_equal(
            loaded.predict(self.validation), self.classifier.predict(self.validation)
        )
        self.assertEqual(loaded.feature_names, self.classifier.feature_names)


class TestUninformativeFeatures(unittest.TestCase):
    def test_constant_features_predict_single_class(self):
        index = pd.Index([f"S{i}" for i in range(10)], name="identifier")
        features = pd.DataFrame(np.zeros((10, 3), dtype=np.float32), index=index, columns=["AA", "AC", "AG"])
        labels = pd.Series(["Alpha"] * 6 + ["Beta"] * 4, index=index, name="taxon")
        train_set = FeatureSet(features, labels)

        classifier = RandomForestTaxonomyClassifier(n_trees=20, random_state=0).train(train_set)
        predictions = classifier.predict(train_set)
        self.assertEqual(len(set(predictions)), 1)

        ranking = classifier.feature_importance(train_set)
        self.assertTrue((ranking["mean_decrease_accuracy"] == 0).all())


class TestLabeledConfusionMatrix(unittest.TestCase):
    def test_absent_class_counts_zero(self):
        table = labeled_confusion_matrix(["Alpha", "Alpha"], ["Alpha", "Alpha"], ["Alpha", "Beta"])
        self.assertEqual(table.loc["Beta", "Alpha"], 0)
        self.assertEqual(table.loc["Beta", "Beta"], 0)
        self.assertEqual(table.loc["Alpha", "class_error"], 0.0)
        self.assertTrue(np.isnan(table.loc["Beta", "class_error"]))

    def test_class_error(self):
        table = labeled_confusion_matrix(
            ["Alpha", "Alpha", "Beta", "Beta"], ["Alpha", "Beta", "Beta", "Beta"], ["Alpha", "Beta"]
        )
        self.assertAlmostEqual(table.loc["Alpha", "class_error"], 0.5)
        self.assertAlmostEqual(table.loc["Beta", "class_error"], 0.0)


if __name__ == "__main__":
    unittest.main()
