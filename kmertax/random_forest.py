"""
Random Forest Classifier for K-mer Taxonomic Classification
===========================================================
Trains a bootstrap random forest on a named k-mer feature set and reports:
- Out-of-bag (OOB) error and per-class OOB error
- Mean decrease in accuracy per feature (OOB permutation importance)
- Validation accuracy, MCC and confusion matrix

Prediction checks the feature schema: columns must match the training
columns by name and order.
"""

import logging
import os
import pickle
from datetime import datetime

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import (
    accuracy_score,
    classification_report,
    confusion_matrix,
    matthews_corrcoef,
)

from kmertax import config
from kmertax.exceptions import FeatureSchemaError
from kmertax.features import FeatureSet

logger = logging.getLogger(__name__)


def labeled_confusion_matrix(y_true, y_pred, labels):
    """
    Confusion matrix with a per-class error column.

    Classes missing from either vector get zero counts; the error of a class
    with no true rows is NaN.

    Args:
        y_true (array-like): True labels
        y_pred (array-like): Predicted labels
        labels (list): Class order for rows and columns

    Returns:
        pd.DataFrame: Rows are true classes, columns predicted classes + "class_error"
    """
    labels = list(labels)
    cm = confusion_matrix(y_true, y_pred, labels=labels)
    table = pd.DataFrame(cm, index=pd.Index(labels, name="true"), columns=labels)
    support = cm.sum(axis=1)
    correct = np.diag(cm)
    with np.errstate(divide="ignore", invalid="ignore"):
        table["class_error"] = np.where(support > 0, 1.0 - correct / support, np.nan)
    return table


class RandomForestTaxonomyClassifier:
    """
    Random Forest classifier for taxonomic prediction from k-mer frequencies.
    """

    def __init__(self, n_trees=config.N_TREES, random_state=config.RANDOM_SEED, n_jobs=1):
        """
        Initialize classifier.

        Args:
            n_trees (int): Number of trees
            random_state (int): Seed for bootstrap resampling, split features and
                importance permutations
            n_jobs (int): Parallel jobs for tree fitting
        """
        self.n_trees = n_trees
        self.random_state = random_state
        self.model = RandomForestClassifier(
            n_estimators=n_trees,
            max_features="sqrt",
            bootstrap=True,
            oob_score=True,
            random_state=random_state,
            n_jobs=n_jobs,
        )
        self.feature_names = None
        self.classes = None
        self.oob_confusion = None
        self.oob_error = None
        self.oob_coverage = None

    def _check_schema(self, features):
        if self.feature_names is None:
            raise RuntimeError("Classifier has not been trained")
        columns = list(features.columns)
        if columns == self.feature_names:
            return
        known, given = set(self.feature_names), set(columns)
        missing = [c for c in self.feature_names if c not in given]
        extra = [c for c in columns if c not in known]
        if missing or extra:
            raise FeatureSchemaError(
                f"Feature columns do not match training: {len(missing)} missing "
                f"(e.g. {missing[:5]}), {len(extra)} unexpected (e.g. {extra[:5]})"
            )
        raise FeatureSchemaError("Feature columns are in a different order than in training")

    def train(self, train_set):
        """
        Fit the forest and compute OOB diagnostics.

        Args:
            train_set (FeatureSet): Training features and labels

        Returns:
            RandomForestTaxonomyClassifier: self
        """
        logger.info(
            f"Training Random Forest: {self.n_trees} trees, "
            f"{len(train_set)} rows, {len(train_set.feature_names)} features"
        )
        X = train_set.features.to_numpy()
        y = train_set.labels.to_numpy()

        self.model.fit(X, y)
        self.feature_names = train_set.feature_names
        self.classes = list(self.model.classes_)

        self._compute_oob_diagnostics(y)
        return self

    def _oob_indices(self, n_rows):
        for samples in self.model.estimators_samples_:
            yield np.setdiff1d(np.arange(n_rows), samples, assume_unique=False)

    def _compute_oob_diagnostics(self, y):
        n_rows = len(y)
        coverage = np.zeros(n_rows, dtype=int)
        for oob in self._oob_indices(n_rows):
            coverage[oob] += 1
        self.oob_coverage = coverage

        never_oob = int((coverage == 0).sum())
        if never_oob:
            logger.warning(
                f"{never_oob} training rows were never out-of-bag; "
                f"consider more than {self.n_trees} trees"
            )

        covered = coverage > 0
        proba = self.model.oob_decision_function_[covered]
        oob_pred = np.asarray(self.classes)[np.argmax(proba, axis=1)]
        self.oob_confusion = labeled_confusion_matrix(y[covered], oob_pred, self.classes)
        self.oob_error = 1.0 - accuracy_score(y[covered], oob_pred) if covered.any() else np.nan
        logger.info(f"OOB error estimate: {self.oob_error:.4f}")

    @property
    def class_errors(self):
        """pd.Series: OOB error per class."""
        return self.oob_confusion["class_error"]

    def feature_importance(self, train_set):
        """
        Mean decrease in accuracy per feature.

        For every tree, each feature the tree splits on is permuted across
        that tree's OOB rows and the drop in the tree's OOB accuracy is
        recorded. Drops are averaged over all trees; a tree that does not use
        a feature contributes zero for it.

        Args:
            train_set (FeatureSet): The set the model was trained on

        Returns:
            pd.DataFrame: Columns ``feature``, ``mean_decrease_accuracy``,
                ``mean_decrease_gini``, sorted by descending accuracy decrease
        """
        self._check_schema(train_set.features)
        logger.info("Computing OOB permutation importance...")

        X = train_set.features.to_numpy()
        y_encoded = np.searchsorted(self.classes, train_set.labels.to_numpy())
        rng = np.random.default_rng(self.random_state)

        decrease = np.zeros(X.shape[1])
        for tree, oob in zip(self.model.estimators_, self._oob_indices(len(X))):
            if len(oob) == 0:
                continue
            X_oob = X[oob]
            y_oob = y_encoded[oob]
            baseline = np.mean(tree.predict(X_oob) == y_oob)

            split_features = tree.tree_.feature
            for j in np.unique(split_features[split_features >= 0]):
                original = X_oob[:, j].copy()
                X_oob[:, j] = rng.permutation(original)
                decrease[j] += baseline - np.mean(tree.predict(X_oob) == y_oob)
                X_oob[:, j] = original

        decrease /= len(self.model.estimators_)

        ranking = pd.DataFrame(
            {
                "feature": self.feature_names,
                "mean_decrease_accuracy": decrease,
                "mean_decrease_gini": self.model.feature_importances_,
            }
        )
        # mergesort keeps canonical k-mer order among ties
        ranking = ranking.sort_values(
            "mean_decrease_accuracy", ascending=False, kind="mergesort"
        ).reset_index(drop=True)

        logger.info("Top 20 most important features:")
        for i, row in ranking.head(20).iterrows():
            logger.info(f"  {i + 1}. {row['feature']}: {row['mean_decrease_accuracy']:.6f}")
        return ranking

    def predict(self, features):
        """
        Predict taxa.

        Args:
            features (pd.DataFrame or FeatureSet): Features with the training schema

        Returns:
            np.ndarray: Predicted labels

        Raises:
            FeatureSchemaError: If the columns differ from the training columns
        """
        if isinstance(features, FeatureSet):
            features = features.features
        self._check_schema(features)
        return self.model.predict(features.to_numpy())

    def evaluate(self, validation_set):
        """
        Evaluate the model on held-out data.

        Args:
            validation_set (FeatureSet): Validation features and labels

        Returns:
            dict: accuracy, error_rate, mcc, confusion_matrix (pd.DataFrame)
        """
        y_true = validation_set.labels.to_numpy()
        y_pred = self.predict(validation_set)

        labels = sorted(set(self.classes) | set(y_true))
        accuracy = accuracy_score(y_true, y_pred)
        mcc = matthews_corrcoef(y_true, y_pred)
        cm = labeled_confusion_matrix(y_true, y_pred, labels)

        logger.info(f"Validation accuracy: {accuracy:.4f} (MCC {mcc:.4f})")
        logger.debug(
            "\n" + classification_report(y_true, y_pred, labels=labels, zero_division=0)
        )

        return {
            "accuracy": accuracy,
            "error_rate": 1.0 - accuracy,
            "mcc": mcc,
            "confusion_matrix": cm,
        }

    def save_model(self, output_dir=config.MODEL_OUTPUT_DIR, name="random_forest"):
        """
        Pickle the model together with its feature schema.

        Returns:
            str: Path of the saved model
        """
        os.makedirs(output_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        model_data = {
            "model": self.model,
            "feature_names": self.feature_names,
            "classes": self.classes,
            "n_trees": self.n_trees,
            "random_state": self.random_state,
            "timestamp": timestamp,
        }
        model_path = os.path.join(output_dir, f"{name}_{timestamp}.pkl")
        with open(model_path, "wb") as f:
            pickle.dump(model_data, f)
        logger.info(f"Model saved to: {model_path}")
        return model_path

    @classmethod
    def load_model(cls, model_path):
        with open(model_path, "rb") as f:
            model_data = pickle.load(f)
        classifier = cls(n_trees=model_data["n_trees"], random_state=model_data["random_state"])
        classifier.model = model_data["model"]
        classifier.feature_names = model_data["feature_names"]
        classifier.classes = model_data["classes"]
        return classifier
