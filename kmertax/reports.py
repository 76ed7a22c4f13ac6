"""
CSV reports and diagnostic plots.
"""

import logging
import os

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from kmertax import config

logger = logging.getLogger(__name__)

IMPORTANCE_COLUMNS = ["rank", "feature", "mean_decrease_accuracy", "mean_decrease_gini"]


def _ensure_dir(path):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def write_importance_csv(ranking, path):
    """
    Write the feature ranking with a 1-based rank column.

    Args:
        ranking (pd.DataFrame): Output of feature_importance()
        path (str): Output CSV path
    """
    _ensure_dir(path)
    table = ranking.copy()
    table.insert(0, "rank", range(1, len(table) + 1))
    table[IMPORTANCE_COLUMNS].to_csv(path, index=False)
    logger.info(f"Feature importance saved to: {path}")


def write_refinement_csv(table, path):
    """Write the refinement error table as-is (column order is fixed)."""
    _ensure_dir(path)
    table.to_csv(path, index=False)
    logger.info(f"Refinement errors saved to: {path}")


def write_qc_summary_csv(reports, path):
    """
    Write one column of QC counts per taxon.

    Args:
        reports (list): QCReport objects
        path (str): Output CSV path
    """
    _ensure_dir(path)
    summary = pd.concat([r.summary() for r in reports], axis=1)
    summary.index.name = "statistic"
    summary.to_csv(path)
    logger.info(f"QC summary saved to: {path}")


def plot_feature_importance(ranking, path, top_n=config.TOP_N_PLOT):
    """
    Bar plot of the top N features by mean decrease in accuracy.
    """
    _ensure_dir(path)
    top = ranking.head(top_n)

    plt.figure(figsize=(10, 8))
    plt.barh(range(len(top)), top["mean_decrease_accuracy"])
    plt.yticks(range(len(top)), top["feature"])
    plt.xlabel("Mean Decrease in Accuracy")
    plt.title(f"Top {len(top)} K-mer Importances - Random Forest")
    plt.gca().invert_yaxis()
    plt.tight_layout()
    plt.savefig(path, dpi=300, bbox_inches="tight")
    logger.info(f"Feature importance plot saved to: {path}")
    plt.close()


def plot_refinement_errors(table, path):
    """
    Line plot of per-class OOB error and validation error vs. feature count.
    """
    _ensure_dir(path)
    error_cols = [c for c in table.columns if c.startswith("error_")] + ["validation_error"]
    long_table = table.melt(
        id_vars="features_used", value_vars=error_cols, var_name="error", value_name="rate"
    )

    plt.figure(figsize=(10, 6))
    sns.lineplot(data=long_table, x="features_used", y="rate", hue="error", marker="o")
    plt.xlabel("Number of features used")
    plt.ylabel("Error rate")
    plt.title("Error Rate by Number of Top-Ranked K-mers")
    plt.tight_layout()
    plt.savefig(path, dpi=300, bbox_inches="tight")
    logger.info(f"Refinement plot saved to: {path}")
    plt.close()
