"""
Quality-Control Filter
======================
Cleans raw sequence batches before feature extraction:
1. Strips terminal runs of ambiguous bases and every gap symbol
2. Rejects sequences with symbols outside the expected alphabet
3. Rejects sequences with too many remaining ambiguous bases
4. Rejects length outliers using the interquartile-range rule, recomputing
   the fences on the survivors until no further sequence is removed
5. Downsamples taxa to equal size (balance_classes)
"""

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from kmertax import config
from kmertax.exceptions import NoUsableSequencesError
from kmertax.records import CleanedSequence

logger = logging.getLogger(__name__)


@dataclass
class QCReport:
    """Diagnostic counts and length statistics for one QC pass."""

    taxon: str
    n_input: int = 0
    n_malformed: int = 0
    n_empty: int = 0
    n_ambiguous: int = 0
    n_length_outliers: int = 0
    n_output: int = 0
    gap_count: int = 0
    ambiguity_count: int = 0
    iqr_applied: bool = False
    iqr_rounds: int = 0
    length_bounds: tuple = None
    raw_lengths: pd.Series = field(default=None, repr=False)
    cleaned_lengths: pd.Series = field(default=None, repr=False)

    def length_statistics(self):
        """
        Returns:
            pd.DataFrame: ``describe()`` of raw and cleaned lengths, one column each
        """
        empty = pd.Series(dtype=float)
        return pd.DataFrame(
            {
                "raw": (self.raw_lengths if self.raw_lengths is not None else empty).describe(),
                "cleaned": (
                    self.cleaned_lengths if self.cleaned_lengths is not None else empty
                ).describe(),
            }
        )

    def summary(self):
        """
        Returns:
            pd.Series: Counts per stage followed by raw/cleaned length statistics
        """
        counts = pd.Series(
            {
                "input": self.n_input,
                "malformed": self.n_malformed,
                "empty": self.n_empty,
                "too_ambiguous": self.n_ambiguous,
                "length_outliers": self.n_length_outliers,
                "iqr_rounds": self.iqr_rounds,
                "output": self.n_output,
                "gaps_removed": self.gap_count,
                "ambiguous_bases": self.ambiguity_count,
            },
            name=self.taxon,
            dtype=float,
        )
        stats = self.length_statistics().unstack()
        stats.index = [f"{kind}_length_{stat}" for kind, stat in stats.index]
        return pd.concat([counts, stats]).rename(self.taxon)


@dataclass
class QCResult:
    sequences: list
    report: QCReport


class QualityControlFilter:
    """
    Per-taxon sequence quality control.
    """

    def __init__(
        self,
        prop_ns_cutoff=config.PROP_NS_CUTOFF,
        iqr_multiplier=config.IQR_MULTIPLIER,
        nucleotides=config.NUCLEOTIDES,
        ambiguity_symbol=config.AMBIGUITY_SYMBOL,
        gap_symbol=config.GAP_SYMBOL,
    ):
        """
        Initialize the filter.

        Args:
            prop_ns_cutoff (float): Max ambiguous bases as a fraction of the raw length
            iqr_multiplier (float): Outlier fence multiplier (1.5 = Tukey fences)
            nucleotides (str): Unambiguous alphabet
            ambiguity_symbol (str): Ambiguous base symbol
            gap_symbol (str): Alignment gap symbol
        """
        self.prop_ns_cutoff = prop_ns_cutoff
        self.iqr_multiplier = iqr_multiplier
        self.ambiguity_symbol = ambiguity_symbol
        self.gap_symbol = gap_symbol
        self.allowed = set(nucleotides) | {ambiguity_symbol}

    def clean_sequence(self, sequence):
        """
        Remove gaps, then leading/trailing ambiguous bases.

        Args:
            sequence (str): Raw sequence

        Returns:
            str: Cleaned sequence (upper case)
        """
        return (
            sequence.upper()
            .replace(self.gap_symbol, "")
            .strip(self.ambiguity_symbol)
        )

    def length_bounds(self, lengths):
        """
        Tukey fences over a length distribution.

        Args:
            lengths (array-like): Sequence lengths

        Returns:
            tuple: (lower, upper), or None when fewer than 4 lengths are given
        """
        lengths = np.asarray(lengths, dtype=float)
        if len(lengths) < 4:
            return None
        q1, q3 = np.quantile(lengths, [0.25, 0.75])
        iqr = q3 - q1
        return q1 - self.iqr_multiplier * iqr, q3 + self.iqr_multiplier * iqr

    def filter(self, records, taxon=None):
        """
        Run quality control over one taxon's batch.

        Args:
            records (list): SequenceRecord or CleanedSequence objects of one taxon
            taxon (str): Label for logging/reporting (defaults to the records' taxon)

        Returns:
            QCResult: Surviving CleanedSequence objects and the QC report

        Raises:
            NoUsableSequencesError: If no record survives
        """
        if taxon is None:
            taxon = records[0].taxon if records else "<empty>"

        report = QCReport(taxon=taxon, n_input=len(records))
        report.raw_lengths = pd.Series([len(r.sequence) for r in records], dtype=float)
        logger.info(f"QC for {taxon}: {len(records)} input sequences")

        kept = []
        for rec in records:
            raw = rec.sequence.upper()
            # Already-cleaned sequences keep their original length as the reference
            raw_length = getattr(rec, "raw_length", len(raw))
            report.gap_count += raw.count(self.gap_symbol)
            report.ambiguity_count += raw.count(self.ambiguity_symbol)

            cleaned = self.clean_sequence(raw)
            if set(cleaned) - self.allowed:
                report.n_malformed += 1
                continue
            if not cleaned:
                report.n_empty += 1
                continue
            if cleaned.count(self.ambiguity_symbol) > self.prop_ns_cutoff * raw_length:
                report.n_ambiguous += 1
                continue

            kept.append(
                CleanedSequence(
                    taxon=rec.taxon,
                    identifier=rec.identifier,
                    title=rec.title,
                    sequence=cleaned,
                    raw_length=raw_length,
                )
            )

        logger.info(
            f"  removed {report.n_malformed} malformed, {report.n_empty} empty, "
            f"{report.n_ambiguous} with > {self.prop_ns_cutoff:.1%} ambiguous bases"
        )

        # Fences are recomputed on the survivors until none falls outside them
        while True:
            bounds = self.length_bounds([len(s.sequence) for s in kept])
            if bounds is None:
                break
            lower, upper = bounds
            report.length_bounds = bounds
            before = len(kept)
            kept = [s for s in kept if lower <= len(s.sequence) <= upper]
            removed = before - len(kept)
            if removed == 0:
                break
            report.iqr_rounds += 1
            report.n_length_outliers += removed
            logger.info(
                f"  length bounds [{lower:.1f}, {upper:.1f}]: removed {removed} outliers"
            )

        report.iqr_applied = report.length_bounds is not None
        if not report.iqr_applied:
            logger.warning(
                f"  {len(kept)} sequences are too few for quartiles; length filter skipped"
            )

        report.n_output = len(kept)
        report.cleaned_lengths = pd.Series([len(s.sequence) for s in kept], dtype=float)
        logger.info(f"  {report.n_output}/{report.n_input} sequences kept for {taxon}")

        if not kept:
            raise NoUsableSequencesError(taxon, report)

        return QCResult(sequences=kept, report=report)


def balance_classes(batches, rng):
    """
    Downsample every taxon to the size of the smallest one.

    Args:
        batches (dict): taxon -> list of CleanedSequence
        rng (np.random.Generator): Seeded generator

    Returns:
        dict: taxon -> list of CleanedSequence, all of equal length
    """
    target = min(len(seqs) for seqs in batches.values())
    balanced = {}
    for taxon, seqs in batches.items():
        if len(seqs) > target:
            logger.info(f"Downsampling {taxon} from {len(seqs)} to {target} sequences")
            chosen = np.sort(rng.choice(len(seqs), size=target, replace=False))
            balanced[taxon] = [seqs[i] for i in chosen]
        else:
            balanced[taxon] = list(seqs)
    return balanced
