"""Seeded synthetic nucleotide records for tests."""

import numpy as np

from kmertax.records import SequenceRecord

GC_RICH = [0.15, 0.35, 0.35, 0.15]
AT_RICH = [0.35, 0.15, 0.15, 0.35]


def random_sequence(rng, length, probs=None):
    return "".join(rng.choice(list("ACGT"), size=length, p=probs))


def make_records(taxon, n, rng, probs=None, length_range=(180, 220), prefix=None):
    prefix = prefix or taxon[:3].upper()
    records = []
    for i in range(n):
        length = int(rng.integers(length_range[0], length_range[1] + 1))
        records.append(
            SequenceRecord(
                taxon=taxon,
                title=f"{prefix}{i:04d}.1 {taxon} species{i} COI gene, partial cds",
                sequence=random_sequence(rng, length, probs),
            )
        )
    return records


def two_taxa_records(n_per_taxon=40, seed=0, **kwargs):
    rng = np.random.default_rng(seed)
    return {
        "Alpha": make_records("Alpha", n_per_taxon, rng, GC_RICH, **kwargs),
        "Beta": make_records("Beta", n_per_taxon, rng, AT_RICH, **kwargs),
    }


def two_taxa_feature_set(n_per_taxon=40, k=3, seed=0):
    from kmertax.features import KMerFeatureExtractor
    from kmertax.records import CleanedSequence

    sequences = [
        CleanedSequence(r.taxon, r.identifier, r.title, r.sequence, len(r.sequence))
        for records in two_taxa_records(n_per_taxon, seed).values()
        for r in records
    ]
    return KMerFeatureExtractor(k=k).extract_features(sequences)
