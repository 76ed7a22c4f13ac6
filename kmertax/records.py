"""
Sequence record types shared across the pipeline.
"""

from dataclasses import dataclass


def normalize_title(title):
    """
    Collapse whitespace runs to single spaces and trim the ends.

    FASTA headers cannot keep newlines or trailing whitespace, so titles are
    stored in this form to read back unchanged from a FASTA file.
    """
    return " ".join(title.split())


@dataclass(frozen=True)
class SequenceRecord:
    """
    A raw sequence as returned by a sequence source.

    Attributes:
        taxon (str): Taxon label the record was queried for
        title (str): Record title (accession followed by the organism name),
            whitespace-normalized
        sequence (str): Raw symbol sequence, may contain ambiguity and gap symbols
    """

    taxon: str
    title: str
    sequence: str

    def __post_init__(self):
        object.__setattr__(self, "title", normalize_title(self.title))

    @property
    def identifier(self):
        """Accession, the first token of the title."""
        parts = self.title.split()
        return parts[0] if parts else ""

    @property
    def species(self):
        """
        Binomial species name embedded in a GenBank style title.

        Returns:
            str: "Genus species", or None if the title has no such part
        """
        parts = self.title.split()
        if len(parts) < 3:
            return None
        return f"{parts[1]} {parts[2]}"


@dataclass(frozen=True)
class CleanedSequence:
    """
    A sequence that passed quality control.

    Attributes:
        taxon (str): Taxon label
        identifier (str): Unique identifier (accession)
        title (str): Title of the source record
        sequence (str): Sequence without terminal ambiguity runs and gaps
        raw_length (int): Length of the source sequence
    """

    taxon: str
    identifier: str
    title: str
    sequence: str
    raw_length: int

    def __post_init__(self):
        object.__setattr__(self, "title", normalize_title(self.title))
