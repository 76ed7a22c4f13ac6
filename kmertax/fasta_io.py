"""
FASTA persistence for raw and cleaned sequence batches.
"""

import logging
import os

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqIO.FastaIO import SimpleFastaParser
from Bio.SeqRecord import SeqRecord

from kmertax.records import SequenceRecord

logger = logging.getLogger(__name__)


def write_fasta(records, path):
    """
    Write records as two-line FASTA (``>title`` then the unwrapped sequence).

    Args:
        records (iterable): SequenceRecord or CleanedSequence objects
        path (str): Output file path

    Returns:
        int: Number of records written
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    seq_records = []
    for rec in records:
        parts = rec.title.split(maxsplit=1)
        seq_records.append(
            SeqRecord(
                Seq(rec.sequence),
                id=parts[0] if parts else "",
                description=rec.title,
            )
        )

    with open(path, "w") as handle:
        count = SeqIO.write(seq_records, handle, "fasta-2line")

    logger.info(f"Wrote {count} records to {path}")
    return count


def read_fasta(path, taxon):
    """
    Read a FASTA file written by write_fasta (or any FASTA file).

    Args:
        path (str): Input file path
        taxon (str): Label assigned to every record

    Returns:
        list: SequenceRecord objects
    """
    with open(path) as handle:
        records = [
            SequenceRecord(taxon=taxon, title=title, sequence=sequence)
            for title, sequence in SimpleFastaParser(handle)
        ]
    logger.info(f"Read {len(records)} records for {taxon} from {path}")
    return records
