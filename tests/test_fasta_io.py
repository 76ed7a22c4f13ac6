import os
import tempfile
import unittest

from kmertax.fasta_io import read_fasta, write_fasta
from kmertax.records import CleanedSequence, SequenceRecord


class TestFastaIO(unittest.TestCase):
    def test_round_trip(self):
        records = [
            SequenceRecord("Rodentia", "MN000001.1 Mus musculus COI gene, partial cds", "ACGT" * 40),
            SequenceRecord("Rodentia", "MN000002.1 Rattus rattus", "NNAC-GTNN"),
        ]
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "raw.fasta")
            self.assertEqual(write_fasta(records, path), 2)
            with open(path) as handle:
                lines = handle.read().splitlines()
            loaded = read_fasta(path, "Rodentia")

        self.assertEqual(loaded, records)
        self.assertEqual(lines[0], ">MN000001.1 Mus musculus COI gene, partial cds")
        self.assertEqual(lines[1], "ACGT" * 40)
        self.assertEqual(len(lines), 4)

    def test_cleaned_sequences(self):
        cleaned = [CleanedSequence("Chiroptera", "KX1.1", "KX1.1 Myotis myotis", "ACGTTT", 10)]
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "clean.fasta")
            write_fasta(cleaned, path)
            loaded = read_fasta(path, "Chiroptera")
        self.assertEqual(loaded[0].title, "KX1.1 Myotis myotis")
        self.assertEqual(loaded[0].sequence, "ACGTTT")
        self.assertEqual(loaded[0].identifier, "KX1.1")

    def test_titles_with_irregular_whitespace(self):
        records = [
            SequenceRecord("Rodentia", "X1.1 trailing ", "ACGT"),
            SequenceRecord("Rodentia", " lead", "GGCC"),
            SequenceRecord("Rodentia", "X3.1\tMus  musculus\n", "TTAA"),
            SequenceRecord("Rodentia", "", "CCGG"),
        ]
        self.assertEqual(
            [r.title for r in records], ["X1.1 trailing", "lead", "X3.1 Mus musculus", ""]
        )
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "titles.fasta")
            write_fasta(records, path)
            loaded = read_fasta(path, "Rodentia")
        self.assertEqual(loaded, records)


if __name__ == "__main__":
    unittest.main()
