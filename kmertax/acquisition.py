"""
Sequence Acquisition
====================
Sources of raw sequence records for a (taxon, gene, length range) query.

Any object with a ``fetch(taxon, gene, length_range)`` method returning a
list of SequenceRecord can be used by the pipeline. Two are provided:
- EntrezSequenceSource: queries the NCBI nucleotide database via BioPython
- InMemorySequenceSource: serves preloaded records (tests, cached FASTA)
"""

import logging
import time

from Bio import Entrez, SeqIO
from tqdm import tqdm

from kmertax import config
from kmertax.exceptions import AcquisitionError
from kmertax.records import SequenceRecord

logger = logging.getLogger(__name__)


def build_query(taxon, gene, length_range):
    """
    Build an Entrez nucleotide query string.

    Args:
        taxon (str): Taxon name
        gene (str): Gene name
        length_range (tuple): (min_length, max_length)

    Returns:
        str: Entrez search term
    """
    min_len, max_len = length_range
    return f"{taxon}[Organism] AND {gene}[Gene] AND {min_len}:{max_len}[SLEN]"


class EntrezSequenceSource:
    """
    Fetch nucleotide records from NCBI using Entrez esearch/efetch.
    """

    def __init__(
        self,
        email=config.NCBI_EMAIL,
        api_key=config.NCBI_API_KEY,
        max_records=config.MAX_RECORDS_PER_TAXON,
        batch_size=config.FETCH_BATCH_SIZE,
        max_retries=config.MAX_RETRIES,
    ):
        """
        Initialize the Entrez source.

        Args:
            email (str): Email address required by NCBI
            api_key (str): Optional NCBI API key
            max_records (int): Maximum number of records per query
            batch_size (int): Records per efetch call
            max_retries (int): Attempts per request before giving up
        """
        Entrez.email = email
        if api_key:
            Entrez.api_key = api_key
            logger.info("Using NCBI API key for faster access (10 req/sec)")
        else:
            logger.warning("No NCBI API key provided. Limited to 3 requests/sec")

        self.api_key = api_key
        self.max_records = max_records
        self.batch_size = batch_size
        self.max_retries = max_retries

    def _pause(self):
        # Rate limiting (be nice to NCBI servers)
        time.sleep(0.11 if self.api_key else 0.35)

    def _with_retries(self, taxon, func, *args, **kwargs):
        for attempt in range(self.max_retries):
            try:
                return func(*args, **kwargs)
            except (OSError, RuntimeError) as e:
                logger.warning(
                    f"Attempt {attempt + 1}/{self.max_retries} failed for {taxon}: {e}"
                )
                if attempt < self.max_retries - 1:
                    time.sleep(2**attempt)  # Exponential backoff
                else:
                    raise AcquisitionError(
                        taxon, f"request failed after {self.max_retries} attempts: {e}"
                    ) from e

    def _search(self, term):
        handle = Entrez.esearch(
            db="nucleotide", term=term, retmax=self.max_records, usehistory="y"
        )
        try:
            return Entrez.read(handle)
        finally:
            handle.close()

    def _fetch_batch(self, search_results, start, taxon):
        handle = Entrez.efetch(
            db="nucleotide",
            rettype="fasta",
            retmode="text",
            retstart=start,
            retmax=self.batch_size,
            webenv=search_results["WebEnv"],
            query_key=search_results["QueryKey"],
        )
        try:
            return [
                SequenceRecord(taxon=taxon, title=rec.description, sequence=str(rec.seq))
                for rec in SeqIO.parse(handle, "fasta")
            ]
        finally:
            handle.close()

    def fetch(self, taxon, gene, length_range):
        """
        Fetch all records matching the query.

        Args:
            taxon (str): Taxon name, also used as the record label
            gene (str): Gene name
            length_range (tuple): (min_length, max_length)

        Returns:
            list: SequenceRecord objects

        Raises:
            AcquisitionError: If requests keep failing or nothing matches
        """
        term = build_query(taxon, gene, length_range)
        logger.info(f"Searching NCBI nucleotide: {term}")

        search_results = self._with_retries(taxon, self._search, term)
        total = min(int(search_results["Count"]), self.max_records)
        if total == 0:
            raise AcquisitionError(taxon, f"no records match '{term}'")

        records = []
        for start in tqdm(range(0, total, self.batch_size), desc=f"Fetching {taxon}"):
            records.extend(self._with_retries(taxon, self._fetch_batch, search_results, start, taxon))
            self._pause()

        if not records:
            raise AcquisitionError(taxon, "query matched but no records were returned")

        logger.info(f"Fetched {len(records)} records for {taxon}")
        return records[:total]


class InMemorySequenceSource:
    """Serve preloaded records, keyed by taxon."""

    def __init__(self, records_by_taxon):
        """
        Args:
            records_by_taxon (dict): taxon -> list of SequenceRecord (or (title, sequence) tuples)
        """
        self.records_by_taxon = {}
        for taxon, records in records_by_taxon.items():
            self.records_by_taxon[taxon] = [
                rec if isinstance(rec, SequenceRecord) else SequenceRecord(taxon, *rec)
                for rec in records
            ]
        self.queries = []

    def fetch(self, taxon, gene, length_range):
        self.queries.append((taxon, gene, tuple(length_range)))
        records = self.records_by_taxon.get(taxon, [])
        if not records:
            raise AcquisitionError(taxon, "no records available")
        return list(records)
