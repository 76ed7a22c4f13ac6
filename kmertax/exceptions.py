"""Exceptions raised by the kmertax pipeline."""


class KmerTaxError(Exception):
    """Base class for all pipeline errors."""


class AcquisitionError(KmerTaxError):
    """Remote source unavailable or returned no records for a taxon."""

    def __init__(self, taxon, message):
        self.taxon = taxon
        super().__init__(f"{taxon}: {message}")


class NoUsableSequencesError(KmerTaxError):
    """Quality control rejected every record of a batch."""

    def __init__(self, taxon, report=None):
        self.taxon = taxon
        self.report = report
        super().__init__(f"No usable sequences remain for {taxon} after quality control")


class NoValidWindowsError(KmerTaxError, ValueError):
    """A sequence has no k-length window free of ambiguous symbols."""


class FeatureSchemaError(KmerTaxError, ValueError):
    """Feature columns given for prediction do not match the training columns."""


class DuplicateIdentifierError(KmerTaxError, ValueError):
    """Feature vectors must carry unique identifiers."""


class ConfigurationError(KmerTaxError, ValueError):
    """Run parameters are inconsistent with each other or with the data."""
