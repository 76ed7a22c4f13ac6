"""K-mer feature selection and random forest classification of two taxa."""

__version__ = "0.1.0"
