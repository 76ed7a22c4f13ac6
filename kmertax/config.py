"""
Configuration File for the K-mer Taxonomic Classification Pipeline
==================================================================
Central configuration for query, quality-control and model settings.
Every value here is only a default: the pipeline classes and the
command-line interface accept each one as an explicit parameter.
"""

# =============================================================================
# SEQUENCE ACQUISITION SETTINGS
# =============================================================================

# The two taxa to discriminate
TAXON_LABELS = ("Rodentia", "Chiroptera")

# Mitochondrial gene queried for every taxon
GENE_NAME = "COI"

# Expected sequence length range (inclusive) used in the remote query
SEQUENCE_LENGTH_RANGE = (600, 1000)

# Maximum number of records to fetch per taxon
MAX_RECORDS_PER_TAXON = 1000

# NCBI Entrez API Configuration
NCBI_EMAIL = "your.email@example.com"  # REQUIRED for remote fetching
NCBI_API_KEY = None  # OPTIONAL: 10 requests/sec instead of 3

# Batch size for fetching sequences from NCBI
FETCH_BATCH_SIZE = 100

# Network settings
MAX_RETRIES = 3


# =============================================================================
# QUALITY-CONTROL SETTINGS
# =============================================================================

# Nucleotide alphabet used for features
NUCLEOTIDES = "ACGT"

# Ambiguous base and gap symbols
AMBIGUITY_SYMBOL = "N"
GAP_SYMBOL = "-"

# Maximum proportion of ambiguous bases (relative to the raw length)
PROP_NS_CUTOFF = 0.02

# Multiplier of the interquartile range for length outliers
IQR_MULTIPLIER = 1.5


# =============================================================================
# FEATURE ENGINEERING SETTINGS
# =============================================================================

# K-mer size (4**8 = 65,536 features for nucleotides)
K_MER_SIZE = 8


# =============================================================================
# RANDOM FOREST SETTINGS
# =============================================================================

# Number of trees in every forest
N_TREES = 50

# Fraction of the full dataset held out for validation (split evenly per class)
VALIDATION_FRACTION = 0.2


# =============================================================================
# FEATURE REFINEMENT SETTINGS
# =============================================================================

# Candidate feature counts are 1..MAX_FEATURE_COUNT
MAX_FEATURE_COUNT = 100

# Extra features used beyond the nominal count at each refinement step.
# 0 trains on exactly i features, 1 reproduces the historical "i + 1" runs.
FEATURE_OFFSET = 0

# Parallel workers for the refinement loop (1 = sequential)
N_JOBS = 1

# Number of top features shown in importance plots
TOP_N_PLOT = 30


# =============================================================================
# REPRODUCIBILITY
# =============================================================================

# Random seed for every sampling and training step
RANDOM_SEED = 42


# =============================================================================
# OUTPUT PATHS
# =============================================================================

# Directory for cached FASTA files
DATA_OUTPUT_DIR = "data"

# Directory to save trained models
MODEL_OUTPUT_DIR = "models"

# Directory to save CSV reports and the log file
RESULTS_OUTPUT_DIR = "results"

# Directory to save plots
PLOTS_OUTPUT_DIR = "plots"
