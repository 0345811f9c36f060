"""
Data ingestion from delimited text tables.
"""

from oncocohort_pipeline.ingest.tables import (
    NONSILENT_CLASSIFICATIONS,
    load_feature_matrix,
    load_group_assignment,
    load_mutation_calls,
    mutation_matrix,
    normalize_barcode,
    read_table,
)

__all__ = [
    "NONSILENT_CLASSIFICATIONS",
    "load_feature_matrix",
    "load_group_assignment",
    "load_mutation_calls",
    "mutation_matrix",
    "normalize_barcode",
    "read_table",
]
