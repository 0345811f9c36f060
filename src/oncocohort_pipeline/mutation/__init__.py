"""
Somatic mutation analyses.

Burden, per-group frequencies, and pairwise gene interactions.
"""

from oncocohort_pipeline.mutation.burden import (
    burden_by_group,
    compare_burden,
    mutation_burden,
)
from oncocohort_pipeline.mutation.cooccurrence import (
    groupwise_interactions,
    pair_table,
    somatic_interactions,
    top_mutated_genes,
)
from oncocohort_pipeline.mutation.frequency import (
    compare_mutation_frequency,
    gene_frequencies,
)

__all__ = [
    "burden_by_group",
    "compare_burden",
    "mutation_burden",
    "groupwise_interactions",
    "pair_table",
    "somatic_interactions",
    "top_mutated_genes",
    "compare_mutation_frequency",
    "gene_frequencies",
]
