"""
CSV output writer for tabular exports.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from oncocohort_pipeline.differential.comparison import ComparisonResult

logger = logging.getLogger(__name__)


class CSVWriter:
    """Writes result tables to CSV files."""

    def __init__(
        self,
        output_dir: Path,
        include_index: bool = True,
        float_format: str = "%.6g",
    ):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.include_index = include_index
        self.float_format = float_format

    def write_matrix(
        self,
        matrix: pd.DataFrame,
        filename: str,
        index_label: Optional[str] = None,
    ) -> Path:
        """Write matrix to CSV.

        Parameters
        ----------
        matrix : pd.DataFrame
            Matrix to write
        filename : str
            Output filename
        index_label : str, optional
            Label for index column

        Returns
        -------
        Path
            Path to written file
        """
        path = self.output_dir / filename
        matrix.to_csv(
            path,
            index=self.include_index,
            index_label=index_label,
            float_format=self.float_format,
        )
        logger.debug("Wrote %s (%d rows)", path, len(matrix))
        return path

    def write_table(self, df: pd.DataFrame, filename: str) -> Path:
        """Write a long table without its index."""
        path = self.output_dir / filename
        df.to_csv(path, index=False, float_format=self.float_format)
        logger.debug("Wrote %s (%d rows)", path, len(df))
        return path

    def write_comparison(
        self,
        result: ComparisonResult,
        prefix: str = "comparison",
    ) -> dict[str, Path]:
        """Write the full, significant and top-N tables of a comparison.

        Parameters
        ----------
        result : ComparisonResult
            Comparison to write
        prefix : str
            Filename prefix

        Returns
        -------
        dict[str, Path]
            Paths keyed by "all", "significant" and (if set) "top"
        """
        paths = {
            "all": self.write_matrix(
                result.to_dataframe(), f"{prefix}_all.csv", index_label="feature"
            ),
            "significant": self.write_matrix(
                result.significant_dataframe(), f"{prefix}_significant.csv", index_label="feature"
            ),
        }
        if result.top is not None:
            paths["top"] = self.write_matrix(
                result.top_dataframe(), f"{prefix}_top.csv", index_label="feature"
            )
        return paths

    def write_group_assignment(
        self,
        groups: pd.Series,
        filename: str = "groups.csv",
    ) -> Path:
        """Write sample -> group assignment."""
        return self.write_matrix(groups.to_frame("group"), filename, index_label="sample")
