"""
This module defines shared data structures and types used across the pipeline.
"""

from dataclasses import dataclass, field

import pandas as pd


class ParseError(ValueError):
    """The index sheet does not have the expected column layout."""


class ManifestError(ValueError):
    """Writing the manifests would overwrite or drop a sample's files."""


class SampleSheetError(ValueError):
    """The manifests cannot be grouped into one sheet row per sample stem."""


@dataclass(frozen=True)
class BlockDescriptor:
    """One (sample name, index1, index2) block of the index sheet."""

    start: int  # column offset of the sample name column
    lane: str

    @property
    def columns(self) -> list[int]:
        return [self.start, self.start + 1, self.start + 2]


@dataclass
class ReconciliationResult:
    """Output of joining the index sheet against the discovered fastqs."""

    matched: pd.DataFrame
    unmatched_index: pd.DataFrame
    unmatched_fastq: pd.DataFrame


@dataclass
class ManifestBuild:
    """Per-sample manifest rows, plus everything held back for manual review."""

    manifests: pd.DataFrame
    flagged: pd.DataFrame = field(default_factory=pd.DataFrame)
