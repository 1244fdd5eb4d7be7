import cpg_utils
import pandas as pd
from cpg_utils.config import config_retrieve
from loguru import logger

from scrna_submission_prep.constants import (
    DEFAULT_FASTQ_SUFFIX,
    INDEX1,
    INDEX2,
    INDEX_PAIR_PATTERN,
    LANE,
    LANE_PATTERN,
    PATH,
)


def list_fastqs(fastq_dir: str, suffix: str = DEFAULT_FASTQ_SUFFIX) -> list[str]:
    directory: cpg_utils.Path = cpg_utils.to_path(fastq_dir)
    logger.info(f'Listing {suffix} files in {directory}')
    paths: list[str] = sorted(str(p) for p in directory.iterdir() if p.name.endswith(suffix))
    logger.info(f'Found {len(paths)} {suffix} files')
    return paths


def parse_fastq_paths(paths: list[str]) -> pd.DataFrame:
    """
    Extracts the index pair and lane embedded in each fastq file name.
    Names that do not match leave null fields instead of failing the scan.
    """
    fastq_df = pd.DataFrame({PATH: pd.Series(paths, dtype=object)})
    file_names: pd.Series = fastq_df[PATH].str.rsplit('/', n=1).str[-1]

    indices: pd.DataFrame = file_names.str.extract(INDEX_PAIR_PATTERN)
    fastq_df[INDEX1] = indices[0]
    fastq_df[INDEX2] = indices[1]
    fastq_df[LANE] = file_names.str.extract(LANE_PATTERN, expand=False)

    unparsed = fastq_df[fastq_df[[INDEX1, INDEX2, LANE]].isna().any(axis=1)]
    for path in unparsed[PATH]:
        logger.warning(f'Could not extract index pair and lane from {path}')

    return fastq_df


def run() -> pd.DataFrame:
    paths: list[str] = list_fastqs(
        fastq_dir=config_retrieve(['submission', 'fastq_dir']),
        suffix=config_retrieve(['submission', 'fastq_suffix'], default=DEFAULT_FASTQ_SUFFIX),
    )
    return parse_fastq_paths(paths)
