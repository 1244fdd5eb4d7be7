import cpg_utils
import pandas as pd
from cpg_utils.config import config_retrieve
from loguru import logger

from scrna_submission_prep.constants import JOIN_KEYS, PATH, READ_TYPES, SAMPLE_NAME
from scrna_submission_prep.file_types import ReconciliationResult
from scrna_submission_prep.utils import get_staging_path

_INDEX_ROW = '_index_row'
_FASTQ_ROW = '_fastq_row'


def _check_cardinality(matched: pd.DataFrame) -> None:
    files_per_index: pd.Series = matched.groupby(_INDEX_ROW)[_FASTQ_ROW].nunique()
    for index_row in files_per_index[files_per_index > len(READ_TYPES)].index:
        rows = matched[matched[_INDEX_ROW] == index_row]
        logger.warning(
            f'Sample {rows[SAMPLE_NAME].iloc[0]} matched {len(rows)} fastqs, '
            f'more than the {len(READ_TYPES)} read types expected:\n{rows[PATH].to_string(index=False)}'
        )

    samples_per_fastq: pd.Series = matched.groupby(_FASTQ_ROW)[SAMPLE_NAME].nunique()
    for fastq_row in samples_per_fastq[samples_per_fastq > 1].index:
        rows = matched[matched[_FASTQ_ROW] == fastq_row]
        logger.warning(
            f'{rows[PATH].iloc[0]} matched more than one sample: {", ".join(sorted(rows[SAMPLE_NAME].unique()))}'
        )


def reconcile(index_df: pd.DataFrame, fastq_df: pd.DataFrame) -> ReconciliationResult:
    """
    Inner-joins index records and fastq records on (index1, index2, lane).

    Every index record and every fastq record ends up either in the matched
    table or in its own side's unmatched table. Fastqs whose names could not
    be parsed never match. Unmatched rows are expected when a submission mixes
    several sample sets, so they are reported rather than raised.
    """
    index_df = index_df.reset_index(drop=True)
    fastq_df = fastq_df.reset_index(drop=True)
    joinable_fastqs: pd.DataFrame = fastq_df.dropna(subset=JOIN_KEYS)

    matched: pd.DataFrame = (
        index_df.rename_axis(_INDEX_ROW)
        .reset_index()
        .merge(
            joinable_fastqs.rename_axis(_FASTQ_ROW).reset_index()[[_FASTQ_ROW, PATH, *JOIN_KEYS]],
            on=JOIN_KEYS,
            how='inner',
        )
    )
    _check_cardinality(matched)

    result = ReconciliationResult(
        matched=matched.drop(columns=[_INDEX_ROW, _FASTQ_ROW]).reset_index(drop=True),
        unmatched_index=index_df[~index_df.index.isin(matched[_INDEX_ROW])].reset_index(drop=True),
        unmatched_fastq=fastq_df[~fastq_df.index.isin(matched[_FASTQ_ROW])].reset_index(drop=True),
    )

    logger.info(
        f'Matched {matched[_FASTQ_ROW].nunique()} of {len(fastq_df)} fastqs '
        f'to {matched[_INDEX_ROW].nunique()} of {len(index_df)} index records'
    )
    if not result.unmatched_index.empty:
        logger.warning(
            f'{len(result.unmatched_index)} index records have no fastq:\n'
            f'{result.unmatched_index.to_string(index=False)}'
        )
    if not result.unmatched_fastq.empty:
        logger.warning(
            f'{len(result.unmatched_fastq)} fastqs have no index record:\n'
            f'{result.unmatched_fastq.to_string(index=False)}'
        )
    return result


def write_review_tables(result: ReconciliationResult, review_dir: str) -> dict[str, cpg_utils.Path]:
    """Writes the unmatched tables as TSVs for manual review."""
    outputs: dict[str, cpg_utils.Path] = {
        'unmatched_index': get_staging_path(review_dir, 'unmatched_index.tsv'),
        'unmatched_fastq': get_staging_path(review_dir, 'unmatched_fastq.tsv'),
    }
    result.unmatched_index.to_csv(outputs['unmatched_index'], sep='\t', index=False)
    result.unmatched_fastq.to_csv(outputs['unmatched_fastq'], sep='\t', index=False)
    logger.info(f'Unmatched records written to {review_dir} for review')
    return outputs


def run(index_df: pd.DataFrame, fastq_df: pd.DataFrame) -> ReconciliationResult:
    result: ReconciliationResult = reconcile(index_df=index_df, fastq_df=fastq_df)
    review_dir: str | None = config_retrieve(['submission', 'review_dir'], default=None)
    if review_dir:
        write_review_tables(result, review_dir)
    return result
