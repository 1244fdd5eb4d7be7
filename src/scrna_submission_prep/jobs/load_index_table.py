import cpg_utils
import pandas as pd
from cpg_utils.config import config_retrieve
from loguru import logger

from scrna_submission_prep.constants import (
    BLOCK_FIRST_OFFSET,
    BLOCK_WIDTH,
    INDEX1,
    INDEX2,
    LANE,
    SAMPLE_NAME,
    SHEET_HEADER_ROW,
)
from scrna_submission_prep.file_types import BlockDescriptor, ParseError
from scrna_submission_prep.utils import reverse_complement


def block_descriptors(n_columns: int) -> list[BlockDescriptor]:
    """Describes every complete (sample name, index1, index2) block in a sheet n_columns wide."""
    return [
        BlockDescriptor(start=start, lane=str(round(start / BLOCK_WIDTH) + 1))
        for start in range(BLOCK_FIRST_OFFSET, n_columns - BLOCK_WIDTH + 1, BLOCK_WIDTH)
    ]


def _clean(column: pd.Series) -> pd.Series:
    return column.fillna('').astype(str).str.strip()


def parse_index_table(sheet_df: pd.DataFrame, lanes: int | None = None) -> pd.DataFrame:
    """
    Unpivots the horizontal lane blocks of the index sheet into one table of
    (sample_name, index1, index2, lane), with index2 reverse-complemented.
    Rows without a sample name are padding and are dropped.
    """
    blocks: list[BlockDescriptor] = block_descriptors(len(sheet_df.columns))
    if not blocks:
        raise ParseError(
            f'Index sheet has {len(sheet_df.columns)} columns; expected a label column followed by '
            f'at least one ({SAMPLE_NAME}, {INDEX1}, {INDEX2}) block'
        )
    if lanes is not None:
        if len(blocks) < lanes:
            raise ParseError(f'Index sheet has {len(blocks)} lane blocks but {lanes} lanes are expected')
        blocks = blocks[:lanes]

    lane_dfs: list[pd.DataFrame] = []
    for block in blocks:
        lane_df = sheet_df.iloc[:, block.columns].copy()
        lane_df.columns = [SAMPLE_NAME, INDEX1, INDEX2]
        lane_df[SAMPLE_NAME] = _clean(lane_df[SAMPLE_NAME])
        lane_df = lane_df[lane_df[SAMPLE_NAME] != ''].copy()
        lane_df[INDEX1] = _clean(lane_df[INDEX1]).str.upper()
        lane_df[INDEX2] = _clean(lane_df[INDEX2]).str.upper().map(reverse_complement)
        lane_df[LANE] = block.lane
        logger.info(f'Lane {block.lane} (column {block.start}): {len(lane_df)} samples')
        lane_dfs.append(lane_df)

    index_df = pd.concat(lane_dfs, ignore_index=True)

    missing_index = index_df[(index_df[INDEX1] == '') | (index_df[INDEX2] == '')]
    for _, row in missing_index.iterrows():
        logger.warning(f'Sample {row[SAMPLE_NAME]} in lane {row[LANE]} is missing an index sequence')

    duplicated = index_df[index_df.duplicated(keep=False)]
    if not duplicated.empty:
        logger.warning(f'{len(duplicated)} index sheet rows are duplicated:\n{duplicated.to_string(index=False)}')

    return index_df


def load_index_table(
    sheet_path: str,
    sheet_name: str | None = None,
    lanes: int | None = None,
) -> pd.DataFrame:
    """
    Reads the index sheet (xlsx, or a csv/tsv export of it) whose header is on
    the second row, and parses it into index records.
    """
    path: cpg_utils.Path = cpg_utils.to_path(sheet_path)
    logger.info(f'Reading index sheet {path}')
    try:
        with path.open('rb') as sheet_fh:
            if path.suffix in {'.csv', '.tsv'}:
                sheet_df: pd.DataFrame = pd.read_csv(
                    sheet_fh,
                    sep='\t' if path.suffix == '.tsv' else ',',
                    header=SHEET_HEADER_ROW,
                    dtype=str,
                )
            else:
                sheet_df = pd.read_excel(
                    sheet_fh,
                    sheet_name=sheet_name if sheet_name is not None else 0,
                    header=SHEET_HEADER_ROW,
                    dtype=str,
                    engine='openpyxl',
                )
    except (ValueError, pd.errors.EmptyDataError) as e:
        logger.error(f'Could not read index sheet {path}: {e}')
        raise ParseError(f'Could not read index sheet {path}: {e}') from e

    return parse_index_table(sheet_df, lanes=lanes)


def run() -> pd.DataFrame:
    return load_index_table(
        sheet_path=config_retrieve(['submission', 'index_sheet']),
        sheet_name=config_retrieve(['submission', 'index_sheet_name'], default=None),
        lanes=config_retrieve(['submission', 'lanes'], default=None),
    )
