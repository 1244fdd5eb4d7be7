import cpg_utils
import pandas as pd
from cpg_utils.config import config_retrieve
from loguru import logger

from scrna_submission_prep import utils
from scrna_submission_prep.constants import (
    DEFAULT_SHEET_FILENAME,
    LIBRARY_TYPE,
    LIBRARY_TYPES,
    MANIFEST_PATH,
    SAMPLE_NAME,
    SAMPLE_STEM,
    SHEET_COLUMN_NAMES,
)
from scrna_submission_prep.file_types import SampleSheetError


def pivot_sample_sheet(manifests: pd.DataFrame) -> pd.DataFrame:
    """
    One row per sample stem, one column per library type holding that
    library's manifest path, or an empty string when the stem lacks it.
    """
    per_sample: pd.DataFrame = manifests[[SAMPLE_NAME, SAMPLE_STEM, LIBRARY_TYPE, MANIFEST_PATH]].drop_duplicates(
        subset=[SAMPLE_NAME]
    )

    clashes = per_sample[per_sample.duplicated(subset=[SAMPLE_STEM, LIBRARY_TYPE], keep=False)]
    if not clashes.empty:
        logger.error(f'Several samples share a stem and library type:\n{clashes.to_string(index=False)}')
        raise SampleSheetError(
            f'Sample stems {", ".join(sorted(clashes[SAMPLE_STEM].unique()))} have more than one manifest '
            'for the same library type'
        )

    if per_sample.empty:
        return pd.DataFrame(columns=[SAMPLE_STEM, *LIBRARY_TYPES])

    sheet: pd.DataFrame = per_sample.pivot(index=SAMPLE_STEM, columns=LIBRARY_TYPE, values=MANIFEST_PATH)
    sheet = sheet.reindex(columns=LIBRARY_TYPES).fillna('').sort_index().reset_index()
    sheet.columns.name = None
    return sheet


PUBLISHED_LIBRARY_TYPES: list[str] = [lib_type for lib_type in LIBRARY_TYPES if lib_type in SHEET_COLUMN_NAMES]


def find_empty_rows(sheet: pd.DataFrame, library_columns: list[str] = PUBLISHED_LIBRARY_TYPES) -> list[str]:
    """
    Returns the stems with no manifest in any published library column; these
    point at a grouping bug upstream, or at a stem whose only libraries have no
    published column.
    """
    empty: pd.Series = (sheet[library_columns] == '').all(axis=1)
    stems: list[str] = sheet.loc[empty, SAMPLE_STEM].tolist()
    for stem in stems:
        logger.error(f'Sample stem {stem} has no manifest for any library type')
    return stems


def rename_for_export(sheet: pd.DataFrame, column_names: dict[str, str] = SHEET_COLUMN_NAMES) -> pd.DataFrame:
    """Keeps the mapped columns, renamed to the downstream workspace's schema."""
    for column in sheet.columns:
        if column not in column_names and (sheet[column] != '').any():
            logger.warning(f'Column {column} has no published name; its manifests are not in the published sheet')
    return sheet[list(column_names)].rename(columns=column_names)


def publish_sample_sheet(
    manifests: pd.DataFrame,
    staging_dir: str,
    destination: str,
    filename: str = DEFAULT_SHEET_FILENAME,
    dry_run: bool = False,
) -> pd.DataFrame:
    sheet: pd.DataFrame = pivot_sample_sheet(manifests)
    empty_stems: list[str] = find_empty_rows(sheet)
    if empty_stems:
        logger.warning(f'{len(empty_stems)} sample sheet rows are empty and need review')

    published: pd.DataFrame = rename_for_export(sheet)
    local_path: cpg_utils.Path = utils.get_staging_path(staging_dir, filename)
    published.to_csv(local_path, sep='\t', index=False)
    logger.info(f'Sample sheet with {len(published)} rows written to {local_path}')

    if dry_run:
        logger.info(f'Dry run: not publishing {local_path} to {destination}')
    else:
        utils.copy_to_destination(local_path, destination)
        logger.info(f'Sample sheet published to {destination}')
    return published


def run(manifests: pd.DataFrame, dry_run: bool = False) -> pd.DataFrame:
    return publish_sample_sheet(
        manifests=manifests,
        staging_dir=config_retrieve(['submission', 'staging_dir']),
        destination=config_retrieve(['submission', 'sample_sheet', 'destination']),
        filename=config_retrieve(['submission', 'sample_sheet', 'filename'], default=DEFAULT_SHEET_FILENAME),
        dry_run=dry_run,
    )
