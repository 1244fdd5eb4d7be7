import cpg_utils
import pandas as pd
from cpg_utils.config import config_retrieve
from loguru import logger

from scrna_submission_prep import classify, utils
from scrna_submission_prep.constants import (
    FLAG,
    LANE,
    LIBRARY_TYPE,
    MANIFEST_PATH,
    MANIFEST_SUFFIX,
    PATH,
    READ_SET,
    READ_TYPE,
    READ_TYPES,
    SAMPLE_NAME,
    SAMPLE_STEM,
    UNKNOWN_LIBRARY,
    UNSAFE_FILENAME_CHARS,
)
from scrna_submission_prep.file_types import ManifestBuild, ManifestError

FLAGGED_COLUMNS: list[str] = [SAMPLE_NAME, LANE, PATH, FLAG]


def manifest_destination(sample_name: str, marker: str, marked_prefix: str, default_prefix: str) -> str:
    """Picks the destination prefix by the marker substring and names the file after the sample."""
    prefix = marked_prefix if marker and marker in sample_name else default_prefix
    file_name = UNSAFE_FILENAME_CHARS.sub('_', sample_name) + MANIFEST_SUFFIX
    return f'{prefix.rstrip("/")}/{file_name}'


def _pivot_read_types(classified: pd.DataFrame) -> pd.DataFrame:
    """
    One row per sample, lane and read set (one flowcell's files), with the
    read-type columns always in R1, R2, I1, I2 order.
    """
    if classified.empty:
        return pd.DataFrame(columns=[SAMPLE_NAME, LANE, READ_SET, *READ_TYPES])

    wide: pd.DataFrame = classified.pivot(index=[SAMPLE_NAME, LANE, READ_SET], columns=READ_TYPE, values=PATH)
    wide = wide.reindex(columns=READ_TYPES).fillna('').reset_index()
    wide.columns.name = None
    return wide


def build_manifest_rows(
    matched: pd.DataFrame,
    marker: str,
    marked_prefix: str,
    default_prefix: str,
) -> ManifestBuild:
    """
    Classifies matched fastqs by read type and samples by library type, and
    pivots them into manifest rows. Fastqs with no read type and samples with
    no library type are held back in the flagged table, not written.
    """
    flagged: list[dict[str, str]] = []

    typed: pd.DataFrame = matched[[SAMPLE_NAME, LANE, PATH]].drop_duplicates().copy()
    typed[READ_TYPE] = typed[PATH].map(classify.read_type)
    for _, row in typed[typed[READ_TYPE].isna()].iterrows():
        logger.warning(f'No read type for {row[PATH]} (sample {row[SAMPLE_NAME]}); held back for review')
        flagged.append({SAMPLE_NAME: row[SAMPLE_NAME], LANE: row[LANE], PATH: row[PATH], FLAG: 'unknown read type'})

    classified: pd.DataFrame = typed.dropna(subset=[READ_TYPE]).copy()
    classified[READ_SET] = classified[PATH].map(classify.read_set)

    # Same file name in two directories: no single manifest line can hold both
    clashes = classified[classified.duplicated(subset=[SAMPLE_NAME, LANE, READ_SET, READ_TYPE], keep=False)]
    for sample_name in clashes[SAMPLE_NAME].unique():
        sample_clashes = clashes[clashes[SAMPLE_NAME] == sample_name]
        logger.warning(
            f'Sample {sample_name} has several fastqs for one manifest cell; held back for review:\n'
            f'{sample_clashes[PATH].to_string(index=False)}'
        )
        for _, row in sample_clashes.iterrows():
            flagged.append(
                {
                    SAMPLE_NAME: sample_name,
                    LANE: row[LANE],
                    PATH: row[PATH],
                    FLAG: 'several fastqs for one read type',
                }
            )
    classified = classified[~classified[SAMPLE_NAME].isin(clashes[SAMPLE_NAME])]

    rows: pd.DataFrame = _pivot_read_types(classified)

    for _, row in rows.iterrows():
        missing: list[str] = [rt for rt in READ_TYPES if row[rt] == '']
        if missing:
            logger.warning(
                f'Sample {row[SAMPLE_NAME]} lane {row[LANE]} ({row[READ_SET]}) has no {", ".join(missing)} fastq'
            )
            flagged.append(
                {SAMPLE_NAME: row[SAMPLE_NAME], LANE: row[LANE], PATH: '', FLAG: f'missing {",".join(missing)}'}
            )

    rows[LIBRARY_TYPE] = rows[SAMPLE_NAME].map(classify.library_type)
    rows[SAMPLE_STEM] = rows[SAMPLE_NAME].map(classify.sample_stem)

    unclassified = rows[rows[LIBRARY_TYPE] == UNKNOWN_LIBRARY]
    for sample_name in unclassified[SAMPLE_NAME].unique():
        logger.warning(f'Sample {sample_name} has no recognised library type; held back for review')
        flagged.append({SAMPLE_NAME: sample_name, LANE: '', PATH: '', FLAG: 'unknown library type'})

    manifests = rows[rows[LIBRARY_TYPE] != UNKNOWN_LIBRARY].copy()
    manifests[MANIFEST_PATH] = manifests[SAMPLE_NAME].map(
        lambda name: manifest_destination(name, marker, marked_prefix, default_prefix)
    )
    manifests = manifests.sort_values(
        [SAMPLE_NAME, LANE, READ_SET], key=lambda col: col.astype(int) if col.name == LANE else col
    ).reset_index(drop=True)

    return ManifestBuild(manifests=manifests, flagged=pd.DataFrame(flagged, columns=FLAGGED_COLUMNS))


def check_unique_destinations(manifests: pd.DataFrame) -> None:
    """Raises if two distinct samples would be written to the same manifest path."""
    samples_per_path: pd.Series = manifests.groupby(MANIFEST_PATH)[SAMPLE_NAME].nunique()
    collisions: pd.Series = samples_per_path[samples_per_path > 1]
    if not collisions.empty:
        for manifest_path in collisions.index:
            samples = sorted(manifests.loc[manifests[MANIFEST_PATH] == manifest_path, SAMPLE_NAME].unique())
            logger.error(f'Samples {", ".join(samples)} would all be written to {manifest_path}')
        raise ManifestError(f'{len(collisions)} manifest paths are shared by more than one sample')


def write_manifests(
    manifests: pd.DataFrame,
    staging_dir: str,
    dry_run: bool = False,
) -> dict[str, cpg_utils.Path]:
    """
    Writes one headerless TSV per sample (one line per lane and read set) into the staging
    directory and copies each to its destination.
    """
    check_unique_destinations(manifests)

    staged: dict[str, cpg_utils.Path] = {}
    for sample_name, sample_rows in manifests.groupby(SAMPLE_NAME, sort=True):
        destination: str = sample_rows[MANIFEST_PATH].iloc[0]
        # Mirror the destination layout so staged files are as unique as their destinations
        destination_dir, file_name = destination.split('://', 1)[-1].rsplit('/', 1)
        local_path: cpg_utils.Path = utils.get_staging_path(f'{staging_dir}/{destination_dir}', file_name)
        sample_rows.to_csv(local_path, sep='\t', header=False, index=False, columns=READ_TYPES)
        staged[str(sample_name)] = local_path

        if dry_run:
            logger.info(f'Dry run: staged {local_path}, not copying to {destination}')
        else:
            utils.copy_to_destination(local_path, destination)

    logger.info(f'Wrote {len(staged)} manifests')
    return staged


def run(matched: pd.DataFrame, dry_run: bool = False) -> ManifestBuild:
    build: ManifestBuild = build_manifest_rows(
        matched=matched,
        marker=config_retrieve(['submission', 'manifest', 'marker']),
        marked_prefix=config_retrieve(['submission', 'manifest', 'marked_prefix']),
        default_prefix=config_retrieve(['submission', 'manifest', 'default_prefix']),
    )
    write_manifests(
        manifests=build.manifests,
        staging_dir=config_retrieve(['submission', 'staging_dir']),
        dry_run=dry_run,
    )

    if not build.flagged.empty:
        logger.warning(f'{len(build.flagged)} manifest issues need review:\n{build.flagged.to_string(index=False)}')
        review_dir: str | None = config_retrieve(['submission', 'review_dir'], default=None)
        if review_dir:
            build.flagged.to_csv(utils.get_staging_path(review_dir, 'manifest_flags.tsv'), sep='\t', index=False)
    return build
