#!/usr/bin/env python3

import sys
from argparse import ArgumentParser

import pandas as pd
from loguru import logger

from scrna_submission_prep.file_types import ManifestBuild, ReconciliationResult
from scrna_submission_prep.jobs import (
    build_manifests,
    discover_fastqs,
    load_index_table,
    publish_sample_sheet,
    reconcile,
)


def run_pipeline(dry_run: bool = False) -> pd.DataFrame:
    """
    Runs the five stages in order. Review output (unmatched records, flagged
    manifests, empty sheet rows) is logged and, when a review directory is
    configured, written there for inspection before the sheet is used.
    """
    index_df: pd.DataFrame = load_index_table.run()
    fastq_df: pd.DataFrame = discover_fastqs.run()
    result: ReconciliationResult = reconcile.run(index_df=index_df, fastq_df=fastq_df)
    build: ManifestBuild = build_manifests.run(matched=result.matched, dry_run=dry_run)
    return publish_sample_sheet.run(manifests=build.manifests, dry_run=dry_run)


def cli_main():
    # CLI entrypoint
    parser = ArgumentParser()
    parser.add_argument('--dry_run', action='store_true', help='Stage manifests and sheet locally without copying')
    args = parser.parse_args()

    # Settings come from the cpg_utils config (CPG_CONFIG_PATH), layered over
    # scrna_submission_prep_defaults.toml

    logger.remove(0)
    logger.add(sink=sys.stdout, format='{time} - {level} - {message}')

    run_pipeline(dry_run=args.dry_run)


if __name__ == '__main__':
    cli_main()
