"""
Global pytest configuration and fixtures.
"""

from contextlib import ExitStack
from functools import reduce
from unittest import mock

import pandas as pd
import pytest

# Every module that reads settings through config_retrieve
CONFIG_CONSUMERS = [
    'scrna_submission_prep.jobs.load_index_table',
    'scrna_submission_prep.jobs.discover_fastqs',
    'scrna_submission_prep.jobs.reconcile',
    'scrna_submission_prep.jobs.build_manifests',
    'scrna_submission_prep.jobs.publish_sample_sheet',
]

_MISSING = object()


def make_mock_config(tmp_path) -> dict:
    """
    A minimal config based on scrna_submission_prep_defaults.toml, pointing
    all local paths into the test's tmp_path.
    """
    return {
        'submission': {
            'index_sheet': str(tmp_path / 'indices.xlsx'),
            'fastq_dir': str(tmp_path / 'fastqs'),
            'fastq_suffix': '.fastq.gz',
            'staging_dir': str(tmp_path / 'staging'),
            'review_dir': str(tmp_path / 'staging' / 'review'),
            'manifest': {
                'marker': 'CITE',
                'marked_prefix': 'gs://mock-bucket/manifests/citeseq',
                'default_prefix': 'gs://mock-bucket/manifests',
            },
            'sample_sheet': {
                'destination': 'gs://mock-bucket/sample.tsv',
                'filename': 'sample.tsv',
            },
        },
    }


@pytest.fixture
def mock_config(tmp_path):
    """
    Patches config_retrieve in every consuming module so it traverses a
    mock config dict. Tests may edit the returned dict before running.
    """
    config = make_mock_config(tmp_path)

    def _mock_config_retrieve(keys, default=_MISSING):
        try:
            # This traverses the dict: e.g., config['submission']['manifest']['marker']
            return reduce(lambda d, k: d[k], keys, config)
        except (KeyError, TypeError):
            if default is not _MISSING:
                return default
            raise KeyError(f'Mock config key not found: {keys}')

    with ExitStack() as stack:
        for module in CONFIG_CONSUMERS:
            stack.enter_context(mock.patch(f'{module}.config_retrieve', side_effect=_mock_config_retrieve))
        yield config


def write_index_workbook(path, blocks: list[list[tuple[str, str, str]]]) -> None:
    """
    Writes an index sheet laid out like the lab's: a title on row 1, the
    header on row 2, then a well label column followed by one
    (sample name, index1, index2) block per lane.
    """
    n_rows = max(len(block) for block in blocks)
    header = ['Well']
    for lane, _ in enumerate(blocks, start=1):
        header += [f'Sample Name L{lane}', f'Index 1 L{lane}', f'Index 2 L{lane}']
    grid = [['Batch 7 indices'] + [None] * (len(header) - 1), header]
    for row_number in range(n_rows):
        row = [f'A{row_number + 1}']
        for block in blocks:
            row += list(block[row_number]) if row_number < len(block) else [None, None, None]
        grid.append(row)
    pd.DataFrame(grid).to_excel(path, header=False, index=False, engine='openpyxl')


@pytest.fixture
def index_workbook():
    return write_index_workbook
