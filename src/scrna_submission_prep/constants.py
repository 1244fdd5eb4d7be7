import re
from typing import Final, Literal

ReadType = Literal['R1', 'R2', 'I1', 'I2']
LibraryType = Literal['GEX', 'VDJ', 'CITESeq', 'BCR', 'unknown']

# Column names shared by the pipeline's tables
SAMPLE_NAME: Final = 'sample_name'
INDEX1: Final = 'index1'
INDEX2: Final = 'index2'
LANE: Final = 'lane'
PATH: Final = 'path'
READ_TYPE: Final = 'read_type'
LIBRARY_TYPE: Final = 'library_type'
SAMPLE_STEM: Final = 'sample_stem'
MANIFEST_PATH: Final = 'manifest_path'
READ_SET: Final = 'read_set'
FLAG: Final = 'flag'

JOIN_KEYS: Final[list[str]] = [INDEX1, INDEX2, LANE]
READ_TYPES: Final[list[ReadType]] = ['R1', 'R2', 'I1', 'I2']
LIBRARY_TYPES: Final[list[LibraryType]] = ['GEX', 'VDJ', 'CITESeq', 'BCR']
UNKNOWN_LIBRARY: Final = 'unknown'

# Filename substring -> read type. Exactly one must match.
READ_TYPE_RULES: Final[dict[str, ReadType]] = {
    'unmapped.1': 'R1',
    'unmapped.2': 'R2',
    'barcode_1': 'I1',
    'barcode_2': 'I2',
}

# Sample name substring -> library type, first match wins.
LIBRARY_TYPE_RULES: Final[dict[str, LibraryType]] = {
    'GEX': 'GEX',
    'VDJ': 'VDJ',
    'CITE': 'CITESeq',
    'BCR': 'BCR',
}
LIBRARY_SUFFIXES: Final[tuple[str, ...]] = ('_GEX', '_VDJ', '_BCR', '_CITEseq')

# Index sheet layout: a label column, then (sample name, index1, index2) blocks
SHEET_HEADER_ROW: Final = 1
BLOCK_FIRST_OFFSET: Final = 1
BLOCK_WIDTH: Final = 3

INDEX_LENGTH: Final = 10
INDEX_PAIR_PATTERN: Final = re.compile(rf'(?<![ACGT])([ACGT]{{{INDEX_LENGTH}}})_([ACGT]{{{INDEX_LENGTH}}})(?![ACGT])')
LANE_PATTERN: Final = re.compile(r'\.(\d+)\.')
DEFAULT_FASTQ_SUFFIX: Final = '.fastq.gz'

MANIFEST_SUFFIX: Final = '.tsv'
UNSAFE_FILENAME_CHARS: Final = re.compile(r'[^A-Za-z0-9._-]')

# Published sheet schema expected by the downstream workspace
SHEET_COLUMN_NAMES: Final[dict[str, str]] = {
    SAMPLE_STEM: 'entity:sample_id',
    'GEX': 'tsvGEX',
    'VDJ': 'tsvVDJ',
    'CITESeq': 'tsvABs',
}
DEFAULT_SHEET_FILENAME: Final = 'sample.tsv'
