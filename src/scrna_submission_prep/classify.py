"""
Filename and sample-name classification rules.

Naming conventions change between submissions, so every substring rule lives
here and each function has an explicit unclassified result. Callers flag the
unclassified rows for review rather than guessing.
"""

import posixpath

from scrna_submission_prep.constants import (
    LIBRARY_SUFFIXES,
    LIBRARY_TYPE_RULES,
    READ_TYPE_RULES,
    UNKNOWN_LIBRARY,
    LibraryType,
    ReadType,
)


def read_type(path: str) -> ReadType | None:
    """
    Returns the read type of a fastq from its file name, or None when no rule
    (or more than one rule) matches.
    """
    file_name = posixpath.basename(path)
    matches: list[ReadType] = [rt for substring, rt in READ_TYPE_RULES.items() if substring in file_name]
    if len(matches) != 1:
        return None
    return matches[0]


def read_set(path: str) -> str:
    """
    Returns the file name with its read-type token removed. The R1, R2, I1 and
    I2 files of one flowcell lane share it, so it keys a manifest line.
    """
    file_name = posixpath.basename(path)
    for substring in READ_TYPE_RULES:
        file_name = file_name.replace(substring, '')
    return file_name


def library_type(sample_name: str) -> LibraryType:
    for substring, lib_type in LIBRARY_TYPE_RULES.items():
        if substring in sample_name:
            return lib_type
    return UNKNOWN_LIBRARY


def sample_stem(sample_name: str, suffixes: tuple[str, ...] = LIBRARY_SUFFIXES) -> str:
    """
    Strips trailing library-type suffixes from a sample name, leaving the key
    that groups a biological sample's libraries. Stripping repeats until the
    name ends in no suffix, so applying it to a stem is a no-op.
    """
    stem = sample_name
    while True:
        suffix = next((s for s in suffixes if stem.endswith(s)), None)
        if suffix is None:
            return stem
        stem = stem[: -len(suffix)]
