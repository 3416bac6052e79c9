"""
从输入文件名推导基因组ID和样本ID
"""

import os
import re
from dataclasses import dataclass

from .errors import UsageError

# <sample>_1.<ext>，取第一个 "_1." 作为后缀起点
_FASTQ1_PATTERN = re.compile(r'^(?P<sample>.+?)_1\.(?P<ext>.+)$')


@dataclass(frozen=True)
class RunNames:
    genome_id: str
    sample_id: str


def _check_identifier(value: str, what: str) -> str:
    if not value or value in ('.', '..') or os.sep in value or '/' in value or '\0' in value:
        raise UsageError(f"Cannot derive a usable {what} from input name (got {value!r})")
    return value


def derive_genome_id(reference_path: str) -> str:
    """Reference file name with everything from the first period removed."""
    name = os.path.basename(str(reference_path))
    return _check_identifier(name.split('.', 1)[0], "genome id")


def derive_sample_id(fastq1_path: str) -> str:
    """
    First fastq file name without its trailing ``_1.<ext>``.

    Raises:
        UsageError: if the name does not follow the ``<sample>_1.<ext>`` convention
    """
    name = os.path.basename(str(fastq1_path))
    match = _FASTQ1_PATTERN.match(name)
    if not match:
        raise UsageError(
            f"First fastq file must be named <sample>_1.<ext> (e.g. S1_1.fastq), got {name!r}"
        )
    return _check_identifier(match.group('sample'), "sample id")


def derive_names(reference_path: str, fastq1_path: str) -> RunNames:
    return RunNames(
        genome_id=derive_genome_id(reference_path),
        sample_id=derive_sample_id(fastq1_path),
    )
