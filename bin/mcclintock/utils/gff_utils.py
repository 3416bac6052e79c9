"""
GFF3注释解析与改写
TE检测工具要求每条记录的ID唯一，并且ID/Name/Alias三个属性一致
"""

import os
import stat
import logging
import tempfile
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..errors import AnnotationError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class AnnotationRecord:
    """One GFF3 feature (one TE copy)."""
    seqid: str
    source: str
    feature: str
    start: int
    end: int
    score: str
    strand: str
    frame: str
    attributes: Dict[str, str] = field(default_factory=OrderedDict)

    @property
    def id(self) -> Optional[str]:
        return self.attributes.get('ID')

    @property
    def alias(self) -> Optional[str]:
        return self.attributes.get('Alias')

    @property
    def attribute_string(self) -> str:
        return ';'.join(f"{key}={value}" for key, value in self.attributes.items())

    def to_line(self) -> str:
        return '\t'.join([
            self.seqid, self.source, self.feature, str(self.start), str(self.end),
            self.score, self.strand, self.frame, self.attribute_string,
        ])

    @classmethod
    def from_fields(cls, fields: List[str], line_num: int = 0) -> "AnnotationRecord":
        if len(fields) < 9:
            raise AnnotationError(f"GFF line {line_num}: expected 9 columns, found {len(fields)}")
        try:
            start, end = int(fields[3]), int(fields[4])
        except ValueError as e:
            raise AnnotationError(f"GFF line {line_num}: non-numeric coordinates {fields[3]!r}-{fields[4]!r}") from e

        attributes = OrderedDict()
        for item in fields[8].strip().split(';'):
            if not item:
                continue
            key, _, value = item.partition('=')
            attributes[key.strip()] = value.strip()

        return cls(
            seqid=fields[0], source=fields[1], feature=fields[2],
            start=start, end=end, score=fields[5], strand=fields[6], frame=fields[7],
            attributes=attributes,
        )


def iter_gff_lines(gff_file: PathLike) -> Iterator[Tuple[int, List[str]]]:
    """Yield (line number, columns) for every feature line, skipping comments and blank lines."""
    with open(gff_file, 'r') as f:
        for line_num, line in enumerate(f, 1):
            line = line.rstrip('\r\n')
            if not line.strip() or line.startswith('#'):
                continue
            yield line_num, line.split('\t')


def parse_gff(gff_file: PathLike) -> List[AnnotationRecord]:
    return [AnnotationRecord.from_fields(fields, line_num) for line_num, fields in iter_gff_lines(gff_file)]


def extract_id_value(attribute_column: str) -> Optional[str]:
    """
    从属性列中取出ID值

    Every ``key=value`` pair whose key contains ``ID`` is a match and the
    last match wins, so ``ID=a;Parent_ID=b`` yields ``b``. Values are never
    searched: ``ID=teID1;Name=roo`` yields ``teID1``.
    """
    value = None
    for item in attribute_column.strip().split(';'):
        key, sep, item_value = item.partition('=')
        if sep and 'ID' in key:
            value = item_value.strip()
    return value or None


def rewrite_te_record(fields: List[str], line_num: int = 0) -> AnnotationRecord:
    """Rewrite one feature to ``<ID>`` as feature type and ``ID=v;Name=v;Alias=v``."""
    if len(fields) < 9:
        raise AnnotationError(f"GFF line {line_num}: expected 9 columns, found {len(fields)}")

    te_id = extract_id_value(fields[8])
    if not te_id:
        raise AnnotationError(f"GFF line {line_num}: no ID attribute in {fields[8]!r}")

    record = AnnotationRecord.from_fields(fields[:8] + ['.'], line_num)
    record.feature = te_id
    record.attributes = OrderedDict([('ID', te_id), ('Name', te_id), ('Alias', te_id)])
    return record


def rewrite_te_annotation(gff_file: PathLike, output_file: Optional[PathLike] = None) -> List[AnnotationRecord]:
    """
    改写TE注释文件

    Args:
        gff_file: GFF3 file with one unique ID attribute per feature
        output_file: Destination; defaults to replacing ``gff_file`` in place

    Returns:
        Rewritten records, one per input feature, in input order
    """
    records = []
    seen: Dict[str, int] = {}
    for line_num, fields in iter_gff_lines(gff_file):
        record = rewrite_te_record(fields, line_num)
        if record.id in seen:
            raise AnnotationError(
                f"GFF line {line_num}: duplicate ID {record.id!r} (first seen on line {seen[record.id]})"
            )
        seen[record.id] = line_num
        records.append(record)

    write_gff(records, output_file or gff_file)
    logger.info(f"Rewrote {len(records)} TE annotations in {output_file or gff_file}")
    return records


def write_gff(records: List[AnnotationRecord], output_file: PathLike):
    """Write records atomically (temporary file in the same directory, then rename).

    The result keeps the mode of the file it replaces; a new file gets the
    mode ``open()`` would give it under the current umask.
    """
    output_path = Path(output_file)
    mode = _target_mode(output_path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{output_path.name}.", dir=str(output_path.parent))
    try:
        with os.fdopen(fd, 'w') as out:
            for record in records:
                out.write(record.to_line() + '\n')
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, output_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _target_mode(output_path: Path) -> int:
    # mkstemp创建的文件权限为0600
    if output_path.exists():
        return stat.S_IMODE(output_path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def read_family_mapping(mapping_file: PathLike) -> List[Tuple[str, str]]:
    """Read ``id<TAB>family`` rows, keeping file order and skipping blank lines."""
    rows = []
    with open(mapping_file, 'r') as f:
        for line_num, line in enumerate(f, 1):
            parts = line.split()
            if not parts:
                continue
            if len(parts) < 2:
                raise AnnotationError(f"Family mapping line {line_num}: expected id and family, got {line.strip()!r}")
            rows.append((parts[0], parts[1]))
    return rows
