"""
TE家族层级文件
- TE-locate: Alias属性带家族层级的GFF (<stem>_HL.gff)
- PoPoolationTE: te_hierarchy表
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

from .staging import RunLayout
from .utils.gff_utils import AnnotationRecord, parse_gff, read_family_mapping, write_gff

logger = logging.getLogger(__name__)

HIERARCHY_HEADER = ["insert", "id", "family", "superfamily", "suborder", "order", "class", "problem"]
PLACEHOLDER = "na"
NO_PROBLEM = "0"

# Alias中的层级数 (family/TE)，TE-locate需要同一个数字
HIERARCHY_LEVELS = 2


@dataclass(frozen=True)
class HierarchyArtifacts:
    hierarchy_gff: Path
    te_hierarchy: Path
    levels: int = HIERARCHY_LEVELS


def hierarchy_row(te_id: str, family: str) -> List[str]:
    """One te_hierarchy row; family and superfamily both take the mapped family."""
    return [te_id, family, family, family, PLACEHOLDER, PLACEHOLDER, PLACEHOLDER, NO_PROBLEM]


def write_hierarchy_table(mapping: List[Tuple[str, str]], output_file: Path) -> int:
    """
    写出PoPoolationTE的te_hierarchy表

    Returns:
        Number of lines written including the header
    """
    with open(output_file, 'w') as out:
        out.write('\t'.join(HIERARCHY_HEADER) + '\n')
        for te_id, family in mapping:
            out.write('\t'.join(hierarchy_row(te_id, family)) + '\n')
    return len(mapping) + 1


def join_family_hierarchy(records: List[AnnotationRecord], families: Dict[str, str],
                          key: str = 'Alias') -> List[AnnotationRecord]:
    """Prefix each record's ``key`` attribute with its family, e.g. ``Alias=Gypsy/TE1``."""
    joined = []
    missing = 0
    for record in records:
        attributes = OrderedDict(record.attributes)
        value = attributes.get(key)
        family = families.get(value) if value is not None else None
        if family is None:
            missing += 1
            logger.warning(f"No family found for {key}={value} ({record.seqid}:{record.start}-{record.end})")
        else:
            attributes[key] = f"{family}/{value}"
        joined.append(AnnotationRecord(
            seqid=record.seqid, source=record.source, feature=record.feature,
            start=record.start, end=record.end, score=record.score,
            strand=record.strand, frame=record.frame, attributes=attributes,
        ))

    if missing:
        logger.warning(f"{missing}/{len(records)} annotations have no family mapping")
    return joined


class AnnotationHierarchyBuilder:
    """Builds the hierarchy GFF for TE-locate and the hierarchy table for PoPoolationTE."""

    def __init__(self, join_key: str = 'Alias'):
        self.join_key = join_key

    def build(self, layout: RunLayout) -> HierarchyArtifacts:
        mapping = read_family_mapping(layout.te_families)
        self.build_hierarchy_gff(layout.te_locations, mapping, layout.hierarchy_gff)
        self.build_hierarchy_table(mapping, layout.te_hierarchy)
        return HierarchyArtifacts(hierarchy_gff=layout.hierarchy_gff, te_hierarchy=layout.te_hierarchy)

    def build_hierarchy_gff(self, te_locations: Path, mapping: List[Tuple[str, str]], output_file: Path) -> Path:
        logger.info("Adjusting hierarchy levels...")
        families = dict(mapping)
        if len(families) != len(mapping):
            logger.warning(f"Family mapping has {len(mapping) - len(families)} duplicate ids, last entry wins")
        records = join_family_hierarchy(parse_gff(te_locations), families, key=self.join_key)
        write_gff(records, output_file)
        logger.info(f"Wrote {len(records)} annotations with family hierarchy to {output_file}")
        return output_file

    def build_hierarchy_table(self, mapping: List[Tuple[str, str]], output_file: Path) -> Path:
        logger.info("Creating te_hierarchy...")
        rows = write_hierarchy_table(mapping, output_file)
        logger.info(f"Wrote {rows} lines to {output_file}")
        return output_file
