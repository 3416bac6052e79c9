"""
参考基因组相关文件的准备
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .config import PipelineConfig
from .staging import RunLayout
from .utils.command_runner import CommandRunner
from .utils.gff_utils import AnnotationRecord, rewrite_te_annotation
from .utils.sequence_utils import TECopyExtractor, add_tsd_marker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceBundle:
    reference_genome: Path
    consensus_te_seqs: Path
    te_locations: Path
    te_families: Path
    all_te_seqs: Path
    reloca_te_seqs: Path
    te_count: int


class ReferencePreparer:
    """Indexes the reference, rewrites the TE annotation and builds the derived FASTA files.

    Each step consumes the previous step's output, so any failure here stops the run.
    """

    def __init__(self, config: PipelineConfig, runner: CommandRunner):
        self.config = config
        self.runner = runner

    def prepare(self, layout: RunLayout) -> ReferenceBundle:
        self.index_reference(layout.reference_genome)
        records = self.rewrite_annotation(layout.te_locations)
        self.extract_te_copies(layout, records)
        self.add_tsd_lengths(layout)

        return ReferenceBundle(
            reference_genome=layout.reference_genome,
            consensus_te_seqs=layout.consensus_te_seqs,
            te_locations=layout.te_locations,
            te_families=layout.te_families,
            all_te_seqs=layout.all_te_seqs,
            reloca_te_seqs=layout.reloca_te_seqs,
            te_count=len(records),
        )

    def index_reference(self, reference_genome: Path):
        """samtools faidx + bwa index"""
        logger.info("Creating indexes of reference genome...")
        self.runner.run("samtools faidx", [self.config.samtools_exe, 'faidx', reference_genome], check=True)
        self.runner.run("bwa index", [self.config.bwa_exe, 'index', reference_genome], check=True)

    def rewrite_annotation(self, te_locations: Path) -> List[AnnotationRecord]:
        """改写后的注释文件替换原文件，供所有下游工具使用"""
        logger.info(f"Rewriting TE annotation: {te_locations}")
        return rewrite_te_annotation(te_locations)

    def extract_te_copies(self, layout: RunLayout, records: List[AnnotationRecord]) -> Path:
        logger.info("Extracting sequence of all reference TE copies...")
        extractor = TECopyExtractor(
            layout.reference_genome,
            tool_preference=self.config.extract_tool,
            bedtools_exe=self.config.bedtools_exe,
            runner=self.runner,
        )
        return extractor.extract(layout.te_locations, layout.all_te_seqs, records=records)

    def add_tsd_lengths(self, layout: RunLayout) -> Path:
        # 只有RelocaTE使用带TSD标记的共识序列
        add_tsd_marker(layout.consensus_te_seqs, layout.reloca_te_seqs)
        return layout.reloca_te_seqs
