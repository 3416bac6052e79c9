"""
reads比对：bwa mem -> SAM -> BAM (按坐标排序并建索引)
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path

from .config import PipelineConfig
from .naming import RunNames
from .staging import RunLayout
from .utils.command_runner import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignmentArtifact:
    sam: Path
    bam: Path
    bam_index: Path

    @property
    def sam_dir(self) -> Path:
        return self.sam.parent


class AlignmentStage:
    """Paired-end alignment of the sample against the staged reference."""

    def __init__(self, config: PipelineConfig, runner: CommandRunner):
        self.config = config
        self.runner = runner

    def align(self, layout: RunLayout, names: RunNames) -> AlignmentArtifact:
        logger.info("Creating bam alignment...")
        self.map_reads(layout)
        if self.config.sam_sort == "text":
            self.sort_sam_text(layout, names)
        else:
            logger.info("Skipping text sort of SAM file")
        self.sam_to_sorted_bam(layout)

        return AlignmentArtifact(sam=layout.sam, bam=layout.bam, bam_index=layout.bam_index)

    def map_reads(self, layout: RunLayout):
        cmd = [
            self.config.bwa_exe, 'mem',
            '-v', '0',
            '-t', self.config.threads,
            layout.reference_genome,
            layout.fastq1,
            layout.fastq2,
        ]
        self.runner.run("bwa mem", cmd, stdout_path=layout.sam, check=True)

    def sort_sam_text(self, layout: RunLayout, names: RunNames):
        """
        Sort the SAM as plain text lines.

        This is not a coordinate sort and can move header lines below
        alignment lines; the BAM is coordinate sorted separately afterwards.
        """
        sorted_sam = layout.sam_dir / f"sorted{names.sample_id}.sam"
        cmd = [self.config.sort_exe, f"--temporary-directory={layout.sam_dir}", layout.sam]
        self.runner.run("sort sam", cmd, stdout_path=sorted_sam, check=True)
        os.replace(sorted_sam, layout.sam)

    def sam_to_sorted_bam(self, layout: RunLayout):
        samtools = self.config.samtools_exe
        unsorted_bam = layout.bam_dir / f"unsorted{layout.bam.name}"

        self.runner.run("samtools view", [samtools, 'view', '-Sb', layout.sam],
                        stdout_path=unsorted_bam, check=True)
        self.runner.run("samtools sort", [samtools, 'sort', '-o', layout.bam, unsorted_bam], check=True)
        unsorted_bam.unlink()
        self.runner.run("samtools index", [samtools, 'index', layout.bam], check=True)
