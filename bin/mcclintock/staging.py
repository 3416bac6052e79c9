"""
输出目录结构的创建与输入文件的放置
"""

import os
import shutil
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from .config import PipelineConfig
from .errors import FilesystemError
from .naming import RunNames

logger = logging.getLogger(__name__)

# TE-locate使用的层级注释文件后缀
HIERARCHY_GFF_SUFFIX = "_HL.gff"


@dataclass(frozen=True)
class RunLayout:
    """All paths of one (genome, sample) run, derived from the configuration."""
    genome_dir: Path
    reference_dir: Path
    sample_dir: Path
    fastq_dir: Path
    bam_dir: Path
    sam_dir: Path

    # 放入reference/的输入文件
    reference_genome: Path
    consensus_te_seqs: Path
    te_locations: Path
    te_families: Path

    # 链接到fastq/的reads
    fastq1: Path
    fastq2: Path

    # 派生文件
    all_te_seqs: Path
    reloca_te_seqs: Path
    te_hierarchy: Path
    hierarchy_gff: Path
    sam: Path
    bam: Path
    bam_index: Path
    config_file: Path
    summary_file: Path

    def directories(self) -> List[Path]:
        return [self.reference_dir, self.sample_dir, self.fastq_dir, self.bam_dir, self.sam_dir]


def build_layout(config: PipelineConfig, names: RunNames) -> RunLayout:
    """Compute the directory tree for a run without touching the filesystem."""
    genome_dir = config.workdir_path / names.genome_id
    reference_dir = genome_dir / "reference"
    sample_dir = genome_dir / names.sample_id
    fastq_dir = sample_dir / "fastq"
    bam_dir = sample_dir / "bam"
    sam_dir = sample_dir / "sam"

    te_locations = reference_dir / Path(config.te_locations).name
    bam = bam_dir / f"{names.sample_id}.bam"

    return RunLayout(
        genome_dir=genome_dir,
        reference_dir=reference_dir,
        sample_dir=sample_dir,
        fastq_dir=fastq_dir,
        bam_dir=bam_dir,
        sam_dir=sam_dir,
        reference_genome=reference_dir / Path(config.reference_genome).name,
        consensus_te_seqs=reference_dir / Path(config.consensus_te_seqs).name,
        te_locations=te_locations,
        te_families=reference_dir / Path(config.te_families).name,
        fastq1=fastq_dir / Path(config.fastq1).name,
        fastq2=fastq_dir / Path(config.fastq2).name,
        all_te_seqs=reference_dir / "all_te_seqs.fasta",
        reloca_te_seqs=reference_dir / "reloca_te_seqs.fasta",
        te_hierarchy=reference_dir / "te_hierarchy",
        hierarchy_gff=te_locations.with_name(te_locations.stem + HIERARCHY_GFF_SUFFIX),
        sam=sam_dir / f"{names.sample_id}.sam",
        bam=bam,
        bam_index=bam.with_name(bam.name + ".bai"),
        config_file=sample_dir / "pipeline_config.json",
        summary_file=sample_dir / "run_summary.json",
    )


class DirectoryStager:
    """Creates the output tree and places the input files in it.

    With ``on_existing="reject"`` (the default) an existing genome directory is
    an error, so a genome cannot be staged twice without removing its
    directory first, and two runs sharing a genome must not run at the same
    time.
    """

    def __init__(self, config: PipelineConfig):
        self.config = config

    def _inputs(self) -> Dict[str, Path]:
        return {
            'reference genome': Path(self.config.reference_genome),
            'consensus TE sequences': Path(self.config.consensus_te_seqs),
            'TE locations': Path(self.config.te_locations),
            'TE families': Path(self.config.te_families),
            'fastq1': Path(self.config.fastq1),
            'fastq2': Path(self.config.fastq2),
        }

    def check_inputs(self):
        """Every input must be an existing, readable file."""
        for what, path in self._inputs().items():
            if not path.is_file():
                raise FilesystemError(f"{what} file not found: {path}")
            if not os.access(path, os.R_OK):
                raise FilesystemError(f"{what} file is not readable: {path}")

    def stage(self, names: RunNames) -> RunLayout:
        layout = build_layout(self.config, names)
        self.check_inputs()

        logger.info("Creating directory structure...")
        self._create_genome_dir(layout)
        for directory in layout.directories():
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemError(f"Cannot create directory {directory}: {e}") from e

        # RelocaTE需要输入文件位于样本目录结构下
        self._copy_no_clobber(Path(self.config.reference_genome), layout.reference_genome)
        self._copy_no_clobber(Path(self.config.consensus_te_seqs), layout.consensus_te_seqs)
        self._copy_no_clobber(Path(self.config.te_locations), layout.te_locations)
        self._copy_no_clobber(Path(self.config.te_families), layout.te_families)
        self._link(Path(self.config.fastq1), layout.fastq1)
        self._link(Path(self.config.fastq2), layout.fastq2)

        return layout

    def _create_genome_dir(self, layout: RunLayout):
        genome_dir = layout.genome_dir
        policy = self.config.on_existing

        if genome_dir.exists():
            if policy == "reject":
                raise FilesystemError(
                    f"Genome directory already exists: {genome_dir}. "
                    f"Remove it or rerun with on_existing=merge/overwrite."
                )
            if policy == "overwrite":
                self._guard_inputs_outside(genome_dir)
                logger.warning(f"Removing existing genome directory: {genome_dir}")
                shutil.rmtree(genome_dir)
            else:
                logger.info(f"Reusing existing genome directory: {genome_dir}")

        try:
            genome_dir.mkdir(parents=True, exist_ok=(policy == "merge"))
        except FileExistsError as e:
            raise FilesystemError(f"Genome directory already exists: {genome_dir}") from e
        except OSError as e:
            raise FilesystemError(f"Cannot create genome directory {genome_dir}: {e}") from e

    def _guard_inputs_outside(self, genome_dir: Path):
        root = genome_dir.resolve()
        for what, path in self._inputs().items():
            resolved = path.resolve()
            if root == resolved or root in resolved.parents:
                raise FilesystemError(
                    f"Refusing to overwrite {genome_dir}: {what} input {path} lives inside it"
                )

    @staticmethod
    def _copy_no_clobber(src: Path, dest: Path):
        if dest.exists():
            logger.info(f"Keeping existing file: {dest}")
            return
        try:
            shutil.copy2(src, dest)
        except OSError as e:
            raise FilesystemError(f"Cannot copy {src} to {dest}: {e}") from e
        logger.debug(f"Copied {src} -> {dest}")

    @staticmethod
    def _link(src: Path, dest: Path):
        if dest.exists() or dest.is_symlink():
            logger.info(f"Keeping existing link: {dest}")
            return
        try:
            dest.symlink_to(src.resolve())
        except OSError as e:
            raise FilesystemError(f"Cannot link {dest} to {src}: {e}") from e
        logger.debug(f"Linked {dest} -> {src.resolve()}")
