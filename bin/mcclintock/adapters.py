"""
五个TE检测流程的调用封装

Every adapter runs ``bash <script> ...`` inside its tool directory under
``tools_dir`` and hands over a fixed subset of the prepared files. Adapters do
not read each other's output.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from .alignment import AlignmentArtifact
from .config import PipelineConfig
from .errors import UsageError
from .hierarchy import HierarchyArtifacts
from .naming import RunNames
from .reference import ReferenceBundle
from .staging import RunLayout
from .utils.command_runner import CommandRunner, StageOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolInputs:
    """Everything the orchestrator prepared for the detection tools."""
    names: RunNames
    layout: RunLayout
    reference: ReferenceBundle
    alignment: AlignmentArtifact
    hierarchy: HierarchyArtifacts


class ToolAdapter:
    key = ""
    name = ""
    directory = ""
    script = ""

    def __init__(self, config: PipelineConfig, runner: CommandRunner):
        self.config = config
        self.runner = runner

    @property
    def tool_dir(self) -> Path:
        return self.config.tools_path / self.directory

    def arguments(self, inputs: ToolInputs) -> List:
        raise NotImplementedError

    def command(self, inputs: ToolInputs) -> List[str]:
        return [self.config.bash_exe, self.script] + [str(arg) for arg in self.arguments(inputs)]

    def run(self, inputs: ToolInputs) -> StageOutcome:
        logger.info(f"Running {self.name} pipeline...")
        return self.runner.run(self.name, self.command(inputs), cwd=self.tool_dir)


class RelocaTEAdapter(ToolAdapter):
    key = "relocate"
    name = "RelocaTE"
    directory = "RelocaTE"
    script = "runrelocate.sh"

    def arguments(self, inputs: ToolInputs) -> List:
        return [
            inputs.reference.reloca_te_seqs,
            inputs.reference.reference_genome,
            inputs.layout.fastq_dir,
            inputs.names.sample_id,
            inputs.reference.te_locations,
        ]


class NgsTeMapperAdapter(ToolAdapter):
    key = "ngs_te_mapper"
    name = "ngs_te_mapper"
    directory = "ngs_te_mapper"
    script = "runngstemapper.sh"

    def arguments(self, inputs: ToolInputs) -> List:
        return [
            inputs.reference.consensus_te_seqs,
            inputs.reference.reference_genome,
            inputs.names.sample_id,
            inputs.layout.fastq1,
            inputs.layout.fastq2,
        ]


class RetroSeqAdapter(ToolAdapter):
    key = "retroseq"
    name = "RetroSeq"
    directory = "RetroSeq"
    script = "runretroseq.sh"

    def arguments(self, inputs: ToolInputs) -> List:
        return [
            inputs.reference.consensus_te_seqs,
            inputs.alignment.bam,
            inputs.reference.reference_genome,
        ]


class TELocateAdapter(ToolAdapter):
    key = "telocate"
    name = "TE-locate"
    directory = "TE-locate"
    script = "runtelocate.sh"

    def arguments(self, inputs: ToolInputs) -> List:
        return [
            inputs.alignment.sam_dir,
            inputs.reference.reference_genome,
            inputs.hierarchy.hierarchy_gff,
            inputs.hierarchy.levels,
            inputs.names.sample_id,
        ]


class PoPoolationTEAdapter(ToolAdapter):
    key = "popoolationte"
    name = "PoPoolationTE"
    directory = "popoolationte"
    script = "runpopoolationte.sh"

    def arguments(self, inputs: ToolInputs) -> List:
        return [
            inputs.reference.reference_genome,
            inputs.reference.all_te_seqs,
            inputs.hierarchy.te_hierarchy,
            inputs.layout.fastq1,
            inputs.layout.fastq2,
            inputs.reference.te_locations,
        ]


# 固定的执行顺序
ADAPTER_CLASSES = (
    RelocaTEAdapter,
    NgsTeMapperAdapter,
    RetroSeqAdapter,
    TELocateAdapter,
    PoPoolationTEAdapter,
)

TOOL_KEYS = tuple(cls.key for cls in ADAPTER_CLASSES)


def build_adapters(config: PipelineConfig, runner: CommandRunner,
                   skip: Sequence[str] = ()) -> List[ToolAdapter]:
    unknown = set(skip) - set(TOOL_KEYS)
    if unknown:
        raise UsageError(f"Unknown tool(s) to skip: {', '.join(sorted(unknown))}; choose from {', '.join(TOOL_KEYS)}")

    adapters = []
    for cls in ADAPTER_CLASSES:
        if cls.key in skip:
            logger.info(f"Skipping {cls.name} (disabled in configuration)")
            continue
        adapters.append(cls(config, runner))
    return adapters
