import sys
import json
import logging
import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .adapters import TOOL_KEYS, ToolInputs, build_adapters
from .alignment import AlignmentArtifact, AlignmentStage
from .config import EXTRACT_TOOL_CHOICES, ON_EXISTING_CHOICES, SAM_SORT_CHOICES, PipelineConfig
from .errors import ExternalToolFailure, McClintockError
from .hierarchy import AnnotationHierarchyBuilder, HierarchyArtifacts
from .naming import RunNames, derive_names
from .reference import ReferenceBundle, ReferencePreparer
from .staging import DirectoryStager, RunLayout
from .utils.command_runner import CommandRunner, StageOutcome

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


@dataclass
class PipelineResult:
    names: RunNames
    layout: RunLayout
    reference: Optional[ReferenceBundle] = None
    alignment: Optional[AlignmentArtifact] = None
    hierarchy: Optional[HierarchyArtifacts] = None
    tool_outcomes: List[StageOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed_tools(self) -> List[StageOutcome]:
        return [o for o in self.tool_outcomes if not o.success]

    @property
    def success(self) -> bool:
        return self.error is None and not self.failed_tools


class McClintockPipeline:
    """TE检测主流程

    Stages run strictly one after another: naming, directory staging,
    reference preparation, alignment, hierarchy files, then the five
    detection tools in their fixed order. Preparation failures stop the
    run; a failing detection tool stops it only with ``fail_fast``.
    """

    def __init__(self, config: PipelineConfig, runner: Optional[CommandRunner] = None):
        self.config = config
        self.runner = runner or CommandRunner()

        self.stager = DirectoryStager(config)
        self.reference_preparer = ReferencePreparer(config, self.runner)
        self.alignment_stage = AlignmentStage(config, self.runner)
        self.hierarchy_builder = AnnotationHierarchyBuilder()
        self.adapters = build_adapters(config, self.runner, skip=config.skip_tools)

    def run(self) -> PipelineResult:
        """执行完整流程"""
        logger.info("=" * 60)
        logger.info("Starting McClintock TE detection pipeline")
        logger.info(f"Reference: {self.config.reference_genome}")
        logger.info(f"Reads: {self.config.fastq1} {self.config.fastq2}")
        logger.info(f"Working directory: {self.config.workdir_path}")
        logger.info("=" * 60)

        names = derive_names(self.config.reference_genome, self.config.fastq1)
        logger.info(f"Genome: {names.genome_id}, sample: {names.sample_id}")

        layout = self.stager.stage(names)
        self.config.save(str(layout.config_file))
        result = PipelineResult(names=names, layout=layout)

        try:
            result.reference = self.reference_preparer.prepare(layout)
            result.alignment = self.alignment_stage.align(layout, names)
            result.hierarchy = self.hierarchy_builder.build(layout)

            inputs = ToolInputs(
                names=names,
                layout=layout,
                reference=result.reference,
                alignment=result.alignment,
                hierarchy=result.hierarchy,
            )
            self.run_tools(inputs, result)
        except McClintockError as e:
            result.error = str(e)
            raise
        finally:
            self.write_summary(result)

        logger.info("=" * 60)
        if result.success:
            logger.info("Pipeline completed successfully")
        else:
            logger.warning(f"Pipeline finished with failed tools: "
                           f"{', '.join(o.stage for o in result.failed_tools)}")
        logger.info("=" * 60)
        return result

    def run_tools(self, inputs: ToolInputs, result: PipelineResult):
        for adapter in self.adapters:
            outcome = adapter.run(inputs)
            result.tool_outcomes.append(outcome)
            if outcome.success:
                continue
            if self.config.fail_fast:
                raise ExternalToolFailure(outcome)
            logger.warning(f"{adapter.name} failed, continuing with the remaining tools")

    def write_summary(self, result: PipelineResult) -> Path:
        summary: Dict[str, Any] = {
            'genome': result.names.genome_id,
            'sample': result.names.sample_id,
            'fail_fast': self.config.fail_fast,
            'success': result.success,
            'error': result.error,
            'stages': [o.to_dict() for o in self.runner.history],
        }
        with open(result.layout.summary_file, 'w') as f:
            json.dump(summary, f, indent=2)
        logger.info(f"Run summary written to {result.layout.summary_file}")
        return result.layout.summary_file


class UsageArgumentParser(argparse.ArgumentParser):
    """Prints the full argument description on any usage error."""

    def error(self, message):
        self.print_help(sys.stderr)
        self.exit(2, f"\n{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = UsageArgumentParser(
        prog='mcclintock',
        description='This script takes the following inputs and will run 5 different '
                    'transposable element (TE) detection methods: RelocaTE, ngs_te_mapper, '
                    'RetroSeq, TE-locate and PoPoolationTE.',
    )

    parser.add_argument('reference_genome',
                        help='A reference genome sequence in fasta format')
    parser.add_argument('consensus_te_seqs',
                        help='The consensus sequences of the TEs for the species in fasta format')
    parser.add_argument('te_locations',
                        help='The locations of known TEs in the reference genome in GFF 3 format. '
                             'This must include a unique ID attribute for every entry')
    parser.add_argument('te_families',
                        help='A tab delimited file with one entry per ID in the GFF file and two columns: '
                             'the first containing the ID and the second containing the TE family it belongs to')
    parser.add_argument('fastq1',
                        help='The absolute path of the first fastq file from a paired end read, '
                             'this should be named ending _1.fastq')
    parser.add_argument('fastq2',
                        help='The absolute path of the second fastq file from a paired end read, '
                             'this should be named ending _2.fastq')

    parser.add_argument('-c', '--config',
                        help='Configuration file (JSON); command line options override it')
    parser.add_argument('-t', '--threads', type=int,
                        help='Number of threads for bwa mem (default: 1)')
    parser.add_argument('--workdir',
                        help='Directory in which the genome directory is created (default: current directory)')
    parser.add_argument('--tools-dir',
                        help='Directory holding the RelocaTE, ngs_te_mapper, RetroSeq, TE-locate and '
                             'popoolationte folders (default: current directory)')
    parser.add_argument('--on-existing', choices=ON_EXISTING_CHOICES,
                        help='What to do when the genome directory already exists (default: reject)')
    parser.add_argument('--fail-fast', action='store_true', default=None,
                        help='Stop at the first failing TE detection tool instead of running all of them')
    parser.add_argument('--sam-sort', choices=SAM_SORT_CHOICES,
                        help='Text sort of the SAM file before BAM conversion (default: text)')
    parser.add_argument('--extract-tool', choices=EXTRACT_TOOL_CHOICES,
                        help='Tool used to extract reference TE copies (default: auto)')
    parser.add_argument('--skip', action='append', choices=TOOL_KEYS, metavar='TOOL',
                        help=f'Do not run this TE detection tool; may be repeated ({", ".join(TOOL_KEYS)})')
    parser.add_argument('--log-file', default='pipeline.log',
                        help='Log file (default: pipeline.log)')
    parser.add_argument('--verbose', action='store_true',
                        help='Verbose output')
    return parser


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    """Build the configuration; explicit command line options win over the config file."""
    values: Dict[str, Any] = {
        'reference_genome': args.reference_genome,
        'consensus_te_seqs': args.consensus_te_seqs,
        'te_locations': args.te_locations,
        'te_families': args.te_families,
        'fastq1': args.fastq1,
        'fastq2': args.fastq2,
    }
    options = {
        'threads': args.threads,
        'workdir': args.workdir,
        'tools_dir': args.tools_dir,
        'on_existing': args.on_existing,
        'fail_fast': args.fail_fast,
        'sam_sort': args.sam_sort,
        'extract_tool': args.extract_tool,
        'skip_tools': tuple(args.skip) if args.skip else None,
    }
    values.update({key: value for key, value in options.items() if value is not None})

    if args.config:
        return PipelineConfig.load(args.config, **values)
    return PipelineConfig(**values)


def setup_logging(log_file: Optional[str], verbose: bool = False):
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """命令行接口"""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except (OSError, TypeError, ValueError) as e:
        parser.error(f"invalid configuration: {e}")

    setup_logging(args.log_file, args.verbose)

    try:
        pipeline = McClintockPipeline(config)
        result = pipeline.run()
    except McClintockError as e:
        logger.error(f"Pipeline failed: {e}")
        return e.exit_code

    # 打印结果摘要
    print("\n" + "=" * 60)
    print("RESULTS SUMMARY")
    print("=" * 60)
    print(f"Genome directory: {result.layout.genome_dir}")
    print(f"BAM: {result.alignment.bam}")
    for outcome in result.tool_outcomes:
        status = "ok" if outcome.success else f"FAILED (exit code {outcome.returncode})"
        print(f"{outcome.stage:<15} {status}")
    print(f"Summary file: {result.layout.summary_file}")
    print("=" * 60)

    return 0 if result.success else 1


if __name__ == '__main__':
    sys.exit(main())
