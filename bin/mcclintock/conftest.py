from pathlib import Path
from typing import Iterable

import pytest

from mcclintock.config import PipelineConfig
from mcclintock.errors import ExternalToolFailure
from mcclintock.utils.command_runner import CommandRunner, StageOutcome

# chr2L = "ACGT" * 15
GENOME_FASTA = ">chr2L\n" + "ACGT" * 15 + "\n>chr3R\n" + "TTTTGGGGCCCCAAAA" + "\n"

CONSENSUS_FASTA = (
    ">roo Gypsy consensus\n"
    "ACGTACGTAC\n"
    ">1731\n"
    "GGGGCCCC\n"
)

TE_LOCATIONS_GFF = (
    "##gff-version 3\n"
    "# known TE copies\n"
    "chr2L\tRepeatMasker\ttransposable_element\t5\t14\t1200\t+\t.\tID=TE1;Name=roo;Note=full length\n"
    "chr2L\tRepeatMasker\ttransposable_element\t31\t40\t.\t-\t.\tID=TE2\n"
)

TE_FAMILIES = "TE1\tGypsy\nTE2\tCopia\n"

FASTQ_RECORD = "@read1\nACGTACGTAC\n+\nIIIIIIIIII\n"


class FakeRunner(CommandRunner):
    """Records commands instead of running them.

    Redirected stdout files are created empty so stages that move or delete
    them behave as with the real tools.
    """

    def __init__(self, failing: Iterable[str] = (), returncode: int = 1):
        super().__init__()
        self.failing = set(failing)
        self.failure_code = returncode
        self.calls = []

    def run(self, stage, cmd, cwd=None, stdout_path=None, check=False) -> StageOutcome:
        cmd = [str(c) for c in cmd]
        self.calls.append({'stage': stage, 'cmd': cmd, 'cwd': str(cwd) if cwd else None,
                           'stdout': str(stdout_path) if stdout_path else None})
        if stdout_path is not None:
            Path(stdout_path).write_text("")

        failed = stage in self.failing
        outcome = StageOutcome(
            stage=stage,
            command=cmd,
            returncode=self.failure_code if failed else 0,
            stderr_tail="simulated failure" if failed else "",
            cwd=str(cwd) if cwd else None,
        )
        self._record(outcome)
        if check and failed:
            raise ExternalToolFailure(outcome)
        return outcome

    @property
    def stages(self):
        return [call['stage'] for call in self.calls]

    def call(self, stage):
        return next(call for call in self.calls if call['stage'] == stage)


@pytest.fixture
def input_files(tmp_path) -> dict:
    """Small input set written outside the output tree."""
    inputs = tmp_path / "inputs"
    inputs.mkdir()
    files = {
        'reference_genome': inputs / "Dmel.fasta",
        'consensus_te_seqs': inputs / "teConsensus.fasta",
        'te_locations': inputs / "teLocs.gff",
        'te_families': inputs / "fam.tsv",
        'fastq1': inputs / "S1_1.fastq",
        'fastq2': inputs / "S1_2.fastq",
    }
    files['reference_genome'].write_text(GENOME_FASTA)
    files['consensus_te_seqs'].write_text(CONSENSUS_FASTA)
    files['te_locations'].write_text(TE_LOCATIONS_GFF)
    files['te_families'].write_text(TE_FAMILIES)
    files['fastq1'].write_text(FASTQ_RECORD)
    files['fastq2'].write_text(FASTQ_RECORD)
    return files


@pytest.fixture
def workdir(tmp_path) -> Path:
    path = tmp_path / "run"
    path.mkdir()
    return path


@pytest.fixture
def make_config(input_files, workdir, tmp_path):
    def _make(**overrides) -> PipelineConfig:
        values = {key: str(path) for key, path in input_files.items()}
        values.update(
            workdir=str(workdir),
            tools_dir=str(tmp_path / "tools"),
            extract_tool="biopython",
        )
        values.update(overrides)
        return PipelineConfig(**values)
    return _make


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def failing_runner():
    def _make(*stages, returncode: int = 1) -> FakeRunner:
        return FakeRunner(failing=stages, returncode=returncode)
    return _make
