"""
序列工具：共识序列TSD标记、参考基因组TE拷贝提取
拷贝提取优先使用bedtools，不可用时回退到BioPython
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from Bio import SeqIO
from Bio.SeqIO.FastaIO import SimpleFastaParser

from .command_runner import CommandRunner
from .gff_utils import AnnotationRecord, parse_gff

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

TSD_UNKNOWN = "TSD=UNK"
LINE_WIDTH = 80


def write_fasta_record(handle, name: str, sequence: str, width: int = LINE_WIDTH):
    handle.write(f">{name}\n")
    for i in range(0, len(sequence), width):
        handle.write(sequence[i:i + width] + "\n")


def add_tsd_marker(consensus_file: PathLike, output_file: PathLike, marker: str = TSD_UNKNOWN) -> int:
    """
    给每条共识序列的header追加TSD标记 (RelocaTE需要)

    Returns:
        Number of sequences written
    """
    count = 0
    with open(consensus_file, 'r') as handle, open(output_file, 'w') as out:
        for title, sequence in SimpleFastaParser(handle):
            write_fasta_record(out, f"{title} {marker}", sequence)
            count += 1
    logger.info(f"Added {marker} to {count} consensus sequences: {output_file}")
    return count


class TECopyExtractor:
    """Extracts the reference sequence of every annotated TE copy into one FASTA."""

    def __init__(self, genome_file: PathLike, tool_preference: str = 'auto',
                 bedtools_exe: str = 'bedtools', runner: Optional[CommandRunner] = None):
        """
        Args:
            genome_file: Reference genome FASTA
            tool_preference: 'bedtools', 'biopython' or 'auto'
            bedtools_exe: bedtools executable
            runner: CommandRunner used for bedtools
        """
        self.genome_file = str(genome_file)
        self.bedtools_exe = bedtools_exe
        self.runner = runner or CommandRunner()
        self.tool = self._select_tool(tool_preference)

    def _select_tool(self, preference: str) -> str:
        """选择可用的提取工具"""
        if preference in ('bedtools', 'biopython'):
            logger.info(f"Using {preference} for TE copy extraction")
            return preference

        if self._check_tool(self.bedtools_exe):
            logger.info("Auto-selected bedtools for TE copy extraction")
            return 'bedtools'

        logger.warning("bedtools not available, falling back to BioPython")
        return 'biopython'

    @staticmethod
    def _check_tool(tool_cmd: str) -> bool:
        """检查工具是否可用"""
        try:
            result = subprocess.run(
                [tool_cmd, '--version'],
                capture_output=True,
                text=True,
                timeout=5
            )
            return result.returncode == 0
        except (subprocess.SubprocessError, FileNotFoundError):
            return False

    def extract(self, gff_file: PathLike, output_file: PathLike,
                records: Optional[List[AnnotationRecord]] = None) -> Path:
        """Write one FASTA record per GFF feature, named by the feature type (the TE ID)."""
        if self.tool == 'bedtools':
            self._extract_with_bedtools(gff_file, output_file)
        else:
            if records is None:
                records = parse_gff(gff_file)
            self._extract_with_biopython(records, output_file)
        return Path(output_file)

    def _extract_with_bedtools(self, gff_file: PathLike, output_file: PathLike):
        cmd = [
            self.bedtools_exe, 'getfasta',
            '-name',
            '-fi', self.genome_file,
            '-bed', str(gff_file),
            '-fo', str(output_file),
        ]
        self.runner.run("bedtools getfasta", cmd, check=True)

    def _extract_with_biopython(self, records: List[AnnotationRecord], output_file: PathLike):
        """GFF坐标1-based闭区间；与bedtools getfasta一致，不按链方向反向互补"""
        genome = SeqIO.index(self.genome_file, 'fasta')
        written = 0
        try:
            with open(output_file, 'w') as out:
                for record in records:
                    if record.seqid not in genome:
                        logger.warning(f"Sequence {record.seqid} not found in {self.genome_file}, skipping {record.feature}")
                        continue

                    chrom = genome[record.seqid].seq
                    start = max(0, record.start - 1)
                    end = min(len(chrom), record.end)
                    if start >= end:
                        logger.warning(f"Invalid coordinates for {record.feature}: "
                                       f"{record.seqid}:{record.start}-{record.end}, skipping")
                        continue
                    if end != record.end:
                        logger.warning(f"{record.feature} extends beyond {record.seqid} ({len(chrom)} bp), truncated")

                    write_fasta_record(out, record.feature, str(chrom[start:end]))
                    written += 1
        finally:
            genome.close()

        logger.info(f"Extracted {written}/{len(records)} TE copies to {output_file}")
