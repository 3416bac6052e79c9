from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Tuple
import json

ON_EXISTING_CHOICES = ("reject", "merge", "overwrite")
SAM_SORT_CHOICES = ("text", "none")
EXTRACT_TOOL_CHOICES = ("auto", "bedtools", "biopython")


@dataclass(frozen=True)
class PipelineConfig:
    """Pipeline配置参数"""

    # 输入文件
    reference_genome: str
    consensus_te_seqs: str
    te_locations: str
    te_families: str
    fastq1: str
    fastq2: str

    # 输出与外部流程目录
    workdir: str = "."
    tools_dir: str = "."

    # 已存在基因组目录的处理策略: reject / merge / overwrite
    on_existing: str = "reject"

    # 检测工具失败时是否立即终止
    fail_fast: bool = False

    # SAM排序方式: text (原始行为) / none
    sam_sort: str = "text"

    # TE拷贝序列提取: auto / bedtools / biopython
    extract_tool: str = "auto"

    threads: int = 1
    skip_tools: Tuple[str, ...] = field(default_factory=tuple)

    # 外部工具路径
    samtools_exe: str = "samtools"
    bwa_exe: str = "bwa"
    bedtools_exe: str = "bedtools"
    bash_exe: str = "bash"
    sort_exe: str = "sort"

    def __post_init__(self):
        if self.on_existing not in ON_EXISTING_CHOICES:
            raise ValueError(f"on_existing must be one of {ON_EXISTING_CHOICES}, got {self.on_existing!r}")
        if self.sam_sort not in SAM_SORT_CHOICES:
            raise ValueError(f"sam_sort must be one of {SAM_SORT_CHOICES}, got {self.sam_sort!r}")
        if self.extract_tool not in EXTRACT_TOOL_CHOICES:
            raise ValueError(f"extract_tool must be one of {EXTRACT_TOOL_CHOICES}, got {self.extract_tool!r}")
        if self.threads < 1:
            raise ValueError(f"threads must be >= 1, got {self.threads}")
        # JSON里读回来的是list
        object.__setattr__(self, "skip_tools", tuple(self.skip_tools))

    @property
    def workdir_path(self) -> Path:
        return Path(self.workdir).resolve()

    @property
    def tools_path(self) -> Path:
        return Path(self.tools_dir).resolve()

    def with_overrides(self, **changes) -> "PipelineConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def save(self, filepath: str):
        """保存配置到文件"""
        with open(filepath, 'w') as f:
            json.dump(asdict(self), f, indent=2)

    @classmethod
    def load(cls, filepath: str, **overrides):
        """从文件加载配置"""
        with open(filepath, 'r') as f:
            data = json.load(f)
        data.update(overrides)
        return cls(**data)
