import time
import shlex
import logging
import subprocess
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..errors import ExternalToolFailure

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# 命令无法启动时使用shell的惯例返回码
COMMAND_NOT_FOUND = 127


@dataclass
class StageOutcome:
    """一次外部命令调用的结果"""
    stage: str
    command: List[str]
    returncode: int
    stderr_tail: str = ""
    elapsed: float = 0.0
    cwd: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    def to_dict(self) -> Dict:
        return {
            'stage': self.stage,
            'command': self.command_line,
            'cwd': self.cwd,
            'returncode': self.returncode,
            'success': self.success,
            'elapsed': round(self.elapsed, 3),
            'stderr_tail': self.stderr_tail,
        }


class CommandRunner:
    """Blocking runner for external tools.

    Every call waits for the process to exit; there are no retries and no
    timeouts. A failure either comes back as an unsuccessful
    :class:`StageOutcome` or, with ``check=True``, as
    :class:`~mcclintock.errors.ExternalToolFailure`.
    """

    def __init__(self, tail_lines: int = 200):
        self.tail_lines = tail_lines
        self.history: List[StageOutcome] = []

    def run(self, stage: str, cmd: Sequence[PathLike], cwd: Optional[PathLike] = None,
            stdout_path: Optional[PathLike] = None, check: bool = False) -> StageOutcome:
        """
        Run one external command.

        Args:
            stage: Human readable stage name used in logs and outcomes
            cmd: Command and arguments
            cwd: Working directory for the child process
            stdout_path: Redirect stdout into this file (truncated first)
            check: Raise ExternalToolFailure on a non-zero exit

        Returns:
            StageOutcome describing the call
        """
        cmd = [str(c) for c in cmd]
        cwd = str(cwd) if cwd is not None else None
        logger.info(f"[{stage}] {shlex.join(cmd)}" + (f" (cwd={cwd})" if cwd else ""))

        start = time.time()
        stderr_tail: deque = deque(maxlen=self.tail_lines)
        try:
            if stdout_path is not None:
                with open(stdout_path, 'w') as out:
                    returncode = self._wait(cmd, cwd, out, stderr_tail)
            else:
                returncode = self._wait(cmd, cwd, None, stderr_tail)
        except OSError as e:
            returncode = COMMAND_NOT_FOUND
            stderr_tail.append(str(e))

        outcome = StageOutcome(
            stage=stage,
            command=cmd,
            returncode=returncode,
            stderr_tail="\n".join(stderr_tail),
            elapsed=time.time() - start,
            cwd=cwd,
        )
        self._record(outcome)

        if check and not outcome.success:
            raise ExternalToolFailure(outcome)
        return outcome

    def _record(self, outcome: StageOutcome):
        self.history.append(outcome)
        if outcome.success:
            logger.debug(f"[{outcome.stage}] finished in {outcome.elapsed:.1f}s")
        else:
            logger.error(f"[{outcome.stage}] exited with code {outcome.returncode}")
            if outcome.stderr_tail:
                logger.error(f"[{outcome.stage}] stderr:\n{outcome.stderr_tail}")

    @staticmethod
    def _wait(cmd: List[str], cwd: Optional[str], stdout, stderr_tail: deque) -> int:
        # stdout goes to a file or the terminal, so reading stderr here cannot block on a full pipe
        proc = subprocess.Popen(cmd, cwd=cwd, stdout=stdout, stderr=subprocess.PIPE,
                                text=True, errors='replace')
        with proc.stderr:
            for line in proc.stderr:
                stderr_tail.append(line.rstrip('\n'))
        return proc.wait()
