"""外部进程调用（agent / judge / hook / exec 断言共用）"""

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from skill_test.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessOutput:
    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: float
    timed_out: bool = False


async def run_process(
    argv: Sequence[str],
    *,
    timeout_s: float,
    input_text: str | None = None,
    cwd: str | Path | None = None,
) -> ProcessOutput:
    """
    启动进程并等待结束

    超时会杀掉进程并返回 timed_out=True；无法启动时抛出 OSError，由调用方决定如何处理。
    """
    start = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd) if cwd is not None else None,
    )

    data = input_text.encode("utf-8") if input_text is not None else None
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(input=data), timeout=timeout_s)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        elapsed = (time.monotonic() - start) * 1000
        logger.debug(f"进程超时已终止 ({timeout_s:.1f}s): {argv[0]}")
        return ProcessOutput(exit_code=None, stdout="", stderr="", duration_ms=elapsed, timed_out=True)

    return ProcessOutput(
        exit_code=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        duration_ms=(time.monotonic() - start) * 1000,
    )
