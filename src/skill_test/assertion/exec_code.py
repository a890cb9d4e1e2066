"""exec 断言 — 提取输出中的代码块并用指定命令运行"""

import shlex
import tempfile
from pathlib import Path

from skill_test.assertion.base import BaseAssertion
from skill_test.client.process import run_process
from skill_test.core.logging import get_logger
from skill_test.schema.result import AssertionResult, ExecutionResult
from skill_test.schema.test_case import EXEC_EXIT_CODE_ZERO, OutputContainsExpect
from skill_test.utils.codeblock import extension_for, extract_code_blocks

logger = get_logger(__name__)


class ExecAssertion(BaseAssertion):
    """
    代码执行断言

    指定 language 时只取该语言的代码块，否则取全部代码块；多个块按出现顺序拼接后
    写入临时文件，执行 `command <临时文件>`，期望：
    - "exit_code:0"：退出码为 0
    - {output_contains: str}：stdout 包含指定子串
    """

    async def evaluate(self, result: ExecutionResult) -> AssertionResult:
        spec = self.spec
        expected = spec.expect.output_contains if isinstance(spec.expect, OutputContainsExpect) else spec.expect

        blocks = extract_code_blocks(result.output, spec.language)
        if not blocks:
            label = f" {spec.language}" if spec.language else ""
            return self._result(
                passed=False,
                message=f"输出中未找到{label}代码块",
                expected=expected,
                error="no code block",
            )

        code = "\n".join(block.code for block in blocks)
        extension = extension_for(spec.language or blocks[0].language)

        with tempfile.TemporaryDirectory(prefix="skill-test-exec-") as workdir:
            script = Path(workdir) / f"snippet.{extension}"
            script.write_text(code, encoding="utf-8")
            argv = shlex.split(spec.command) + [str(script)]
            try:
                proc = await run_process(argv, timeout_s=spec.timeout_ms / 1000, cwd=workdir)
            except OSError as e:
                return self._result(
                    passed=False,
                    message=f"无法执行命令 '{spec.command}': {e}",
                    expected=expected,
                    error=str(e),
                )

        if proc.timed_out:
            return self._result(
                passed=False,
                message=f"代码执行超时 ({spec.timeout_ms}ms)",
                expected=expected,
                error="timeout",
            )

        logger.debug(f"exec 断言 {spec.id}: 退出码 {proc.exit_code}")
        if spec.expect == EXEC_EXIT_CODE_ZERO:
            passed = proc.exit_code == 0
            message = f"退出码 {proc.exit_code}"
            if not passed and proc.stderr.strip():
                message += f": {proc.stderr.strip()[:200]}"
            return self._result(passed=passed, message=message, expected=expected, actual=proc.exit_code)

        passed = expected in proc.stdout
        message = f"stdout {'包含' if passed else '未包含'} \"{expected}\""
        return self._result(passed=passed, message=message, expected=expected, actual=proc.stdout[:500])
