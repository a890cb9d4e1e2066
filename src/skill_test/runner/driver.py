"""执行驱动 — 每次迭代调用一次外部 agent 进程

- 超时、非零退出、输出无法解析、hook 失败都作为 ExecutionResult.failure 返回，不抛异常
- 只有 agent 进程无法启动时抛出 AgentLaunchError（整个运行以退出码 3 终止）
- 不做自动重试
"""

import tempfile
from pathlib import Path

from skill_test.client.agent import build_agent_argv, parse_agent_output
from skill_test.client.process import run_process
from skill_test.core.exceptions import AgentLaunchError, HookError
from skill_test.core.logging import get_logger
from skill_test.loader.skill_dir import SkillDir
from skill_test.runner.hooks import apply_hook
from skill_test.schema.config import EffectiveConfig
from skill_test.schema.result import ExecutionResult, FailureKind

logger = get_logger(__name__)

MAX_OUTPUT_CHARS = 100_000
TRUNCATION_MARKER = "... [truncated]"


def truncate_output(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def resolve_hook_path(skill: SkillDir, config: EffectiveConfig) -> Path | None:
    """custom hook 脚本路径相对于 skill 目录"""
    if config.hook != "custom" or not config.hook_path:
        return None
    return (skill.path / config.hook_path).resolve()


class ExecutionDriver:
    """在临时沙箱目录中运行 agent，并通过 .claude/skills/<name> 暴露被测 skill"""

    async def execute(self, prompt: str, config: EffectiveConfig, skill: SkillDir) -> ExecutionResult:
        try:
            final_prompt = await apply_hook(prompt, config.hook, resolve_hook_path(skill, config))
        except HookError as e:
            logger.debug(f"hook 执行失败: {e}")
            return ExecutionResult(output="", failure=FailureKind.HOOK_ERROR, error=str(e))

        argv = build_agent_argv(config.agent_command, final_prompt, config.model)

        with tempfile.TemporaryDirectory(prefix="skill-test-") as sandbox:
            self._prepare_sandbox(Path(sandbox), skill)
            try:
                proc = await run_process(argv, timeout_s=config.timeout / 1000, cwd=sandbox)
            except OSError as e:
                raise AgentLaunchError(
                    f"无法启动 agent 进程 '{config.agent_command}': {e}",
                    command=config.agent_command,
                    skill_name=skill.name,
                ) from e

        if proc.timed_out:
            return ExecutionResult(
                output="",
                duration_ms=proc.duration_ms,
                failure=FailureKind.TIMEOUT,
                error=f"agent 执行超时 ({config.timeout}ms)",
            )

        if proc.exit_code != 0:
            return ExecutionResult(
                output=truncate_output(proc.stdout),
                duration_ms=proc.duration_ms,
                exit_code=proc.exit_code,
                failure=FailureKind.EXIT_ERROR,
                error=f"agent 退出码 {proc.exit_code}: {proc.stderr.strip()[:500]}",
            )

        try:
            transcript = parse_agent_output(proc.stdout)
        except ValueError as e:
            return ExecutionResult(
                output=truncate_output(proc.stdout),
                duration_ms=proc.duration_ms,
                exit_code=proc.exit_code,
                failure=FailureKind.INVALID_OUTPUT,
                error=str(e),
            )

        return ExecutionResult(
            output=truncate_output(transcript.output),
            tool_calls=transcript.tool_calls,
            duration_ms=proc.duration_ms,
            exit_code=proc.exit_code,
        )

    @staticmethod
    def _prepare_sandbox(sandbox: Path, skill: SkillDir) -> None:
        skills_dir = sandbox / ".claude" / "skills"
        skills_dir.mkdir(parents=True)
        (skills_dir / skill.name).symlink_to(skill.path, target_is_directory=True)
