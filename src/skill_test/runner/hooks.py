"""Hook — 提交给 agent 前对提示词做变换

- none：原样返回
- simple：前置一句检查可用 skill 的提醒
- forced：前置"先逐个评估 skill，再调用，再实现"的多步指令
- custom：外部脚本，stdin 读入原始提示词，stdout 输出变换后的提示词
"""

from pathlib import Path

from skill_test.client.process import run_process
from skill_test.core.exceptions import HookError
from skill_test.core.logging import get_logger

logger = get_logger(__name__)

HOOK_TIMEOUT_MS = 10_000

SIMPLE_HOOK_TEMPLATE = """Note: Check if any available skills might help with this task.

{prompt}"""

FORCED_HOOK_TEMPLATE = """Before implementing, you MUST:

1. EVALUATE each available skill:
   - List each skill name
   - Write YES or NO
   - Give reason

2. CALL the Skill tool for each YES skill:
   - Do NOT skip this step
   - Evaluation alone is NOT sufficient

3. Only AFTER calling skills, begin implementation.

---

{prompt}"""


async def run_custom_hook(script: Path, prompt: str, timeout_ms: int = HOOK_TIMEOUT_MS) -> str:
    """执行自定义 hook 脚本；非零退出或超时抛出 HookError"""
    try:
        result = await run_process([str(script)], timeout_s=timeout_ms / 1000, input_text=prompt)
    except OSError as e:
        raise HookError(f"无法执行 hook 脚本 {script}: {e}") from e

    if result.timed_out:
        raise HookError(f"hook 脚本超时 ({timeout_ms}ms): {script}")
    if result.exit_code != 0:
        raise HookError(f"hook 脚本退出码 {result.exit_code}: {result.stderr.strip()[:500]}")
    return result.stdout.rstrip("\n")


async def apply_hook(prompt: str, hook: str, hook_path: Path | None = None) -> str:
    match hook:
        case "none":
            return prompt
        case "simple":
            return SIMPLE_HOOK_TEMPLATE.format(prompt=prompt)
        case "forced":
            return FORCED_HOOK_TEMPLATE.format(prompt=prompt)
        case "custom":
            if hook_path is None:
                raise HookError("custom hook 未指定脚本路径")
            logger.debug(f"执行自定义 hook: {hook_path}")
            return await run_custom_hook(hook_path, prompt)
        case _:
            raise HookError(f"未知 hook 类型: {hook}")
