"""CLI 入口 — skill-test 命令行工具

退出码：0 全部通过，1 未达阈值，2 配置/加载错误，3 执行错误。
"""

import asyncio
import os
import sys

import click
from rich.console import Console

from skill_test import __version__
from skill_test.core.config import validate_overrides
from skill_test.core.exceptions import AgentLaunchError, ConfigError, LoadError
from skill_test.core.logging import get_logger, setup_logging
from skill_test.loader.skill_dir import resolve_skill_dirs
from skill_test.report.error_log import write_error_log
from skill_test.report.json_report import render_json
from skill_test.report.progress import ConsoleProgress
from skill_test.report.table import render_table
from skill_test.runner.driver import ExecutionDriver
from skill_test.runner.engine import SkillPlan, TestEngine
from skill_test.runner.planner import build_skill_plan
from skill_test.schema.config import HOOK_TYPES, OUTPUT_FORMATS, ConfigOverrides
from skill_test.schema.result import SkillVerdict

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_THRESHOLD = 1
EXIT_CONFIG = 2
EXIT_EXECUTION = 3


def _plan_all(skill_dirs: tuple[str, ...], overrides: ConfigOverrides, test_filter: str | None) -> list[SkillPlan]:
    validate_overrides(overrides)
    return [build_skill_plan(skill, overrides, test_filter) for skill in resolve_skill_dirs(skill_dirs)]


def _write_aborted_logs(error: AgentLaunchError) -> None:
    """中止时为出错的 skill 以及已有失败用例的 skill 写日志，包含中止前已完成的测试"""
    for skill in error.partial_results:
        if skill.name == error.skill_name:
            aborted = SkillVerdict(
                name=skill.name, path=skill.path, tests=skill.tests, verdict="Fail", error=str(error)
            )
            write_error_log(aborted, error=str(error))
        elif not skill.is_pass:
            write_error_log(skill)


@click.command(name="skill-test")
@click.argument("skill_dirs", nargs=-1)
@click.option("--iterations", type=click.IntRange(min=1), default=None, help="每个测试的迭代次数")
@click.option("--hook", type=click.Choice(HOOK_TYPES), default=None, help="提示词 hook 策略")
@click.option("--hook-path", default=None, help="自定义 hook 脚本路径（需配合 --hook custom）")
@click.option("--model", default=None, help="被测 agent 使用的模型")
@click.option("--timeout", type=click.IntRange(min=1), default=None, help="单次执行超时（毫秒）")
@click.option("--threshold", type=click.IntRange(0, 100), default=None, help="通过率阈值（百分比）")
@click.option("--strict", is_flag=True, help="严格模式：任何测试文件加载失败都中止")
@click.option("--format", "output_format", type=click.Choice(OUTPUT_FORMATS), default="table", help="输出格式")
@click.option("--filter", "test_filter", default=None, help="只运行 ID 包含该子串的测试")
@click.option("-v", "--verbose", is_flag=True, help="开启详细日志与逐次迭代信息")
@click.option("--no-color", is_flag=True, help="关闭彩色输出")
@click.option("-p", "--parallel", type=click.IntRange(min=0), default=None, help="并发度（默认 CPU 核数，0 为顺序执行）")
@click.option("--no-error-log", is_flag=True, help="不写失败日志")
@click.version_option(version=__version__)
def cli(
    skill_dirs: tuple[str, ...],
    iterations: int | None,
    hook: str | None,
    hook_path: str | None,
    model: str | None,
    timeout: int | None,
    threshold: int | None,
    strict: bool,
    output_format: str,
    test_filter: str | None,
    verbose: bool,
    no_color: bool,
    parallel: int | None,
    no_error_log: bool,
):
    """Agent Skill 测试运行器 — 多次驱动 agent 执行提示词，按断言与通过率阈值判定 skill"""
    setup_logging(verbose=verbose, color=not no_color)
    console = Console(no_color=no_color, highlight=not no_color)
    err_console = Console(stderr=True, no_color=no_color, highlight=not no_color)

    overrides = ConfigOverrides(
        model=model,
        timeout=timeout,
        iterations=iterations,
        threshold=threshold,
        hook=hook,
        hook_path=hook_path,
        strict=True if strict else None,
    )

    try:
        plans = _plan_all(skill_dirs, overrides, test_filter)
    except (ConfigError, LoadError) as e:
        err_console.print(f"[red]配置错误: {e}[/red]")
        sys.exit(EXIT_CONFIG)

    if not any(plan.tests for plan in plans):
        if test_filter:
            logger.warning(f"没有 ID 包含 '{test_filter}' 的测试用例")
        else:
            logger.warning("未找到任何测试用例")

    if parallel is None:
        parallel = os.cpu_count() or 1
    # JSON 模式下 stdout 只输出报告文档
    listener = ConsoleProgress(console, verbose=verbose) if output_format == "table" else None
    engine = TestEngine(driver=ExecutionDriver(), parallel=parallel, listener=listener)

    try:
        report = asyncio.run(engine.run(plans))
    except AgentLaunchError as e:
        err_console.print(f"[red]执行错误: {e}[/red]")
        if not no_error_log:
            _write_aborted_logs(e)
        sys.exit(EXIT_EXECUTION)

    if output_format == "json":
        click.echo(render_json(report))
    else:
        render_table(report, console, verbose=verbose)

    if not no_error_log:
        for skill in report.skills:
            if not skill.is_pass:
                write_error_log(skill)

    sys.exit(EXIT_OK if report.all_passed else EXIT_THRESHOLD)


def main():
    cli()


if __name__ == "__main__":
    main()
