"""实时进度输出（Rich）"""

from rich.console import Console
from rich.markup import escape

from skill_test.loader.skill_dir import SkillDir
from skill_test.runner.engine import PlannedTest, RunListener
from skill_test.schema.result import IterationOutcome, TestVerdict

PREVIEW_LENGTH = 60


def output_preview(output: str, limit: int = PREVIEW_LENGTH) -> str:
    """取输出首个非空行，超长截断"""
    line = next((s.strip() for s in output.splitlines() if s.strip()), "")
    if len(line) > limit:
        return line[:limit] + "..."
    return line


class ConsoleProgress(RunListener):
    """每个测试用例完成时打印一行 ok/FAILED；verbose 时额外打印每次迭代"""

    def __init__(self, console: Console, verbose: bool = False):
        self.console = console
        self.verbose = verbose

    def on_iteration(self, skill: SkillDir, planned: PlannedTest, outcome: IterationOutcome) -> None:
        if not self.verbose:
            return
        status = "[green]passed[/green]" if outcome.passed else "[red]failed[/red]"
        self.console.print(
            f"  [dim]{escape(skill.name)}/{escape(planned.case.id)} #{outcome.iteration}[/dim] "
            f"{status} ({outcome.execution.duration_ms:.0f}ms): {escape(output_preview(outcome.execution.output))}"
        )

    def on_test_completed(self, skill: SkillDir, verdict: TestVerdict) -> None:
        display = escape(verdict.desc or verdict.id)
        status = "[green]ok[/green]" if verdict.is_pass else "[red]FAILED[/red]"
        self.console.print(f"test {display} ... {status}")
        for line in verdict.failures:
            self.console.print(f"  [red]✗[/red] {escape(line)}")
        for line in verdict.golden_failures:
            self.console.print(f"  [yellow]⚠[/yellow] {escape(line)} (golden)")
