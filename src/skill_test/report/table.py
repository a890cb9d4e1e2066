"""表格输出（Rich）"""

from rich.console import Console
from rich.table import Table

from skill_test.schema.result import RunReport, SkillVerdict


def _verdict_markup(verdict: str) -> str:
    return f"[green]{verdict}[/green]" if verdict == "Pass" else f"[red]{verdict}[/red]"


def render_skill(skill: SkillVerdict, console: Console, verbose: bool = False) -> None:
    console.print(f"\n[bold]Skill: {skill.name}[/bold]  ({skill.path})")

    if skill.error:
        console.print(f"  [red]错误: {skill.error}[/red]")
    if not skill.tests:
        console.print("  (无测试用例)")
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("", width=1)
        table.add_column("测试", style="cyan")
        table.add_column("通过/迭代", justify="right")
        table.add_column("通过率", justify="right")
        table.add_column("阈值", justify="right")

        for test in skill.tests:
            mark = "[green]✓[/green]" if test.is_pass else "[red]✗[/red]"
            table.add_row(
                mark,
                test.id,
                f"{test.passed}/{test.iterations}",
                f"{test.pass_rate:.1f}%",
                f"{test.threshold}%",
            )
        console.print(table)

        for test in skill.tests:
            if verbose or not test.is_pass:
                for line in test.failures:
                    console.print(f"  [red]{test.id}[/red] {line}")
            if verbose:
                for line in test.golden_failures:
                    console.print(f"  [yellow]{test.id} (golden)[/yellow] {line}")
                if test.called_tools:
                    console.print(f"  [dim]{test.id} 调用的工具: {', '.join(test.called_tools)}[/dim]")

    console.print(f"Verdict: {_verdict_markup(skill.verdict)}")


def render_table(report: RunReport, console: Console, verbose: bool = False) -> None:
    """打印每个 skill 的结果和汇总表格"""
    for skill in report.skills:
        render_skill(skill, console, verbose=verbose)

    summary = report.summary
    console.print("\n[bold]=== Summary ===[/bold]")
    table = Table()
    table.add_column("指标", style="cyan")
    table.add_column("通过", style="green", justify="right")
    table.add_column("失败", style="red", justify="right")
    table.add_column("总计", justify="right")
    table.add_row("Skills", str(summary.passed_skills), str(summary.failed_skills), str(summary.total_skills))
    table.add_row("Tests", str(summary.passed_tests), str(summary.failed_tests), str(summary.total_tests))
    console.print(table)
