"""JSON 报告输出"""

import json
from dataclasses import asdict
from datetime import datetime, timezone

from skill_test.schema.result import (
    AssertionResult,
    IterationOutcome,
    RunReport,
    RunSummary,
    SkillVerdict,
    TestVerdict,
)


def _assertion_dict(result: AssertionResult) -> dict:
    return {
        "id": result.assertion_id,
        "type": result.assertion_type,
        "desc": result.desc,
        "passed": result.passed,
        "message": result.message,
        "pattern": result.pattern,
        "expected": result.expected,
        "actual": result.actual,
        "error": result.error,
    }


def _iteration_dict(outcome: IterationOutcome) -> dict:
    execution = outcome.execution
    return {
        "iteration": outcome.iteration,
        "passed": outcome.passed,
        "output_hash": outcome.output_hash,
        "duration_ms": round(execution.duration_ms, 1),
        "exit_code": execution.exit_code,
        "failure": execution.failure.value if execution.failure else None,
        "error": execution.error,
        "tool_calls": list(execution.tool_calls),
        "output": execution.output,
        "assertions": [_assertion_dict(a) for a in outcome.assertions],
        "golden_assertions": [_assertion_dict(a) for a in outcome.golden_assertions],
    }


def verdict_dict(test: TestVerdict) -> dict:
    return {
        "id": test.id,
        "desc": test.desc,
        "iterations": test.iterations,
        "passed": test.passed,
        "failed": test.failed,
        "pass_rate": test.pass_rate,
        "threshold": test.threshold,
        "verdict": test.verdict,
        "failures": test.failures,
        "golden_failures": test.golden_failures,
        "called_tools": test.called_tools,
        "details": [_iteration_dict(o) for o in test.outcomes],
    }


def skill_dict(skill: SkillVerdict) -> dict:
    data = {
        "name": skill.name,
        "path": str(skill.path),
        "tests": [verdict_dict(t) for t in skill.tests],
        "verdict": skill.verdict,
    }
    if skill.error is not None:
        data["error"] = skill.error
    return data


def build_report(report: RunReport, timestamp: datetime | None = None) -> dict:
    """生成与结果树结构一致的 JSON 文档"""
    timestamp = timestamp or datetime.now(timezone.utc)
    return {
        "timestamp": timestamp.isoformat(),
        "skills": [skill_dict(s) for s in report.skills],
        "summary": summary_dict(report.summary),
    }


def summary_dict(summary: RunSummary) -> dict:
    return asdict(summary)


def render_json(report: RunReport) -> str:
    return json.dumps(build_report(report), ensure_ascii=False, indent=2)
