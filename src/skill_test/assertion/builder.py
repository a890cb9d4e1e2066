"""断言工厂 — 根据 AssertionSpec 构建对应断言实例"""

from __future__ import annotations

from typing import TYPE_CHECKING

from skill_test.assertion.base import BaseAssertion
from skill_test.assertion.exec_code import ExecAssertion
from skill_test.assertion.string_match import ContainsAssertion, LineCountAssertion, RegexAssertion
from skill_test.assertion.tool_called import ToolCalledAssertion
from skill_test.core.exceptions import AssertionError_
from skill_test.core.logging import get_logger
from skill_test.schema.result import AssertionResult, ExecutionResult
from skill_test.schema.test_case import AssertionSpec, OutputContainsExpect

if TYPE_CHECKING:
    from skill_test.client.judge_llm import JudgeClient

logger = get_logger(__name__)


def build_assertion(spec: AssertionSpec, judge_client: JudgeClient | None = None) -> BaseAssertion:
    """根据断言规格构建对应的断言实例"""
    match spec.type:
        case "regex":
            return RegexAssertion(spec)

        case "contains":
            return ContainsAssertion(spec)

        case "line_count":
            return LineCountAssertion(spec)

        case "exec":
            return ExecAssertion(spec)

        case "tool_called":
            return ToolCalledAssertion(spec)

        case "llm_eval":
            if judge_client is None:
                raise AssertionError_("llm_eval 断言需要 Judge 客户端")
            from skill_test.assertion.llm_eval import LLMEvalAssertion

            return LLMEvalAssertion(spec, judge_client=judge_client)

        case _:
            raise AssertionError_(f"未知断言类型: {spec.type}")


async def evaluate(
    spec: AssertionSpec,
    result: ExecutionResult,
    judge_client: JudgeClient | None = None,
) -> AssertionResult:
    """对一次执行结果评估一条断言；除 llm_eval 外结果只取决于 (spec, result)

    断言自身出错时记为失败结果，不影响同一迭代的其他断言和其他迭代。
    """
    try:
        return await build_assertion(spec, judge_client).evaluate(result)
    except Exception as e:
        logger.error(f"断言 {spec.id} 执行出错: {e}")
        return AssertionResult(
            passed=False,
            assertion_type=spec.type,
            message=f"断言执行出错: {e}",
            assertion_id=spec.id,
            desc=spec.desc,
            pattern=spec.pattern,
            expected=spec.expect.model_dump() if isinstance(spec.expect, OutputContainsExpect) else spec.expect,
            error=str(e),
        )
