"""llm_eval 断言 — 用独立的小模型对输出做语义评审

非确定性：同一输出多次评审可能得到不同结论，建议只用于 golden_assertions。
"""

import json

from jsonschema import Draft7Validator

from skill_test.assertion.base import BaseAssertion
from skill_test.client.judge_llm import JudgeClient
from skill_test.core.exceptions import JudgeError
from skill_test.core.logging import get_logger
from skill_test.schema.result import AssertionResult, ExecutionResult
from skill_test.schema.test_case import AssertionSpec
from skill_test.utils.template import render_output

logger = get_logger(__name__)

DEFAULT_RESPONSE_SCHEMA = '{"result": boolean, "reason": string}'

RESPONSE_INSTRUCTION = """

Respond with JSON matching this schema: {schema}
Set "result" to true if the evaluation passes, false otherwise. Include a brief "reason" explaining your judgment."""


def build_eval_prompt(spec: AssertionSpec, output: str) -> str:
    schema = json.dumps(spec.json_schema, ensure_ascii=False) if spec.json_schema else DEFAULT_RESPONSE_SCHEMA
    return render_output(spec.pattern, output) + RESPONSE_INSTRUCTION.format(schema=schema)


class LLMEvalAssertion(BaseAssertion):
    """将 {{output}} 替换为 agent 输出后交给 Judge，比较 result 与 expect"""

    def __init__(self, spec: AssertionSpec, judge_client: JudgeClient):
        super().__init__(spec)
        self.judge_client = judge_client

    async def evaluate(self, result: ExecutionResult) -> AssertionResult:
        spec = self.spec
        prompt = build_eval_prompt(spec, result.output)

        try:
            data = await self.judge_client.judge(prompt, timeout_ms=spec.timeout_ms)
        except JudgeError as e:
            logger.error(f"llm_eval 断言 {spec.id} 评审失败: {e}")
            return self._result(
                passed=False,
                message=f"Judge 调用失败: {e}",
                expected=spec.expect,
                error=str(e),
            )

        if spec.json_schema:
            schema_error = self._validate_schema(data)
            if schema_error:
                return self._result(
                    passed=False,
                    message=f"Judge 响应不符合 json_schema: {schema_error}",
                    expected=spec.expect,
                    actual=data,
                    error=schema_error,
                )

        verdict = data.get("result")
        if not isinstance(verdict, bool):
            return self._result(
                passed=False,
                message="Judge 响应缺少布尔类型的 result 字段",
                expected=spec.expect,
                actual=data,
                error="missing result",
            )

        passed = verdict == (spec.expect == "pass")
        reason = str(data.get("reason", ""))
        return self._result(
            passed=passed,
            message=reason or f"Judge 判定 result={verdict}",
            expected=spec.expect,
            actual="pass" if verdict else "fail",
        )

    def _validate_schema(self, data: dict) -> str | None:
        validator = Draft7Validator(self.spec.json_schema)
        errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
        if not errors:
            return None
        return "; ".join(f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors)
