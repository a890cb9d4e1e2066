"""工具调用断言：对 agent 的工具调用名序列做正则匹配"""

import re

from skill_test.assertion.base import BaseAssertion
from skill_test.schema.result import AssertionResult, ExecutionResult


class ToolCalledAssertion(BaseAssertion):
    """present：至少一个工具名匹配；absent：没有任何工具名匹配"""

    async def evaluate(self, result: ExecutionResult) -> AssertionResult:
        regex = re.compile(self.spec.pattern)
        matched = [name for name in result.tool_calls if regex.search(name)]
        want_present = self.spec.expect == "present"
        passed = bool(matched) == want_present
        if matched:
            message = f"调用了匹配 /{self.spec.pattern}/ 的工具: {', '.join(dict.fromkeys(matched))}"
        else:
            message = f"未调用匹配 /{self.spec.pattern}/ 的工具"
        return self._result(
            passed=passed,
            message=message,
            expected=self.spec.expect,
            actual=list(result.tool_calls),
        )
