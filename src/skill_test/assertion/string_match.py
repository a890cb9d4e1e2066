"""文本断言：regex, contains, line_count"""

import re

from skill_test.assertion.base import BaseAssertion
from skill_test.schema.result import AssertionResult, ExecutionResult


class RegexAssertion(BaseAssertion):
    """正则表达式匹配（非锚定搜索）"""

    async def evaluate(self, result: ExecutionResult) -> AssertionResult:
        match = re.search(self.spec.pattern, result.output)
        found = match is not None
        want_present = self.spec.expect == "present"
        passed = found == want_present
        if found:
            message = f"匹配 /{self.spec.pattern}/"
        else:
            message = f"未匹配 /{self.spec.pattern}/"
        return self._result(
            passed=passed,
            message=message,
            expected=self.spec.expect,
            actual=match.group() if match else "no match",
        )


class ContainsAssertion(BaseAssertion):
    """字面子串包含 / 不包含"""

    async def evaluate(self, result: ExecutionResult) -> AssertionResult:
        found = self.spec.pattern in result.output
        want_present = self.spec.expect == "present"
        passed = found == want_present
        message = f"{'包含' if found else '未包含'} \"{self.spec.pattern}\""
        return self._result(
            passed=passed,
            message=message,
            expected=self.spec.expect,
            actual="found" if found else "not found",
        )


def count_lines(text: str) -> int:
    """按换行分割计数，结尾换行不额外计一行"""
    return len(text.splitlines())


class LineCountAssertion(BaseAssertion):
    """行数落在闭区间 [min, max]，未设置的一端视为无界"""

    async def evaluate(self, result: ExecutionResult) -> AssertionResult:
        lines = count_lines(result.output)
        low, high = self.spec.min, self.spec.max
        passed = (low is None or lines >= low) and (high is None or lines <= high)
        bounds = f"[{low if low is not None else 0}, {high if high is not None else '∞'}]"
        message = f"行数 {lines} {'在' if passed else '不在'}范围 {bounds} 内"
        return self._result(passed=passed, message=message, expected=bounds, actual=lines)
