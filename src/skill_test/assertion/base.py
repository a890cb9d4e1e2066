"""断言协议 / 基类"""

from abc import ABC, abstractmethod
from typing import Any

from skill_test.schema.result import AssertionResult, ExecutionResult
from skill_test.schema.test_case import AssertionSpec


class BaseAssertion(ABC):
    """断言基类，所有断言类型必须实现 evaluate 方法"""

    def __init__(self, spec: AssertionSpec):
        self.spec = spec

    @abstractmethod
    async def evaluate(self, result: ExecutionResult) -> AssertionResult:
        ...

    def _result(
        self,
        passed: bool,
        message: str,
        expected: Any | None = None,
        actual: Any | None = None,
        error: str | None = None,
    ) -> AssertionResult:
        return AssertionResult(
            passed=passed,
            assertion_type=self.spec.type,
            message=message,
            assertion_id=self.spec.id,
            desc=self.spec.desc,
            pattern=self.spec.pattern,
            expected=expected,
            actual=actual,
            error=error,
        )
