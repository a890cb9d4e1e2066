"""测试结果模型"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class FailureKind(str, Enum):
    """单次 agent 调用的失败类型（与断言失败区分）"""

    TIMEOUT = "timeout"
    EXIT_ERROR = "exit_error"
    INVALID_OUTPUT = "invalid_output"
    HOOK_ERROR = "hook_error"


@dataclass(frozen=True)
class ExecutionResult:
    """一次 agent 调用的结果"""

    output: str
    tool_calls: tuple[str, ...] = ()
    duration_ms: float = 0.0
    exit_code: int | None = None
    failure: FailureKind | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class AssertionResult:
    """单条断言的评估结果"""

    passed: bool
    assertion_type: str
    message: str
    assertion_id: str = ""
    desc: str | None = None
    pattern: str | None = None
    expected: Any | None = None
    actual: Any | None = None
    error: str | None = None

    @property
    def display_name(self) -> str:
        return self.desc or self.assertion_id


@dataclass(frozen=True)
class IterationOutcome:
    """单次迭代记录；golden 断言失败不影响 passed"""

    test_id: str
    iteration: int
    passed: bool
    execution: ExecutionResult
    output_hash: str = ""
    assertions: tuple[AssertionResult, ...] = ()
    golden_assertions: tuple[AssertionResult, ...] = ()

    @property
    def failures(self) -> list[str]:
        return [a.assertion_id for a in self.assertions if not a.passed]

    @property
    def golden_failures(self) -> list[str]:
        return [a.assertion_id for a in self.golden_assertions if not a.passed]


@dataclass
class TestVerdict:
    """单个测试用例的聚合结果"""

    __test__ = False

    id: str
    iterations: int
    passed: int
    failed: int
    pass_rate: float
    threshold: int
    verdict: str  # "Pass" | "Fail"
    desc: str | None = None
    prompt: str = ""
    failures: list[str] = field(default_factory=list)
    golden_failures: list[str] = field(default_factory=list)
    called_tools: list[str] = field(default_factory=list)
    outcomes: list[IterationOutcome] = field(default_factory=list)

    @property
    def is_pass(self) -> bool:
        return self.verdict == "Pass"


@dataclass
class SkillVerdict:
    """单个 skill 目录的聚合结果：任一测试失败则 skill 失败"""

    name: str
    path: Path
    tests: list[TestVerdict] = field(default_factory=list)
    verdict: str = "Pass"
    error: str | None = None

    @property
    def is_pass(self) -> bool:
        return self.verdict == "Pass"


@dataclass
class RunSummary:
    total_skills: int = 0
    passed_skills: int = 0
    failed_skills: int = 0
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0


@dataclass
class RunReport:
    """一次运行的完整结果树"""

    skills: list[SkillVerdict] = field(default_factory=list)
    summary: RunSummary = field(default_factory=RunSummary)

    @property
    def all_passed(self) -> bool:
        return all(s.is_pass for s in self.skills)
