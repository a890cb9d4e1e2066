"""主测试执行引擎"""

import asyncio
import hashlib
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from skill_test.assertion.builder import evaluate
from skill_test.client.judge_llm import JudgeClient, create_judge_client
from skill_test.core.exceptions import AgentLaunchError
from skill_test.core.logging import get_logger
from skill_test.loader.skill_dir import SkillDir
from skill_test.runner.driver import ExecutionDriver
from skill_test.schema.config import EffectiveConfig
from skill_test.schema.result import (
    AssertionResult,
    ExecutionResult,
    IterationOutcome,
    RunReport,
    RunSummary,
    SkillVerdict,
    TestVerdict,
)
from skill_test.schema.test_case import TestCase

logger = get_logger(__name__)

PASS = "Pass"
FAIL = "Fail"


@dataclass(frozen=True)
class PlannedTest:
    """测试用例 + 该用例的有效配置"""

    case: TestCase
    config: EffectiveConfig


@dataclass(frozen=True)
class SkillPlan:
    skill: SkillDir
    tests: tuple[PlannedTest, ...] = ()


def compute_pass_rate(passed: int, iterations: int) -> float:
    """通过率百分比，保留两位小数"""
    if iterations <= 0:
        return 0.0
    return round(100 * passed / iterations, 2)


def output_hash(output: str) -> str:
    return hashlib.sha256(output.encode("utf-8")).hexdigest()


def aggregate_test(planned: PlannedTest, outcomes: Sequence[IterationOutcome]) -> TestVerdict:
    """把一个测试用例的全部迭代记录聚合成 TestVerdict（与完成顺序无关）"""
    ordered = sorted(outcomes, key=lambda o: o.iteration)
    iterations = len(ordered)
    passed = sum(1 for o in ordered if o.passed)
    pass_rate = compute_pass_rate(passed, iterations)
    threshold = planned.config.threshold

    return TestVerdict(
        id=planned.case.id,
        desc=planned.case.desc,
        prompt=planned.case.prompt,
        iterations=iterations,
        passed=passed,
        failed=iterations - passed,
        pass_rate=pass_rate,
        threshold=threshold,
        verdict=PASS if pass_rate >= threshold else FAIL,
        failures=[f"iteration {o.iteration}: {', '.join(o.failures)}" for o in ordered if o.failures],
        golden_failures=[
            f"iteration {o.iteration}: {', '.join(o.golden_failures)}" for o in ordered if o.golden_failures
        ],
        called_tools=sorted({name for o in ordered for name in o.execution.tool_calls}),
        outcomes=ordered,
    )


def aggregate_skill(skill: SkillDir, tests: list[TestVerdict]) -> SkillVerdict:
    """任一测试失败则 skill 失败；没有测试的 skill 视为通过"""
    verdict = PASS if all(t.is_pass for t in tests) else FAIL
    return SkillVerdict(name=skill.name, path=skill.path, tests=tests, verdict=verdict)


def summarize(skills: list[SkillVerdict]) -> RunSummary:
    tests = [t for s in skills for t in s.tests]
    passed_skills = sum(1 for s in skills if s.is_pass)
    passed_tests = sum(1 for t in tests if t.is_pass)
    return RunSummary(
        total_skills=len(skills),
        passed_skills=passed_skills,
        failed_skills=len(skills) - passed_skills,
        total_tests=len(tests),
        passed_tests=passed_tests,
        failed_tests=len(tests) - passed_tests,
    )


class RunListener:
    """执行进度回调；默认不做任何事，CLI 的表格模式用它实时输出进度"""

    def on_iteration(self, skill: SkillDir, planned: PlannedTest, outcome: IterationOutcome) -> None:
        return None

    def on_test_completed(self, skill: SkillDir, verdict: TestVerdict) -> None:
        return None


class TestEngine:
    """
    主编排器：展开 (测试用例, 迭代) 单元 → 有界并发执行 → 汇总

    职责：
    - 通过 Semaphore 控制并发度（parallel <= 0 时退化为顺序执行）
    - 每个单元产出不可变的 IterationOutcome，按 (skill 序号, 用例序号) 归组后聚合
    - 单次迭代失败只计入统计；agent 无法启动时停止调度新单元并抛出 AgentLaunchError，
      已完成的测试用例结果挂在异常的 partial_results 上
    """

    __test__ = False

    def __init__(
        self,
        driver: ExecutionDriver | None = None,
        parallel: int = 0,
        judge_factory: Callable[[EffectiveConfig], JudgeClient] = create_judge_client,
        listener: RunListener | None = None,
    ):
        self.driver = driver or ExecutionDriver()
        self.parallel = parallel
        self.semaphore = asyncio.Semaphore(max(parallel, 1))
        self.listener = listener or RunListener()
        self._judge_factory = judge_factory
        self._judges: dict[str, JudgeClient] = {}
        self._outcomes: dict[tuple[int, int], list[IterationOutcome]] = defaultdict(list)
        self._aborted = False

    async def run(self, plans: Sequence[SkillPlan]) -> RunReport:
        self._outcomes.clear()
        units = [
            (plan_index, test_index, iteration)
            for plan_index, plan in enumerate(plans)
            for test_index, planned in enumerate(plan.tests)
            for iteration in range(1, planned.config.iterations + 1)
        ]
        logger.debug(f"共 {len(units)} 个执行单元，并发度 {max(self.parallel, 1)}")

        try:
            results = await asyncio.gather(
                *(self._run_unit_with_semaphore(plans, *unit) for unit in units),
                return_exceptions=True,
            )
        finally:
            await self._close_judges()

        # 处理异常结果
        for result in results:
            if isinstance(result, AgentLaunchError):
                result.partial_results = self._completed_skills(plans)
                raise result
        for result in results:
            if isinstance(result, BaseException):
                raise result

        skills = []
        for plan_index, plan in enumerate(plans):
            tests = [
                aggregate_test(planned, self._outcomes[(plan_index, test_index)])
                for test_index, planned in enumerate(plan.tests)
            ]
            skills.append(aggregate_skill(plan.skill, tests))
        return RunReport(skills=skills, summary=summarize(skills))

    def _completed_skills(self, plans: Sequence[SkillPlan]) -> list[SkillVerdict]:
        """中止时收集所有迭代都已完成的测试用例"""
        skills = []
        for plan_index, plan in enumerate(plans):
            tests = []
            for test_index, planned in enumerate(plan.tests):
                outcomes = self._outcomes.get((plan_index, test_index), [])
                if outcomes and len(outcomes) == planned.config.iterations:
                    tests.append(aggregate_test(planned, outcomes))
            skills.append(aggregate_skill(plan.skill, tests))
        return skills

    async def _run_unit_with_semaphore(
        self, plans: Sequence[SkillPlan], plan_index: int, test_index: int, iteration: int
    ) -> IterationOutcome | None:
        plan = plans[plan_index]
        planned = plan.tests[test_index]
        async with self.semaphore:
            if self._aborted:
                return None
            try:
                execution = await self.driver.execute(planned.case.prompt, planned.config, plan.skill)
            except AgentLaunchError:
                self._aborted = True
                raise

            outcome = await self._evaluate_iteration(plan.skill, planned, iteration, execution)
            logger.debug(
                f"[{plan.skill.name}] {planned.case.id} 第 {iteration}/{planned.config.iterations} 次: "
                f"{'通过' if outcome.passed else '失败 ' + ', '.join(outcome.failures)}"
            )

        collected = self._outcomes[(plan_index, test_index)]
        collected.append(outcome)
        self.listener.on_iteration(plan.skill, planned, outcome)
        if len(collected) == planned.config.iterations:
            self.listener.on_test_completed(plan.skill, aggregate_test(planned, collected))
        return outcome

    async def _evaluate_iteration(
        self, skill: SkillDir, planned: PlannedTest, iteration: int, execution: ExecutionResult
    ) -> IterationOutcome:
        case = planned.case
        digest = output_hash(execution.output)

        if not execution.ok:
            synthetic = AssertionResult(
                passed=False,
                assertion_type="execution",
                message=f"{execution.failure.value}: {execution.error}",
                assertion_id="execution",
                error=execution.error,
            )
            return IterationOutcome(
                test_id=case.id,
                iteration=iteration,
                passed=False,
                execution=execution,
                output_hash=digest,
                assertions=(synthetic,),
            )

        judge = None
        if any(spec.type == "llm_eval" for spec in case.assertions + case.golden_assertions):
            judge = self._judge_for(skill, planned.config)

        # 不短路：所有断言都评估，保证诊断信息完整
        required = [await evaluate(spec, execution, judge) for spec in case.assertions]
        golden = [await evaluate(spec, execution, judge) for spec in case.golden_assertions]

        return IterationOutcome(
            test_id=case.id,
            iteration=iteration,
            passed=all(r.passed for r in required),
            execution=execution,
            output_hash=digest,
            assertions=tuple(required),
            golden_assertions=tuple(golden),
        )

    def _judge_for(self, skill: SkillDir, config: EffectiveConfig) -> JudgeClient:
        if skill.name not in self._judges:
            self._judges[skill.name] = self._judge_factory(config)
        return self._judges[skill.name]

    async def _close_judges(self) -> None:
        for judge in self._judges.values():
            await judge.close()
        self._judges.clear()
