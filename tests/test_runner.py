"""测试执行引擎、执行驱动、hook 与 agent 输出解析"""

import asyncio
import json

import pytest


def _config(**fields):
    from skill_test.core.config import resolve_effective_config
    from skill_test.schema.config import SkillTestConfig

    return resolve_effective_config(SkillTestConfig.model_validate(fields))


def _spec(**fields):
    from skill_test.schema.test_case import AssertionSpec

    return AssertionSpec.model_validate(fields)


def _planned(case_id="t1", prompt="Say hello", assertions=(), golden=(), **config_fields):
    from skill_test.runner.engine import PlannedTest
    from skill_test.schema.test_case import TestCase

    case = TestCase(id=case_id, prompt=prompt, assertions=tuple(assertions), golden_assertions=tuple(golden))
    return PlannedTest(case=case, config=_config(**config_fields))


class ScriptedDriver:
    """按提示词返回预设输出的假驱动，记录调用次数和最大并发"""

    def __init__(self, outputs=None, delay=0.01, error=None):
        self.outputs = outputs or {}
        self.delay = delay
        self.error = error
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def execute(self, prompt, config, skill):
        from skill_test.schema.result import ExecutionResult

        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            value = self.outputs.get(prompt, "")
            if isinstance(value, BaseException):
                raise value
            if isinstance(value, ExecutionResult):
                return value
            if callable(value):
                value = value(self.calls)
            return ExecutionResult(output=value, tool_calls=("Skill",))
        finally:
            self.active -= 1


class TestPassRate:
    """测试通过率与判定边界"""

    def test_compute_pass_rate(self):
        from skill_test.runner.engine import compute_pass_rate

        assert compute_pass_rate(8, 10) == 80.0
        assert compute_pass_rate(2, 3) == 66.67
        assert compute_pass_rate(0, 0) == 0.0

    def _outcomes(self, passed, total):
        from skill_test.schema.result import AssertionResult, ExecutionResult, IterationOutcome

        outcomes = []
        for i in range(1, total + 1):
            ok = i <= passed
            result = AssertionResult(passed=ok, assertion_type="contains", message="", assertion_id="has-hello")
            outcomes.append(
                IterationOutcome(
                    test_id="t1",
                    iteration=i,
                    passed=ok,
                    execution=ExecutionResult(output="", tool_calls=("Read",) if i % 2 else ("Skill",)),
                    assertions=(result,),
                )
            )
        return outcomes

    def test_threshold_boundary(self):
        from skill_test.runner.engine import aggregate_test

        planned = _planned(threshold=80)
        at_threshold = aggregate_test(planned, self._outcomes(8, 10))
        below = aggregate_test(planned, self._outcomes(7, 10))
        assert at_threshold.verdict == "Pass"
        assert at_threshold.pass_rate == 80.0
        assert below.verdict == "Fail"
        assert below.failed == 3

    def test_aggregation_independent_of_order(self):
        from skill_test.runner.engine import aggregate_test

        planned = _planned(threshold=50)
        outcomes = self._outcomes(3, 5)
        forward = aggregate_test(planned, outcomes)
        backward = aggregate_test(planned, list(reversed(outcomes)))
        assert forward == backward
        assert forward.failures == ["iteration 4: has-hello", "iteration 5: has-hello"]
        assert forward.called_tools == ["Read", "Skill"]

    def test_skill_verdict_is_and_of_tests(self, make_skill):
        from skill_test.loader.skill_dir import detect_skill
        from skill_test.runner.engine import aggregate_skill, aggregate_test

        skill = detect_skill(make_skill())
        good = aggregate_test(_planned("good", threshold=50), self._outcomes(5, 5))
        bad = aggregate_test(_planned("bad", threshold=50), self._outcomes(1, 5))
        assert aggregate_skill(skill, [good]).verdict == "Pass"
        assert aggregate_skill(skill, [good, bad]).verdict == "Fail"
        assert aggregate_skill(skill, []).verdict == "Pass"


class TestEngine:
    """测试引擎调度与聚合（使用假驱动）"""

    def _plan(self, make_skill, tests):
        from skill_test.loader.skill_dir import detect_skill
        from skill_test.runner.engine import SkillPlan

        return SkillPlan(skill=detect_skill(make_skill()), tests=tuple(tests))

    def test_runs_every_iteration(self, make_skill):
        from skill_test.runner.engine import TestEngine

        hello = _spec(id="has-hello", type="contains", pattern="Hello")
        plan = self._plan(make_skill, [_planned(assertions=[hello], iterations=4)])
        driver = ScriptedDriver({"Say hello": "Hello, World"})

        report = asyncio.run(TestEngine(driver=driver).run([plan]))
        (verdict,) = report.skills[0].tests
        assert driver.calls == 4
        assert verdict.passed == 4
        assert verdict.pass_rate == 100.0
        assert report.all_passed
        assert report.summary.passed_tests == 1

    def test_parallel_matches_sequential(self, make_skill):
        from skill_test.runner.engine import TestEngine

        hello = _spec(id="has-hello", type="contains", pattern="Hello")
        tests = [
            _planned("a", "Say hello", [hello], iterations=5, threshold=100),
            _planned("b", "Say bye", [hello], iterations=5, threshold=0),
        ]
        outputs = {"Say hello": "Hello", "Say bye": "Goodbye"}

        def _summarize(report):
            return [(t.id, t.passed, t.pass_rate, t.verdict, t.failures) for t in report.skills[0].tests]

        sequential_driver = ScriptedDriver(outputs)
        parallel_driver = ScriptedDriver(outputs)
        sequential = asyncio.run(TestEngine(driver=sequential_driver, parallel=0).run([self._plan(make_skill, tests)]))
        parallel = asyncio.run(TestEngine(driver=parallel_driver, parallel=4).run([self._plan(make_skill, tests)]))

        assert _summarize(sequential) == _summarize(parallel)
        assert sequential_driver.max_active == 1
        assert 1 < parallel_driver.max_active <= 4

    def test_golden_failures_do_not_affect_pass(self, make_skill):
        from skill_test.runner.engine import TestEngine

        required = _spec(id="has-hello", type="contains", pattern="Hello")
        golden = _spec(id="mentions-world", type="contains", pattern="Mars")
        plan = self._plan(make_skill, [_planned(assertions=[required], golden=[golden], iterations=2)])

        report = asyncio.run(TestEngine(driver=ScriptedDriver({"Say hello": "Hello, World"})).run([plan]))
        (verdict,) = report.skills[0].tests
        assert verdict.is_pass
        assert verdict.golden_failures == ["iteration 1: mentions-world", "iteration 2: mentions-world"]

    def test_execution_failure_counts_as_failed_iteration(self, make_skill):
        from skill_test.runner.engine import TestEngine
        from skill_test.schema.result import ExecutionResult, FailureKind

        hello = _spec(id="has-hello", type="contains", pattern="Hello")
        failed = ExecutionResult(output="", failure=FailureKind.TIMEOUT, error="agent 执行超时 (10ms)")
        plan = self._plan(make_skill, [_planned(assertions=[hello], iterations=1)])

        report = asyncio.run(TestEngine(driver=ScriptedDriver({"Say hello": failed})).run([plan]))
        (verdict,) = report.skills[0].tests
        assert verdict.failed == 1
        assert verdict.failures == ["iteration 1: execution"]
        synthetic = verdict.outcomes[0].assertions[0]
        assert synthetic.assertion_type == "execution"
        assert "timeout" in synthetic.message

    def test_launch_error_aborts_run(self, make_skill):
        from skill_test.core.exceptions import AgentLaunchError
        from skill_test.runner.engine import TestEngine

        plan = self._plan(make_skill, [_planned(iterations=5)])
        driver = ScriptedDriver(error=AgentLaunchError("无法启动", command="claude", skill_name="demo-skill"))

        with pytest.raises(AgentLaunchError):
            asyncio.run(TestEngine(driver=driver, parallel=0).run([plan]))
        assert driver.calls == 1

    def test_judge_shared_per_skill_and_closed(self, make_skill):
        from unittest.mock import AsyncMock, MagicMock

        from skill_test.runner.engine import TestEngine

        judge = AsyncMock()
        judge.judge.return_value = {"result": True, "reason": "ok"}
        factory = MagicMock(return_value=judge)

        polite = _spec(id="polite", type="llm_eval", pattern="Polite? {{output}}")
        plan = self._plan(make_skill, [_planned(assertions=[polite], iterations=3)])

        report = asyncio.run(TestEngine(driver=ScriptedDriver({"Say hello": "Thanks"}), judge_factory=factory).run([plan]))
        assert report.all_passed
        assert factory.call_count == 1
        assert judge.judge.await_count == 3
        judge.close.assert_awaited_once()

    def test_output_hash_recorded(self, make_skill):
        from skill_test.runner.engine import TestEngine, output_hash

        plan = self._plan(make_skill, [_planned(iterations=1)])
        report = asyncio.run(TestEngine(driver=ScriptedDriver({"Say hello": "abc"})).run([plan]))
        outcome = report.skills[0].tests[0].outcomes[0]
        assert outcome.output_hash == output_hash("abc")
        assert len(outcome.output_hash) == 64

    def test_same_id_in_different_positions_aggregated_separately(self, make_skill):
        from skill_test.runner.engine import TestEngine

        hello = _spec(id="has-hello", type="contains", pattern="Hello")
        tests = [
            _planned("t1", "Say hello", [hello], iterations=2),
            _planned("t1", "Say bye", [hello], iterations=2),
        ]
        driver = ScriptedDriver({"Say hello": "Hello", "Say bye": "Goodbye"})

        report = asyncio.run(TestEngine(driver=driver, parallel=4).run([self._plan(make_skill, tests)]))
        first, second = report.skills[0].tests
        assert (first.prompt, first.passed, first.iterations) == ("Say hello", 2, 2)
        assert (second.prompt, second.passed, second.iterations) == ("Say bye", 0, 2)

    def test_launch_error_keeps_completed_tests(self, make_skill):
        from skill_test.core.exceptions import AgentLaunchError
        from skill_test.runner.engine import TestEngine

        hello = _spec(id="has-hello", type="contains", pattern="Hello")
        tests = [
            _planned("done", "Say hello", [hello], iterations=2),
            _planned("broken", "Say bye", [hello], iterations=2),
        ]
        launch_error = AgentLaunchError("无法启动", command="claude", skill_name="demo-skill")
        driver = ScriptedDriver({"Say hello": "Hello", "Say bye": launch_error})

        with pytest.raises(AgentLaunchError) as exc_info:
            asyncio.run(TestEngine(driver=driver, parallel=0).run([self._plan(make_skill, tests)]))

        (skill,) = exc_info.value.partial_results
        assert skill.name == "demo-skill"
        assert [t.id for t in skill.tests] == ["done"]
        assert skill.tests[0].passed == 2
        assert driver.calls == 3

    def test_assertion_crash_fails_iteration_only(self, make_skill):
        from unittest.mock import patch

        from skill_test.runner.engine import TestEngine

        hello = _spec(id="has-hello", type="contains", pattern="Hello")
        plan = self._plan(make_skill, [_planned(assertions=[hello], iterations=2)])

        with patch("skill_test.assertion.builder.build_assertion", side_effect=RuntimeError("boom")):
            report = asyncio.run(TestEngine(driver=ScriptedDriver({"Say hello": "Hello"})).run([plan]))

        (verdict,) = report.skills[0].tests
        assert verdict.iterations == 2
        assert verdict.failed == 2
        result = verdict.outcomes[0].assertions[0]
        assert result.error == "boom"
        assert "断言执行出错" in result.message

    def test_listener_notified(self, make_skill):
        from unittest.mock import MagicMock

        from skill_test.runner.engine import RunListener, TestEngine

        listener = MagicMock(spec=RunListener)
        tests = [_planned("a", iterations=3), _planned("b", iterations=1)]
        asyncio.run(TestEngine(driver=ScriptedDriver(), parallel=2, listener=listener).run([self._plan(make_skill, tests)]))

        assert listener.on_iteration.call_count == 4
        completed = [c.args[1].id for c in listener.on_test_completed.call_args_list]
        assert sorted(completed) == ["a", "b"]
        for call in listener.on_test_completed.call_args_list:
            verdict = call.args[1]
            assert verdict.iterations == (3 if verdict.id == "a" else 1)


class TestHooks:
    """测试提示词 hook"""

    def test_builtin_hooks(self):
        from skill_test.runner.hooks import apply_hook

        assert asyncio.run(apply_hook("Build it", "none")) == "Build it"
        simple = asyncio.run(apply_hook("Build it", "simple"))
        assert simple.startswith("Note: Check if any available skills")
        assert simple.endswith("\n\nBuild it")
        forced = asyncio.run(apply_hook("Build it", "forced"))
        assert "EVALUATE each available skill" in forced
        assert forced.endswith("---\n\nBuild it")

    def test_custom_hook(self, tmp_path, executable):
        from skill_test.runner.hooks import apply_hook

        script = executable(tmp_path / "hook.sh", '#!/bin/sh\nprintf "PREFIX: "\ncat\necho\n')
        assert asyncio.run(apply_hook("Build it", "custom", script)) == "PREFIX: Build it"

    def test_custom_hook_failure(self, tmp_path, executable):
        from skill_test.core.exceptions import HookError
        from skill_test.runner.hooks import apply_hook

        script = executable(tmp_path / "hook.sh", "#!/bin/sh\necho boom >&2\nexit 1\n")
        with pytest.raises(HookError, match="boom"):
            asyncio.run(apply_hook("Build it", "custom", script))


class TestAgentOutput:
    """测试 agent JSON 输出解析"""

    def test_event_array(self):
        from skill_test.client.agent import parse_agent_output

        events = [
            {"type": "system"},
            {"type": "assistant", "message": {"content": [{"type": "tool_use", "name": "Skill"}]}},
            {"type": "assistant", "message": {"content": [{"type": "tool_use", "name": "Write"}]}},
            {"type": "result", "result": "done"},
        ]
        transcript = parse_agent_output(json.dumps(events))
        assert transcript.output == "done"
        assert transcript.tool_calls == ("Skill", "Write")

    def test_json_lines(self):
        from skill_test.client.agent import parse_agent_output

        stdout = "\n".join(
            [
                json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "part one"}]}}),
                json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "part two"}]}}),
            ]
        )
        transcript = parse_agent_output(stdout)
        assert transcript.output == "part one\npart two"
        assert transcript.tool_calls == ()

    def test_single_result_object(self):
        from skill_test.client.agent import parse_agent_output

        assert parse_agent_output('{"type": "result", "result": "hi"}').output == "hi"

    def test_invalid_output(self):
        from skill_test.client.agent import parse_agent_output

        with pytest.raises(ValueError):
            parse_agent_output("definitely not json")
        with pytest.raises(ValueError, match="为空"):
            parse_agent_output("   ")

    def test_argv(self):
        from skill_test.client.agent import build_agent_argv

        argv = build_agent_argv("claude", "do it", "m1")
        assert argv[:3] == ["claude", "-p", "do it"]
        assert argv[argv.index("--model") + 1] == "m1"
        assert "--dangerously-skip-permissions" in argv


class TestExecutionDriver:
    """测试执行驱动（使用假 agent 脚本）"""

    def _execute(self, skill_dir, prompt="Say hello", **fields):
        from skill_test.loader.skill_dir import detect_skill
        from skill_test.runner.driver import ExecutionDriver

        config = _config(**{"hook": "none", **fields})
        return asyncio.run(ExecutionDriver().execute(prompt, config, detect_skill(skill_dir)))

    def test_success_with_tool_calls(self, make_skill, fake_agent):
        agent = fake_agent(result="Hello, World", tools=["Skill", "Read"])
        result = self._execute(make_skill(), **{"agent-command": str(agent)})
        assert result.ok
        assert result.output == "Hello, World"
        assert result.tool_calls == ("Skill", "Read")
        assert result.exit_code == 0

    def test_non_zero_exit(self, make_skill, fake_agent):
        from skill_test.schema.result import FailureKind

        agent = fake_agent(exit_code=2)
        result = self._execute(make_skill(), **{"agent-command": str(agent)})
        assert result.failure is FailureKind.EXIT_ERROR
        assert result.exit_code == 2

    def test_invalid_output(self, make_skill, fake_agent):
        from skill_test.schema.result import FailureKind

        agent = fake_agent(raw_stdout="<<not json>>")
        result = self._execute(make_skill(), **{"agent-command": str(agent)})
        assert result.failure is FailureKind.INVALID_OUTPUT
        assert result.output == "<<not json>>"

    def test_timeout(self, make_skill, tmp_path, executable):
        from skill_test.schema.result import FailureKind

        agent = executable(tmp_path / "slow-agent", "#!/bin/sh\nexec sleep 5\n")
        result = self._execute(make_skill(), **{"agent-command": str(agent), "timeout": 300})
        assert result.failure is FailureKind.TIMEOUT
        assert result.output == ""

    def test_launch_failure(self, make_skill):
        from skill_test.core.exceptions import AgentLaunchError

        with pytest.raises(AgentLaunchError) as excinfo:
            self._execute(make_skill(), **{"agent-command": "definitely-not-a-real-agent-xyz"})
        assert excinfo.value.skill_name == "demo-skill"

    def test_skill_exposed_in_sandbox(self, make_skill, tmp_path, executable):
        script = """
        #!/bin/sh
        name=$(ls .claude/skills)
        test -f ".claude/skills/$name/SKILL.md" || exit 7
        printf '{"type": "result", "result": "%s"}' "$name"
        """
        agent = executable(tmp_path / "ls-agent", script)
        result = self._execute(make_skill("svelte-runes"), **{"agent-command": str(agent)})
        assert result.ok
        assert result.output == "svelte-runes"

    def test_hook_applied_before_agent(self, make_skill, tmp_path, executable):
        script = """
        #!/bin/sh
        while [ "$1" != "-p" ]; do shift; done
        printf '%s' "$2" > "$(dirname "$0")/prompt.txt"
        echo '{"type": "result", "result": "ok"}'
        """
        agent = executable(tmp_path / "echo-agent", script)
        result = self._execute(make_skill(), **{"agent-command": str(agent), "hook": "simple"})
        assert result.ok
        prompt = (tmp_path / "prompt.txt").read_text()
        assert prompt.startswith("Note: Check if any available skills")
        assert prompt.endswith("Say hello")

    def test_hook_failure(self, make_skill, executable):
        from skill_test.schema.result import FailureKind

        skill_dir = make_skill()
        executable(skill_dir / "hooks" / "bad.sh", "#!/bin/sh\nexit 3\n")
        result = self._execute(skill_dir, **{"hook": "custom", "hook-path": "hooks/bad.sh"})
        assert result.failure is FailureKind.HOOK_ERROR

    def test_truncate_output(self):
        from skill_test.runner.driver import truncate_output

        assert truncate_output("abc", limit=5) == "abc"
        assert truncate_output("abcdefgh", limit=5) == "abcde... [truncated]"


class TestPlanner:
    """测试执行计划生成"""

    SUITE = """
    - id: greeting-basic
      prompt: Say hello
      iterations: 2
      threshold: 50
      assertions:
        - id: has-hello
          type: contains
          pattern: Hello
    - id: farewell
      prompt: Say bye
      assertions: []
    """

    def test_case_overrides_and_filter(self, make_skill):
        from skill_test.loader.skill_dir import detect_skill
        from skill_test.runner.planner import build_skill_plan
        from skill_test.schema.config import ConfigOverrides

        skill = detect_skill(make_skill(config="iterations: 5\n", files={"skill-tests/test-a.yaml": self.SUITE}))
        plan = build_skill_plan(skill, ConfigOverrides(iterations=3))
        configs = {p.case.id: p.config for p in plan.tests}
        assert configs["greeting-basic"].iterations == 2
        assert configs["greeting-basic"].threshold == 50
        assert configs["farewell"].iterations == 3

        filtered = build_skill_plan(skill, ConfigOverrides(), test_filter="greet")
        assert [p.case.id for p in filtered.tests] == ["greeting-basic"]

    def test_missing_custom_hook_script(self, make_skill):
        from skill_test.core.exceptions import ConfigError
        from skill_test.loader.skill_dir import detect_skill
        from skill_test.runner.planner import build_skill_plan

        skill = detect_skill(
            make_skill(config="hook: custom\nhook-path: hooks/missing.sh\n", files={"skill-tests/test-a.yaml": self.SUITE})
        )
        with pytest.raises(ConfigError, match="hook 脚本不存在"):
            build_skill_plan(skill)
