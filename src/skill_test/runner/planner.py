"""运行计划 — 为每个 skill 加载配置与测试用例，解析每个用例的有效配置"""

from skill_test.core.config import load_skill_config, resolve_effective_config
from skill_test.core.exceptions import ConfigError
from skill_test.core.logging import get_logger
from skill_test.loader.skill_dir import SkillDir
from skill_test.loader.suite_loader import load_skill_tests
from skill_test.runner.driver import resolve_hook_path
from skill_test.runner.engine import PlannedTest, SkillPlan
from skill_test.schema.config import CaseOverrides, ConfigOverrides

logger = get_logger(__name__)


def build_skill_plan(
    skill: SkillDir,
    overrides: ConfigOverrides | None = None,
    test_filter: str | None = None,
) -> SkillPlan:
    """加载一个 skill 的测试并生成执行计划；test_filter 按测试 ID 子串过滤"""
    file_config = load_skill_config(skill.path)
    base = resolve_effective_config(file_config, overrides)

    hook_path = resolve_hook_path(skill, base)
    if hook_path is not None and not hook_path.is_file():
        raise ConfigError(f"hook 脚本不存在: {hook_path}")

    tests: list[PlannedTest] = []
    for suite in load_skill_tests(skill, base):
        for case in suite.cases:
            if test_filter and test_filter not in case.id:
                continue
            case_layer = CaseOverrides(
                model=case.model,
                timeout=case.timeout,
                iterations=case.iterations,
                threshold=case.threshold,
            )
            config = resolve_effective_config(file_config, overrides, case_layer)
            tests.append(PlannedTest(case=case, config=config))

    logger.debug(f"skill '{skill.name}': {len(tests)} 个测试用例待执行")
    return SkillPlan(skill=skill, tests=tuple(tests))
