"""测试文件加载器

两个阶段：
- parse：YAML 解析 + 形态识别 + Pydantic 校验。单个文件失败时由 strict 决定是中止还是跳过
- build：断言引用展开（file: / 命名引用），错误一律致命
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError

from skill_test.core.exceptions import LoadError, TestManifestError, YAMLValidationError
from skill_test.core.logging import get_logger
from skill_test.loader.discovery import discover_test_files
from skill_test.loader.resolver import AssertionResolver
from skill_test.loader.skill_dir import SkillDir
from skill_test.schema.config import EffectiveConfig
from skill_test.schema.test_case import (
    AssertionSpec,
    CaseFields,
    ScenarioFileSpec,
    TestCase,
    TestCaseSpec,
    TestSuiteFile,
)
from skill_test.utils.yaml_loader import load_yaml_document, validate_data

logger = get_logger(__name__)


@dataclass
class ParsedSuite:
    """已通过 schema 校验、尚未展开断言引用的测试文件"""

    path: Path
    shape: Literal["list", "scenario"]
    cases: list[tuple[str, CaseFields]] = field(default_factory=list)
    desc: str | None = None
    named_assertions: dict[str, AssertionSpec] = field(default_factory=dict)


def _parse_list_form(data: list[Any], path: Path) -> ParsedSuite:
    cases: list[tuple[str, CaseFields]] = []
    seen: set[str] = set()
    for index, item in enumerate(data):
        spec = validate_data(item, TestCaseSpec, f"{path} [第 {index + 1} 项]")
        if spec.id in seen:
            raise YAMLValidationError(f"测试 ID 重复: '{spec.id}' ({path})", file_path=str(path))
        seen.add(spec.id)
        cases.append((spec.id, spec))
    return ParsedSuite(path=path, shape="list", cases=cases)


def _parse_scenario_form(data: dict[str, Any], path: Path) -> ParsedSuite:
    spec = validate_data(data, ScenarioFileSpec, path)

    named: dict[str, AssertionSpec] = {}
    for name, definition in spec.assertions.items():
        try:
            named[name] = AssertionSpec.model_validate({**definition, "id": name})
        except ValidationError as e:
            raise YAMLValidationError(
                f"命名断言 '{name}' 定义无效 ({path}):\n{e}", file_path=str(path)
            ) from e

    cases = [(scenario_id, spec.scenarios[scenario_id]) for scenario_id in sorted(spec.scenarios)]
    return ParsedSuite(path=path, shape="scenario", cases=cases, desc=spec.desc, named_assertions=named)


def parse_suite_file(path: Path) -> ParsedSuite:
    """解析单个测试文件并识别形态（顶层列表 / 含 scenarios 的映射）"""
    data = load_yaml_document(path)
    if isinstance(data, list):
        return _parse_list_form(data, path)
    if isinstance(data, dict) and "scenarios" in data:
        return _parse_scenario_form(data, path)
    raise YAMLValidationError(
        f"无法识别的测试文件格式（应为测试列表或包含 scenarios 的映射）: {path}", file_path=str(path)
    )


def build_suite(parsed: ParsedSuite, assertions_root: Path) -> TestSuiteFile:
    """展开断言引用，生成规范化的 TestSuiteFile"""
    resolver = AssertionResolver(assertions_root, parsed.named_assertions)
    cases = []
    for case_id, spec in parsed.cases:
        cases.append(
            TestCase(
                id=case_id,
                prompt=spec.prompt,
                assertions=resolver.resolve(spec.assertions, parsed.path, case_id),
                golden_assertions=resolver.resolve(spec.golden_assertions, parsed.path, case_id),
                desc=spec.desc,
                iterations=spec.iterations,
                model=spec.model,
                timeout=spec.timeout,
                threshold=spec.threshold,
                source=parsed.path,
            )
        )
    return TestSuiteFile(
        path=parsed.path,
        cases=tuple(cases),
        desc=parsed.desc,
        named_assertions=parsed.named_assertions,
    )


def load_suite_file(path: Path, assertions_root: Path) -> TestSuiteFile:
    return build_suite(parse_suite_file(path), assertions_root)


def _check_unique_case_ids(parsed: list[ParsedSuite]) -> None:
    """测试 ID 在整个 skill 内唯一（跨文件）"""
    owners: dict[str, Path] = {}
    for suite in parsed:
        for case_id, _ in suite.cases:
            if case_id in owners:
                raise LoadError(f"测试 ID 重复: '{case_id}' 同时出现在 {owners[case_id]} 和 {suite.path}")
            owners[case_id] = suite.path


def load_skill_tests(skill: SkillDir, config: EffectiveConfig) -> list[TestSuiteFile]:
    """发现并加载一个 skill 的全部测试文件"""
    files = discover_test_files(skill.path, config.test_patterns, config.exclude_patterns)
    if not files:
        message = f"skill '{skill.name}' 未找到匹配的测试文件 (patterns: {', '.join(config.test_patterns)})"
        if config.strict:
            raise LoadError(message)
        logger.warning(message)
        return []

    parsed: list[ParsedSuite] = []
    failures: list[tuple[str, str]] = []
    for path in files:
        try:
            parsed.append(parse_suite_file(path))
        except YAMLValidationError as e:
            if config.strict:
                failures.append((str(path), str(e)))
            else:
                logger.warning(f"跳过无法加载的测试文件 {path}: {e}")

    if failures:
        raise TestManifestError(failures)

    _check_unique_case_ids(parsed)
    suites = [build_suite(p, skill.tests_dir) for p in parsed]
    logger.debug(f"skill '{skill.name}' 加载了 {sum(len(s.cases) for s in suites)} 个测试用例")
    return suites
