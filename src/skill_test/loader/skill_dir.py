"""Skill 目录识别

skill 目录以包含 SKILL.md 为标志，SKILL.md 的 frontmatter 中必须有 name 字段。
"""

import glob
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from skill_test.core.exceptions import ConfigError

SKILL_FILE_NAME = "SKILL.md"
TESTS_DIR_NAME = "skill-tests"
LOG_DIR_NAME = ".skill-test-logs"

_GLOB_CHARS = set("*?[")


@dataclass(frozen=True)
class SkillDir:
    name: str
    path: Path

    @property
    def tests_dir(self) -> Path:
        """断言与测试文件的根目录，file: 引用不能越过该目录"""
        return self.path / TESTS_DIR_NAME

    @property
    def log_dir(self) -> Path:
        return self.path / LOG_DIR_NAME


def parse_skill_name(skill_md: Path) -> str:
    """从 SKILL.md 的 frontmatter 中读取 name"""
    content = skill_md.read_text(encoding="utf-8").lstrip("\ufeff")
    lines = content.splitlines()
    if not lines or lines[0].strip() != "---":
        raise ConfigError(f"SKILL.md 缺少 frontmatter: {skill_md}")

    for line in lines[1:]:
        stripped = line.strip()
        if stripped == "---":
            break
        key, sep, value = stripped.partition(":")
        if sep and key.strip() == "name":
            name = value.strip().strip("\"'")
            if not name:
                raise ConfigError(f"SKILL.md 的 name 字段为空: {skill_md}")
            return name
    else:
        raise ConfigError(f"SKILL.md 的 frontmatter 未闭合: {skill_md}")

    raise ConfigError(f"SKILL.md 的 frontmatter 缺少 name 字段: {skill_md}")


def detect_skill(path: str | Path) -> SkillDir:
    """将一个目录识别为 skill 目录"""
    path = Path(path)
    if not path.is_dir():
        raise ConfigError(f"目录不存在: {path}")
    skill_md = path / SKILL_FILE_NAME
    if not skill_md.is_file():
        raise ConfigError(f"不是 skill 目录（缺少 {SKILL_FILE_NAME}）: {path}")
    return SkillDir(name=parse_skill_name(skill_md), path=path.resolve())


def _expand(arg: str) -> list[Path]:
    if not _GLOB_CHARS & set(arg):
        return [Path(arg)]
    matches = [Path(p) for p in glob.glob(arg) if (Path(p) / SKILL_FILE_NAME).is_file()]
    if not matches:
        raise ConfigError(f"模式未匹配到任何 skill 目录: {arg}")
    return matches


def resolve_skill_dirs(args: Sequence[str]) -> list[SkillDir]:
    """解析命令行给出的目录（支持 glob），返回按路径排序、去重后的 skill 列表"""
    paths: list[Path] = []
    for arg in args or ["."]:
        paths.extend(_expand(arg))

    skills: dict[Path, SkillDir] = {}
    for path in paths:
        skill = detect_skill(path)
        skills.setdefault(skill.path, skill)

    result = sorted(skills.values(), key=lambda s: s.path)

    seen: dict[str, Path] = {}
    for skill in result:
        if skill.name in seen:
            raise ConfigError(
                f"skill 名称重复: '{skill.name}' ({seen[skill.name]} 与 {skill.path})"
            )
        seen[skill.name] = skill.path
    return result
