"""配置加载与分层合并

优先级（低 → 高）：内置默认值 < skill-test.config.yaml < 命令行参数 < 测试用例字段。
每一层只贡献显式设置的字段，未设置的字段落到下一层。
"""

import os
from pathlib import Path

from pydantic import ValidationError

from skill_test.core.exceptions import ConfigError, YAMLValidationError
from skill_test.schema.config import (
    CONFIG_FILE_NAME,
    CaseOverrides,
    ConfigOverrides,
    EffectiveConfig,
    SkillTestConfig,
)
from skill_test.utils.template import interpolate_dict
from skill_test.utils.yaml_loader import load_yaml


def load_dotenv(env_path: str | Path | None = None) -> None:
    """加载 .env 文件中的环境变量（不覆盖已有值）"""
    if env_path is None:
        env_path = Path.cwd() / ".env"
    path = Path(env_path)
    if not path.exists():
        return
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()
            # 不覆盖已存在的环境变量
            if key not in os.environ:
                os.environ[key] = value


def load_skill_config(skill_dir: str | Path) -> SkillTestConfig:
    """加载并校验 skill 目录下的 skill-test.config.yaml；文件不存在时返回空层"""
    skill_dir = Path(skill_dir)
    path = skill_dir / CONFIG_FILE_NAME
    if not path.exists():
        return SkillTestConfig()

    load_dotenv(skill_dir / ".env")

    try:
        raw = load_yaml(path)
    except YAMLValidationError as e:
        raise ConfigError(f"配置文件解析失败: {e}") from e

    # 仅对 judge 段做环境变量插值（api-key 等敏感字段）
    if isinstance(raw.get("judge"), dict):
        try:
            raw["judge"] = interpolate_dict(raw["judge"])
        except ValueError as e:
            raise ConfigError(f"环境变量插值失败 ({path}): {e}") from e

    try:
        return SkillTestConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"配置校验失败 ({path}):\n{e}") from e


def validate_overrides(overrides: ConfigOverrides) -> None:
    """校验命令行参数组合"""
    if overrides.hook == "custom" and not overrides.hook_path:
        raise ConfigError("--hook custom 必须同时指定 --hook-path")
    if overrides.hook_path and overrides.hook != "custom":
        raise ConfigError("--hook-path 只能与 --hook custom 一起使用")


def resolve_effective_config(
    file_config: SkillTestConfig | None = None,
    overrides: ConfigOverrides | None = None,
    case: CaseOverrides | None = None,
) -> EffectiveConfig:
    """按优先级合并各层配置（纯函数，不读取任何全局状态）"""
    merged: dict = {}
    for layer in (file_config, overrides, case):
        if layer is not None:
            merged.update(layer.model_dump(exclude_none=True))
    try:
        return EffectiveConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"配置合并失败:\n{e}") from e
