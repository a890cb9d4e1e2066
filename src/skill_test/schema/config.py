"""配置 Pydantic 模型

对应 skill 目录下的 skill-test.config.yaml，以及命令行参数、测试用例覆盖字段。
各层只携带显式设置的字段（未设置为 None），由 core.config 逐层合并成 EffectiveConfig。
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

HookType = Literal["none", "simple", "forced", "custom"]
OutputFormat = Literal["table", "json"]

HOOK_TYPES: tuple[str, ...] = ("none", "simple", "forced", "custom")
OUTPUT_FORMATS: tuple[str, ...] = ("table", "json")

CONFIG_FILE_NAME = "skill-test.config.yaml"

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_JUDGE_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_ITERATIONS = 10
DEFAULT_THRESHOLD = 80
DEFAULT_AGENT_COMMAND = "claude"
DEFAULT_TEST_PATTERNS = [
    "skill-tests/**/test-*.yaml",
    "skill-tests/**/test-*.yml",
    "skill-tests/**/*.spec.yaml",
    "skill-tests/**/*.spec.yml",
]
DEFAULT_EXCLUDE_PATTERNS = ["node_modules/"]


class JudgeConfig(BaseModel):
    """HTTP Judge 配置（OpenAI 兼容接口），未配置时 llm_eval 走 agent CLI"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    api_base: str = Field("https://api.openai.com/v1", alias="api-base")
    api_key: str = Field("", alias="api-key")
    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    timeout: float = 60.0


class SkillTestConfig(BaseModel):
    """skill-test.config.yaml 根模型（未知字段报错）"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    model: str | None = None
    timeout: int | None = Field(None, gt=0, description="单次 agent 调用超时（毫秒）")
    iterations: int | None = Field(None, ge=1)
    threshold: int | None = Field(None, ge=0, le=100)
    hook: HookType | None = None
    hook_path: str | None = Field(None, alias="hook-path")
    test_patterns: list[str] | None = Field(None, alias="test-patterns")
    exclude_patterns: list[str] | None = Field(None, alias="exclude-patterns")
    strict: bool | None = None
    agent_command: str | None = Field(None, alias="agent-command")
    judge_model: str | None = Field(None, alias="judge-model")
    judge: JudgeConfig | None = None

    @model_validator(mode="after")
    def _check_hook(self) -> "SkillTestConfig":
        if self.hook == "custom" and not self.hook_path:
            raise ValueError("hook: custom 必须同时指定 hook-path")
        if self.hook_path and self.hook != "custom":
            raise ValueError("hook-path 只能与 hook: custom 一起使用")
        return self


class ConfigOverrides(BaseModel):
    """命令行参数层"""

    model: str | None = None
    timeout: int | None = Field(None, gt=0)
    iterations: int | None = Field(None, ge=1)
    threshold: int | None = Field(None, ge=0, le=100)
    hook: HookType | None = None
    hook_path: str | None = None
    strict: bool | None = None


class CaseOverrides(BaseModel):
    """测试用例层（测试文件中可覆盖的字段）"""

    model: str | None = None
    timeout: int | None = Field(None, gt=0)
    iterations: int | None = Field(None, ge=1)
    threshold: int | None = Field(None, ge=0, le=100)


class EffectiveConfig(BaseModel):
    """合并后的单个测试用例运行配置，只读"""

    model_config = ConfigDict(frozen=True)

    model: str = DEFAULT_MODEL
    timeout: int = DEFAULT_TIMEOUT_MS
    iterations: int = DEFAULT_ITERATIONS
    threshold: int = DEFAULT_THRESHOLD
    hook: HookType = "simple"
    hook_path: str | None = None
    test_patterns: tuple[str, ...] = tuple(DEFAULT_TEST_PATTERNS)
    exclude_patterns: tuple[str, ...] = tuple(DEFAULT_EXCLUDE_PATTERNS)
    strict: bool = False
    agent_command: str = DEFAULT_AGENT_COMMAND
    judge_model: str = DEFAULT_JUDGE_MODEL
    judge: JudgeConfig | None = None

    @model_validator(mode="after")
    def _check_hook(self) -> "EffectiveConfig":
        if self.hook == "custom" and not self.hook_path:
            raise ValueError("hook 为 custom 时必须指定 hook-path")
        return self
