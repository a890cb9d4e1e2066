"""自定义异常定义

退出码约定：ConfigError / LoadError → 2，ExecutionError → 3。
单次迭代内的失败（超时、非零退出、断言不通过）不抛异常，只记录到结果中。
"""


class SkillTestError(Exception):
    """skill-test 基础异常"""


class ConfigError(SkillTestError):
    """配置加载、校验或命令行参数组合错误"""


class LoadError(SkillTestError):
    """测试文件加载阶段的错误（致命，执行前终止）"""


class YAMLValidationError(LoadError):
    """YAML 文件解析或校验失败"""

    def __init__(self, message: str, file_path: str | None = None):
        super().__init__(message)
        self.file_path = file_path


class MissingFileError(LoadError):
    """引用的文件不存在"""

    def __init__(self, message: str, file_path: str | None = None):
        super().__init__(message)
        self.file_path = file_path


class TestManifestError(LoadError):
    """严格模式下，汇总所有加载失败的测试文件"""

    __test__ = False

    def __init__(self, failures: list[tuple[str, str]]):
        self.failures = failures
        lines = [f"  - {path}: {reason}" for path, reason in failures]
        super().__init__("以下测试文件加载失败:\n" + "\n".join(lines))


class DuplicateAssertionIdError(LoadError):
    """同一测试用例的断言列表中出现重复 ID"""

    def __init__(self, assertion_id: str, test_id: str):
        super().__init__(f"测试 '{test_id}' 中断言 ID 重复: '{assertion_id}'")
        self.assertion_id = assertion_id
        self.test_id = test_id


class UndefinedAssertionRefError(LoadError):
    """引用了未定义的命名断言"""

    def __init__(self, name: str, test_id: str):
        super().__init__(f"测试 '{test_id}' 引用了未定义的断言: '{name}'")
        self.name = name
        self.test_id = test_id


class CircularReferenceError(LoadError):
    """file: 引用形成环"""

    def __init__(self, chain: list[str]):
        super().__init__("检测到循环引用: " + " -> ".join(chain))
        self.chain = chain


class FileRefOutsideError(LoadError):
    """file: 引用超出断言目录范围"""

    def __init__(self, path: str, root: str):
        super().__init__(f"断言文件必须位于 {root} 目录内: {path}")
        self.path = path
        self.root = root


class AssertionError_(SkillTestError):
    """断言执行错误（非断言失败，而是断言本身出错）"""


class HookError(SkillTestError):
    """自定义 hook 脚本执行失败"""


class JudgeError(SkillTestError):
    """llm_eval 评审调用或解析失败"""


class ExecutionError(SkillTestError):
    """无法执行测试（退出码 3）"""


class AgentLaunchError(ExecutionError):
    """无法启动外部 agent 进程；partial_results 为中止前已完成的 skill 结果"""

    def __init__(self, message: str, command: str | None = None, skill_name: str | None = None):
        super().__init__(message)
        self.command = command
        self.skill_name = skill_name
        self.partial_results: list = []


class JudgeAPIError(JudgeError):
    """HTTP Judge 接口调用错误"""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
