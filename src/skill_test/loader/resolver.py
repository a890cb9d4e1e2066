"""断言解析器

把测试用例的原始断言列表（内联定义 / 命名引用 / file: 引用混排）展开成扁平、有序的 AssertionSpec 列表。

规则：
1. 同一列表中，file: 引用展开出的断言总是排在内联断言和命名引用之前，与源文件中的书写位置无关
2. file: 路径相对于"包含该引用的 YAML 文件"解析，而不是当前工作目录
3. 命名引用在所属测试文件的 assertions 映射中查找，找不到即报错
4. 用访问栈检测循环引用（A → B → A）
5. 展开后的列表中 ID 重复即报错，不做静默去重
6. 引用路径（规范化后）必须位于 skill-tests 目录内
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from skill_test.core.exceptions import (
    CircularReferenceError,
    DuplicateAssertionIdError,
    FileRefOutsideError,
    MissingFileError,
    UndefinedAssertionRefError,
    YAMLValidationError,
)
from skill_test.core.logging import get_logger
from skill_test.schema.test_case import AssertionSpec
from skill_test.utils.yaml_loader import load_yaml_document

logger = get_logger(__name__)


def is_file_ref(entry: Any) -> bool:
    return isinstance(entry, dict) and "file" in entry


class AssertionResolver:
    """
    单个测试文件范围内的断言解析器

    已解析的外部断言文件按规范路径缓存在 arena 中，同一文件只读取一次。
    """

    def __init__(self, assertions_root: Path, named_assertions: Mapping[str, AssertionSpec] | None = None):
        self.assertions_root = assertions_root.resolve()
        self.named_assertions = dict(named_assertions or {})
        self._arena: dict[Path, list[Any]] = {}

    def resolve(self, entries: list[Any], document: Path, test_id: str) -> tuple[AssertionSpec, ...]:
        """展开一个断言列表并校验 ID 唯一"""
        document = document.resolve()
        resolved = self._flatten(entries, document, test_id, stack=[document])

        seen: set[str] = set()
        for spec in resolved:
            if spec.id in seen:
                raise DuplicateAssertionIdError(spec.id, test_id)
            seen.add(spec.id)
        return tuple(resolved)

    def _flatten(self, entries: list[Any], document: Path, test_id: str, stack: list[Path]) -> list[AssertionSpec]:
        file_refs = [e for e in entries if is_file_ref(e)]
        others = [e for e in entries if not is_file_ref(e)]

        result: list[AssertionSpec] = []
        for ref in file_refs:
            for raw_path in self._ref_paths(ref, document):
                path = self._canonical(document.parent / raw_path)
                if path in stack:
                    chain = [str(p) for p in stack] + [str(path)]
                    raise CircularReferenceError(chain)
                logger.debug(f"展开断言文件: {path}")
                stack.append(path)
                try:
                    result.extend(self._flatten(self._load_document(path), path, test_id, stack))
                finally:
                    stack.pop()

        for entry in others:
            result.append(self._resolve_entry(entry, document, test_id))
        return result

    def _resolve_entry(self, entry: Any, document: Path, test_id: str) -> AssertionSpec:
        if isinstance(entry, AssertionSpec):
            return entry
        if isinstance(entry, str):
            if entry not in self.named_assertions:
                raise UndefinedAssertionRefError(entry, test_id)
            return self.named_assertions[entry]
        if isinstance(entry, dict):
            try:
                return AssertionSpec.model_validate(entry)
            except ValidationError as e:
                raise YAMLValidationError(
                    f"断言定义无效 ({document}, 测试 '{test_id}'):\n{e}", file_path=str(document)
                ) from e
        raise YAMLValidationError(
            f"无法识别的断言条目 ({document}, 测试 '{test_id}'): {entry!r}", file_path=str(document)
        )

    @staticmethod
    def _ref_paths(ref: dict, document: Path) -> list[str]:
        if set(ref) != {"file"}:
            raise YAMLValidationError(f"file 引用不能包含其他字段 ({document}): {ref}", file_path=str(document))
        value = ref["file"]
        paths = value if isinstance(value, list) else [value]
        if not paths or not all(isinstance(p, str) and p.strip() for p in paths):
            raise YAMLValidationError(f"file 引用必须是非空路径或路径列表 ({document})", file_path=str(document))
        return paths

    def _canonical(self, candidate: Path) -> Path:
        path = candidate.resolve()
        if not path.is_relative_to(self.assertions_root):
            raise FileRefOutsideError(str(path), str(self.assertions_root))
        if not path.is_file():
            raise MissingFileError(f"断言文件不存在: {path}", file_path=str(path))
        return path

    def _load_document(self, path: Path) -> list[Any]:
        if path not in self._arena:
            data = load_yaml_document(path)
            if data is None:
                data = []
            if not isinstance(data, list):
                raise YAMLValidationError(f"断言文件顶层必须是列表: {path}", file_path=str(path))
            self._arena[path] = data
        return self._arena[path]
