"""安全 YAML 加载 + Pydantic 校验"""

from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from skill_test.core.exceptions import YAMLValidationError

T = TypeVar("T", bound=BaseModel)


def load_yaml_document(path: str | Path) -> Any:
    """安全加载 YAML 文件，返回任意顶层结构（列表或字典）"""
    path = Path(path)
    if not path.exists():
        raise YAMLValidationError(f"文件不存在: {path}", file_path=str(path))
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise YAMLValidationError(f"YAML 解析失败 ({path}): {e}", file_path=str(path)) from e


def load_yaml(path: str | Path) -> dict:
    """安全加载 YAML 文件，返回字典（空文件视为空字典）"""
    data = load_yaml_document(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise YAMLValidationError(f"YAML 顶层必须是字典: {path}", file_path=str(path))
    return data


def validate_data(data: Any, model: type[T], path: str | Path) -> T:
    """用 Pydantic 模型校验已加载的数据"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise YAMLValidationError(
            f"YAML 校验失败 ({path}):\n{e}", file_path=str(path)
        ) from e


def load_and_validate(path: str | Path, model: type[T]) -> T:
    """加载 YAML 文件并用 Pydantic 模型校验"""
    return validate_data(load_yaml(path), model, path)
