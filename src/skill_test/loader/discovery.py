"""按 glob 模式发现测试文件"""

from collections.abc import Iterable
from fnmatch import fnmatch
from pathlib import Path

_GLOB_CHARS = set("*?[")


def _is_excluded(relative: str, exclude_patterns: Iterable[str]) -> bool:
    for pattern in exclude_patterns:
        if _GLOB_CHARS & set(pattern):
            if fnmatch(relative, pattern):
                return True
        elif pattern in relative:
            return True
    return False


def discover_test_files(
    base_dir: Path,
    patterns: Iterable[str],
    exclude_patterns: Iterable[str] = (),
) -> list[Path]:
    """在 base_dir 下按 include 模式枚举文件，排除命中 exclude 的路径；结果排序去重"""
    exclude_patterns = list(exclude_patterns)
    found: set[Path] = set()
    for pattern in patterns:
        for path in base_dir.glob(pattern):
            if not path.is_file():
                continue
            relative = path.relative_to(base_dir).as_posix()
            if _is_excluded(relative, exclude_patterns):
                continue
            found.add(path)
    return sorted(found)
