"""Markdown 围栏代码块提取"""

import re
from dataclasses import dataclass

_FENCE_PATTERN = re.compile(r"```([^\n`]*)\r?\n([\s\S]*?)```")

# 语言标签 → 临时文件扩展名
LANGUAGE_EXTENSIONS = {
    "javascript": "js",
    "js": "js",
    "typescript": "ts",
    "ts": "ts",
    "python": "py",
    "py": "py",
    "rust": "rs",
    "rs": "rs",
    "svelte": "svelte",
    "json": "json",
    "html": "html",
    "css": "css",
    "bash": "sh",
    "sh": "sh",
    "shell": "sh",
    "c": "c",
    "cpp": "cpp",
    "c++": "cpp",
}


@dataclass(frozen=True)
class CodeBlock:
    language: str
    code: str


def _info_language(info: str) -> str:
    # info string 的第一个词是语言，其余（如 title="x"）忽略
    parts = info.split()
    return parts[0] if parts else ""


def extract_code_blocks(text: str, language: str | None = None) -> list[CodeBlock]:
    """提取所有围栏代码块；指定 language 时只保留标签一致的块（不区分大小写）"""
    blocks = [CodeBlock(language=_info_language(m.group(1)), code=m.group(2)) for m in _FENCE_PATTERN.finditer(text)]
    if language:
        wanted = language.lower()
        blocks = [b for b in blocks if b.language.lower() == wanted]
    return blocks


def extension_for(language: str | None) -> str:
    if not language:
        return "txt"
    return LANGUAGE_EXTENSIONS.get(language.lower(), "txt")
