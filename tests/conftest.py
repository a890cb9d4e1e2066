"""测试公共 fixture：构造 skill 目录与假 agent 脚本"""

import json
import stat
import textwrap
from pathlib import Path

import pytest


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return path


def make_executable(path: Path, content: str) -> Path:
    write(path, content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def make_skill(tmp_path):
    """在 tmp_path 下创建一个带 SKILL.md 的 skill 目录，可附带配置与测试文件"""

    def _make(name: str = "demo-skill", config: str | None = None, files: dict[str, str] | None = None) -> Path:
        skill_dir = tmp_path / name
        write(skill_dir / "SKILL.md", f"---\nname: {name}\ndescription: test skill\n---\n\n# {name}\n")
        if config is not None:
            write(skill_dir / "skill-test.config.yaml", config)
        for relative, content in (files or {}).items():
            write(skill_dir / relative, content)
        return skill_dir

    return _make


@pytest.fixture
def fake_agent(tmp_path):
    """生成一个假 agent 脚本：忽略参数，输出固定的 JSON 事件流"""

    def _make(
        result: str = "Hello, World",
        tools: list[str] | None = None,
        exit_code: int = 0,
        sleep: float = 0,
        raw_stdout: str | None = None,
        name: str = "fake-agent",
    ) -> Path:
        if raw_stdout is None:
            events = [{"type": "system", "subtype": "init"}]
            if tools:
                events.append(
                    {
                        "type": "assistant",
                        "message": {
                            "content": [{"type": "tool_use", "name": tool, "input": {}} for tool in tools]
                        },
                    }
                )
            events.append({"type": "result", "subtype": "success", "result": result})
            raw_stdout = json.dumps(events)
        payload = tmp_path / f"{name}.out"
        payload.write_text(raw_stdout, encoding="utf-8")
        script = f"#!/bin/sh\nsleep {sleep}\ncat '{payload}'\nexit {exit_code}\n"
        return make_executable(tmp_path / name, script)

    return _make


@pytest.fixture
def executable():
    """写入一个可执行脚本"""
    return make_executable
