"""Agent CLI 客户端 — 命令行构造与 JSON 事件流解析"""

import json
from dataclasses import dataclass
from typing import Any

MAX_TURNS = 5


@dataclass(frozen=True)
class AgentTranscript:
    """从 agent 输出中解析出的结果文本与工具调用序列"""

    output: str
    tool_calls: tuple[str, ...]


def build_agent_argv(command: str, prompt: str, model: str) -> list[str]:
    return [
        command,
        "-p",
        prompt,
        "--model",
        model,
        "--output-format",
        "json",
        "--max-turns",
        str(MAX_TURNS),
        "--dangerously-skip-permissions",
    ]


def _load_events(stdout: str) -> list[Any]:
    """支持 JSON 数组、单个 JSON 对象、以及逐行 JSON（stream-json）三种输出"""
    text = stdout.strip()
    if not text:
        raise ValueError("agent 输出为空")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as first_error:
        try:
            return [json.loads(line) for line in text.splitlines() if line.strip()]
        except json.JSONDecodeError:
            raise ValueError(f"agent 输出不是合法 JSON: {first_error}") from first_error
    if isinstance(data, list):
        return data
    return [data]


def parse_agent_output(stdout: str) -> AgentTranscript:
    """
    解析 agent 的 JSON 事件流

    - assistant 事件 message.content 中 type 为 tool_use 的块 → 工具调用名（保持顺序）
    - result 事件的 result 字段 → 最终输出文本；缺失时拼接 assistant 的文本块
    """
    events = _load_events(stdout)

    tool_calls: list[str] = []
    texts: list[str] = []
    result_text: str | None = None

    for event in events:
        if not isinstance(event, dict):
            continue
        event_type = event.get("type")
        if event_type == "assistant":
            message = event.get("message") or {}
            for block in message.get("content") or []:
                if not isinstance(block, dict):
                    continue
                if block.get("type") == "tool_use" and block.get("name"):
                    tool_calls.append(str(block["name"]))
                elif block.get("type") == "text" and block.get("text"):
                    texts.append(str(block["text"]))
        elif event_type == "result" and isinstance(event.get("result"), str):
            result_text = event["result"]

    if result_text is None:
        result_text = "\n".join(texts)
    return AgentTranscript(output=result_text, tool_calls=tuple(tool_calls))
