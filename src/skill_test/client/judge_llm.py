"""Judge 客户端 — 供 llm_eval 断言做语义评审

两种实现：
- AgentJudgeClient：调用 agent CLI（默认 claude + haiku 模型），单轮输出
- HttpJudgeClient：调用 OpenAI 兼容的 /chat/completions 接口（temperature 默认 0）

评审结果统一解析为 JSON 对象，约定包含 {"result": bool, "reason": str}。
"""

import json
import re
from abc import ABC, abstractmethod

from skill_test.client.base import BaseHTTPClient
from skill_test.client.process import run_process
from skill_test.core.exceptions import JudgeError
from skill_test.core.logging import get_logger
from skill_test.schema.config import EffectiveConfig, JudgeConfig

logger = get_logger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?[^\n]*\n(.*?)```", re.DOTALL)
_BARE_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_judge_response(raw_text: str) -> dict:
    """解析 Judge 的 JSON 响应，带容错处理"""
    text = raw_text.strip()

    # 尝试直接解析 JSON
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Fallback: 从 markdown code block 中提取 JSON
    for match in _FENCED_JSON.finditer(text):
        try:
            data = json.loads(match.group(1).strip())
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            continue

    # Fallback: 截取第一个 { 到最后一个 } 之间的内容
    match = _BARE_OBJECT.search(text)
    if match:
        try:
            data = json.loads(match.group(0))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    raise JudgeError(f"无法解析 Judge 响应: {raw_text[:500]}")


class JudgeClient(ABC):
    """Judge 客户端接口"""

    @abstractmethod
    async def complete(self, prompt: str, timeout_ms: int) -> str:
        """发送评审提示词，返回原始文本"""

    async def judge(self, prompt: str, timeout_ms: int) -> dict:
        raw_text = await self.complete(prompt, timeout_ms)
        logger.debug(f"Judge 原始响应: {raw_text[:200]}")
        return parse_judge_response(raw_text)

    async def close(self) -> None:
        return None


class AgentJudgeClient(JudgeClient):
    """通过 agent CLI 单轮调用小模型做评审"""

    def __init__(self, command: str, model: str):
        self.command = command
        self.model = model

    async def complete(self, prompt: str, timeout_ms: int) -> str:
        argv = [self.command, "-p", prompt, "--model", self.model, "--max-turns", "1"]
        try:
            result = await run_process(argv, timeout_s=timeout_ms / 1000)
        except OSError as e:
            raise JudgeError(f"无法启动 Judge 进程 '{self.command}': {e}") from e

        if result.timed_out:
            raise JudgeError(f"Judge 调用超时 ({timeout_ms}ms)")
        if result.exit_code != 0:
            raise JudgeError(f"Judge 进程退出码 {result.exit_code}: {result.stderr.strip()[:500]}")
        return result.stdout


class HttpJudgeClient(BaseHTTPClient, JudgeClient):
    """
    OpenAI 兼容接口的 Judge

    调用 /chat/completions，超时以断言的 timeout_ms 为准。
    """

    def __init__(self, config: JudgeConfig):
        super().__init__(
            base_url=config.api_base,
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=2,
        )
        self.model = config.model
        self.temperature = config.temperature

    async def complete(self, prompt: str, timeout_ms: int) -> str:
        payload = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        response = await self._request_with_retry(
            "POST", "/chat/completions", json=payload, timeout=timeout_ms / 1000
        )
        try:
            return response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise JudgeError(f"Judge 响应格式异常: {str(response)[:500]}") from e


def create_judge_client(config: EffectiveConfig) -> JudgeClient:
    """配置了 HTTP judge（api-key 非空）时使用 HTTP，否则走 agent CLI"""
    if config.judge is not None and config.judge.api_key:
        return HttpJudgeClient(config.judge)
    return AgentJudgeClient(command=config.agent_command, model=config.judge_model)
