"""失败日志 — 写入 <skill>/.skill-test-logs/

文件名为 日期-时间-毫秒-序号.json，序号在进程内单调递增，并发写入无需加锁。
"""

import itertools
import json
from datetime import datetime
from pathlib import Path

from skill_test.core.logging import get_logger
from skill_test.loader.skill_dir import LOG_DIR_NAME
from skill_test.report.json_report import skill_dict, summary_dict
from skill_test.runner.engine import summarize
from skill_test.schema.result import SkillVerdict

logger = get_logger(__name__)

_sequence = itertools.count(1)


def log_file_name(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"{now:%Y%m%d-%H%M%S}-{now.microsecond // 1000:03d}-{next(_sequence):04d}.json"


def write_error_log(skill: SkillVerdict, error: str | None = None, now: datetime | None = None) -> Path:
    """为一个失败的 skill 写一份结构化日志，返回日志路径"""
    now = now or datetime.now()
    log_dir = Path(skill.path) / LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)

    document = {
        "timestamp": now.astimezone().isoformat(),
        "skills": [skill_dict(skill)],
        "summary": summary_dict(summarize([skill])),
        "error": error if error is not None else skill.error,
    }

    file_path = log_dir / log_file_name(now)
    with open(file_path, "x", encoding="utf-8") as f:
        json.dump(document, f, ensure_ascii=False, indent=2)

    logger.info(f"失败日志已写入: {file_path}")
    return file_path
