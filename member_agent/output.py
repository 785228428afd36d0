"""输出模块：把流程结果写成按日期归档的 JSON/Markdown 文件"""

import dataclasses
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import __version__
from .config import AppConfig

TOOL_NAME = "member-agent"


def to_jsonable(value: Any) -> Any:
    """把捕获记录等 dataclass 递归转换为普通的 dict/list"""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def build_envelope(
    config: AppConfig,
    flow: str,
    data: Dict[str, Any],
    started: datetime,
    duration_ms: int,
    steps_completed: int,
    steps_total: int,
    success: bool = True,
    errors: Optional[List[str]] = None,
) -> Dict[str, Any]:
    return {
        "meta": {
            "tool": TOOL_NAME,
            "version": __version__,
            "flow": flow,
            "appUrl": config.base_url,
            "timestamp": started.isoformat(),
            "durationMs": duration_ms,
            "stepsCompleted": steps_completed,
            "stepsTotal": steps_total,
            "success": success,
        },
        "data": to_jsonable(data),
        "errors": list(errors or []),
    }


def _output_path(config: AppConfig, flow: str, suffix: str, extension: str, now: Optional[datetime]) -> str:
    now = now or datetime.now(timezone.utc)
    flow_dir = os.path.join(config.output_dir, flow, now.strftime("%Y-%m-%d"))
    os.makedirs(flow_dir, exist_ok=True)
    return os.path.join(flow_dir, f"{flow}-{now.strftime('%H%M%S')}{suffix}{extension}")


def write_output(
    config: AppConfig,
    flow: str,
    envelope: Dict[str, Any],
    suffix: str = "",
    now: Optional[datetime] = None,
) -> str:
    """写入 <output_dir>/<flow>/<YYYY-MM-DD>/<flow>-<HHMMSS><suffix>.json，返回路径"""
    path = _output_path(config, flow, suffix, ".json", now)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_jsonable(envelope), f, indent=2, ensure_ascii=False)
    return path


def write_text_output(
    config: AppConfig,
    flow: str,
    content: str,
    suffix: str = "",
    extension: str = ".md",
    now: Optional[datetime] = None,
) -> str:
    path = _output_path(config, flow, suffix, extension, now)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path
