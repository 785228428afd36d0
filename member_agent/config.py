"""配置加载：从 .env 和环境变量读取"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .models import ConfigProblem

DEFAULT_BASE_URL = "https://members.pushpress.com"
DEFAULT_OUTPUT_DIR = "./output"
DEFAULT_GLOBAL_TIMEOUT = 30000
DEFAULT_OPENAI_MODEL = "gpt-3.5-turbo-16k"

LOG_LEVELS = ["debug", "info", "warn", "error"]

_TRUE = {"true", "1", "yes", "y", "on"}
_FALSE = {"false", "0", "no", "n", "off"}


@dataclass
class AppConfig:
    base_url: str
    email: str
    password: str
    headless: bool = True
    slow_mo: float = 0
    output_dir: str = DEFAULT_OUTPUT_DIR
    log_level: str = "info"
    global_timeout: float = DEFAULT_GLOBAL_TIMEOUT
    save_traces: bool = False
    session_state_path: str = "./state/session.json"
    artifacts_dir: str = "./artifacts"
    openai_api_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_prompt_path: str = "./prompts/workout-week-summary.md"

    @property
    def timeout_seconds(self) -> float:
        return self.global_timeout / 1000

    def capped_timeout(self, seconds: float) -> float:
        """min(seconds, 全局超时)"""
        return min(seconds, self.timeout_seconds)


def parse_bool(value: Optional[str], fallback: bool) -> bool:
    if value is None:
        return fallback
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    return fallback


def parse_number(value: Optional[str], fallback: float) -> float:
    if value is None:
        return fallback
    try:
        return float(value)
    except ValueError:
        return fallback


def parse_log_level(value: Optional[str], fallback: str = "info") -> str:
    if not value:
        return fallback
    normalized = value.strip().lower()
    return normalized if normalized in LOG_LEVELS else fallback


def _env(name: str) -> str:
    return (os.getenv(name) or "").strip()


def load_config(path: Optional[str] = ".env") -> AppConfig:
    """加载 .env（存在时）并从环境变量构建配置"""
    load_dotenv(dotenv_path=path)

    return AppConfig(
        base_url=_env("PUSHPRESS_BASE_URL") or DEFAULT_BASE_URL,
        email=_env("PUSHPRESS_EMAIL"),
        password=_env("PUSHPRESS_PASSWORD"),
        headless=parse_bool(os.getenv("HEADLESS"), True),
        slow_mo=parse_number(os.getenv("SLOW_MO"), 0),
        output_dir=_env("OUTPUT_DIR") or DEFAULT_OUTPUT_DIR,
        log_level=parse_log_level(os.getenv("LOG_LEVEL")),
        global_timeout=parse_number(os.getenv("GLOBAL_TIMEOUT"), DEFAULT_GLOBAL_TIMEOUT),
        save_traces=parse_bool(os.getenv("SAVE_TRACES"), False),
        session_state_path=str(Path("./state/session.json").resolve()),
        artifacts_dir=str(Path("./artifacts").resolve()),
        openai_api_key=_env("OPENAI_API_KEY"),
        openai_model=_env("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
        openai_prompt_path=_env("OPENAI_PROMPT_PATH") or str(Path("./prompts/workout-week-summary.md").resolve()),
    )


def validate_config(config: AppConfig) -> List[ConfigProblem]:
    problems: List[ConfigProblem] = []
    if not config.email:
        problems.append(("PUSHPRESS_EMAIL", "Missing email (PUSHPRESS_EMAIL)."))
    if not config.password:
        problems.append(("PUSHPRESS_PASSWORD", "Missing password (PUSHPRESS_PASSWORD)."))
    if not config.base_url:
        problems.append(("PUSHPRESS_BASE_URL", "Missing base URL (PUSHPRESS_BASE_URL)."))
    if config.slow_mo < 0:
        problems.append(("SLOW_MO", "SLOW_MO must be a non-negative number."))
    if config.global_timeout <= 0:
        problems.append(("GLOBAL_TIMEOUT", "GLOBAL_TIMEOUT must be a positive number."))
    if config.log_level not in LOG_LEVELS:
        problems.append(("LOG_LEVEL", f"LOG_LEVEL must be one of: {', '.join(LOG_LEVELS)}."))
    return problems


def require_valid_config(config: AppConfig) -> None:
    """配置无效时抛出 ConfigError，消息中列出所有问题"""
    problems = validate_config(config)
    if problems:
        raise ConfigError("; ".join(message for _, message in problems))


def redact_config(config: AppConfig) -> AppConfig:
    return replace(
        config,
        password="***" if config.password else "",
        openai_api_key="***" if config.openai_api_key else "",
    )


def apply_overrides(
    config: AppConfig,
    headless: Optional[bool] = None,
    slow_mo: Optional[str] = None,
    timeout: Optional[str] = None,
) -> AppConfig:
    """命令行参数覆盖配置"""
    updates = {}
    if headless is not None:
        updates["headless"] = headless
    if slow_mo is not None:
        updates["slow_mo"] = parse_number(slow_mo, config.slow_mo)
    if timeout is not None:
        updates["global_timeout"] = parse_number(timeout, config.global_timeout)
    return replace(config, **updates)
