"""周训练摘要报告：调用 LLM 把摘要 JSON 整理成 Markdown"""

import json
import logging
import os
from typing import Any, Optional

from openai import AsyncOpenAI

from .config import AppConfig

PROMPT_PLACEHOLDER = "generated_json_summary"


class ReportError(Exception):
    """报告生成失败（缺少密钥、缺少模板或返回为空）"""


def build_prompt(template: str, summary_envelope: Any) -> str:
    summary_json = json.dumps(summary_envelope, indent=2, ensure_ascii=False)
    if PROMPT_PLACEHOLDER in template:
        return template.replace(PROMPT_PLACEHOLDER, summary_json, 1)
    return f"{template.strip()}\n\n{summary_json}"


def load_prompt_template(config: AppConfig) -> str:
    path = os.path.abspath(config.openai_prompt_path)
    if not os.path.exists(path):
        raise ReportError(f"Prompt file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


class WeekReporter:
    """把一周训练摘要交给 LLM 生成 Markdown"""

    def __init__(self, client: AsyncOpenAI, model: str, logger: Optional[logging.Logger] = None):
        self.client = client
        self.model = model
        self.logger = logger or logging.getLogger(__name__)

    async def generate(self, prompt: str) -> str:
        self.logger.info("请求 LLM 生成摘要: model=%s", self.model)
        response = await self.client.chat.completions.create(
            model=self.model,
            temperature=0,
            messages=[{"role": "user", "content": prompt}],
        )
        content = response.choices[0].message.content if response.choices else None
        content = (content or "").strip()
        if not content:
            raise ReportError("OpenAI response was empty.")
        return content


async def generate_week_markdown(
    config: AppConfig,
    summary_envelope: Any,
    logger: Optional[logging.Logger] = None,
    client: Optional[AsyncOpenAI] = None,
) -> str:
    if not config.openai_api_key and client is None:
        raise ReportError("Missing OPENAI_API_KEY.")
    prompt = build_prompt(load_prompt_template(config), summary_envelope)
    client = client or AsyncOpenAI(api_key=config.openai_api_key)
    return await WeekReporter(client, config.openai_model, logger).generate(prompt)
