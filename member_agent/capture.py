"""网络捕获：按规则收集 JSON 响应"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError

from .models import CaptureRecord, CaptureRule


def matches_rule(rule: CaptureRule, url: str, method: str, status: int) -> bool:
    pattern = rule.url_pattern
    if isinstance(pattern, str):
        if pattern not in ("*", "") and pattern not in url:
            return False
    elif not pattern.search(url):
        return False
    if rule.method and rule.method.upper() != method.upper():
        return False
    if rule.status_code and rule.status_code != status:
        return False
    return True


class NetworkCapture:
    """
    监听页面的 response 事件，把符合当前步骤规则的 JSON 响应按规则名缓存。

    wait_for() 可以代替轮询语义树，作为“数据已加载”的同步点。
    """

    def __init__(self, page=None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.rules: List[CaptureRule] = []
        self.buffer: Dict[str, List[CaptureRecord]] = {}
        self._events: Dict[str, asyncio.Event] = {}
        if page is not None:
            self.attach(page)

    def attach(self, page) -> None:
        page.on("response", self.handle_response)

    def set_rules(self, rules: Sequence[CaptureRule] = ()) -> None:
        self.rules = list(rules)
        self._events = {rule.name: asyncio.Event() for rule in self.rules}

    def flush(self) -> Dict[str, List[CaptureRecord]]:
        data = self.buffer
        self.buffer = {}
        return data

    async def wait_for(self, name: str, timeout: float) -> bool:
        """等待指定规则捕获到至少一条响应，超时返回 False"""
        if self.buffer.get(name):
            return True
        event = self._events.get(name)
        if event is None:
            return False
        try:
            await asyncio.wait_for(event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def handle_response(self, response) -> None:
        if not self.rules:
            return

        url = response.url
        status = response.status
        method = response.request.method
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return

        for rule in self.rules:
            if not matches_rule(rule, url, method, status):
                continue
            try:
                payload = await response.json()
            except (PlaywrightError, ValueError) as e:
                self.logger.debug("响应捕获失败: url=%s err=%s", url, e)
                continue
            if payload is None:
                continue

            record = CaptureRecord(
                url=url,
                status=status,
                method=method,
                timestamp=time.time() * 1000,
                data=rule.transform(payload) if rule.transform else payload,
            )
            self.buffer.setdefault(rule.name, []).append(record)
            event = self._events.get(rule.name)
            if event is not None:
                event.set()
