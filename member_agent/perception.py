"""感知模块：查询 Flutter 语义树中的候选元素"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from playwright.async_api import Page

from .models import CandidateElement

logger = logging.getLogger(__name__)

SEMANTICS_HOST = "flt-semantics-host"

_WHITESPACE = re.compile(r"\s+")


def normalize_label(value: str) -> str:
    """小写并折叠空白"""
    return _WHITESPACE.sub(" ", value or "").strip().lower()


@dataclass
class LabelQuery:
    """
    候选元素的过滤条件。

    text 按规范化后的子串匹配，pattern 按正则（忽略大小写）匹配，
    role 按规范化后的 role 子串匹配；三者同时给出时需全部满足。
    match 可传入任意自定义判断。
    """
    text: Optional[str] = None
    pattern: Optional[str] = None
    role: Optional[str] = None
    match: Optional[Callable[[CandidateElement], bool]] = None
    min_width: float = 18
    min_height: float = 18
    viewport_only: bool = False
    max_y_ratio: Optional[float] = None
    sort_by_y: bool = False

    def accepts(self, element: CandidateElement, viewport_height: float) -> bool:
        if element.width < self.min_width or element.height < self.min_height:
            return False
        if self.viewport_only and (element.bottom < 0 or element.y > viewport_height):
            return False
        if self.max_y_ratio is not None and element.y > viewport_height * self.max_y_ratio:
            return False
        if self.text is not None and normalize_label(self.text) not in normalize_label(element.label):
            return False
        if self.pattern is not None and not re.search(self.pattern, element.label, re.IGNORECASE):
            return False
        if self.role is not None and normalize_label(self.role) not in normalize_label(element.role):
            return False
        if self.match is not None and not self.match(element):
            return False
        return True


class ElementIndex:
    """
    语义树索引基类。

    子类只负责 snapshot()，过滤逻辑统一在 query() 中完成，
    这样真实页面和测试用的静态索引行为完全一致。
    """

    async def snapshot(self) -> Tuple[List[CandidateElement], float]:
        raise NotImplementedError

    async def query(self, predicate: LabelQuery) -> List[CandidateElement]:
        elements, viewport_height = await self.snapshot()
        results = [el for el in elements if predicate.accepts(el, viewport_height)]
        if predicate.sort_by_y:
            results.sort(key=lambda el: el.y)
        return results

    async def first(self, predicate: LabelQuery) -> Optional[CandidateElement]:
        results = await self.query(predicate)
        return results[0] if results else None

    async def labels(self) -> List[str]:
        elements, _ = await self.snapshot()
        return [el.label for el in elements if el.label]

    async def viewport_height(self) -> float:
        _, height = await self.snapshot()
        return height


class StaticIndex(ElementIndex):
    """固定元素列表的索引（测试用）"""

    def __init__(self, elements: Sequence[CandidateElement] = (), viewport_height: float = 720):
        self.elements = list(elements)
        self.viewport = viewport_height

    async def snapshot(self) -> Tuple[List[CandidateElement], float]:
        # 与真实实现一致：零面积元素在源头过滤
        return [el for el in self.elements if el.width > 0 and el.height > 0], self.viewport


class SemanticsIndex(ElementIndex):
    """
    基于 page.evaluate 的真实实现。

    遍历页面上所有 flt-semantics-host（基础页面和弹层可能同时挂载多个），
    有 shadowRoot 时进入一层，收集带 aria-label 或 role 的节点及其几何信息。
    """

    JS_SNAPSHOT = """
    (hostSelector) => {
        const elements = [];
        const hosts = document.querySelectorAll(hostSelector);
        for (const host of hosts) {
            const root = host.shadowRoot ? host.shadowRoot : host;
            const nodes = root.querySelectorAll('[aria-label], [role]');
            for (const el of nodes) {
                const rect = el.getBoundingClientRect();
                if (!rect || rect.width <= 0 || rect.height <= 0) continue;
                elements.push({
                    x: rect.left,
                    y: rect.top,
                    width: rect.width,
                    height: rect.height,
                    label: (el.getAttribute('aria-label') || '').trim(),
                    role: (el.getAttribute('role') || '').trim(),
                });
            }
        }
        return { elements, viewportHeight: window.innerHeight };
    }
    """

    def __init__(self, page: Page):
        self.page = page

    async def snapshot(self) -> Tuple[List[CandidateElement], float]:
        try:
            result = await self.page.evaluate(self.JS_SNAPSHOT, SEMANTICS_HOST)
        except Exception as e:
            # 页面跳转或关闭时查询会失败，视为没有匹配
            logger.debug("语义树查询失败: %s", e)
            return [], 0

        elements = [
            CandidateElement(
                x=item["x"],
                y=item["y"],
                width=item["width"],
                height=item["height"],
                label=item["label"],
                role=item["role"],
            )
            for item in result["elements"]
        ]
        return elements, result.get("viewportHeight") or 0


async def enable_semantics(page: Page, timeout: float = 30.0) -> bool:
    """点击 flt-semantics-placeholder，让 Flutter 生成语义树"""
    try:
        await page.locator("flt-glass-pane").wait_for(state="attached", timeout=timeout * 1000)
    except Exception:
        logger.debug("flt-glass-pane 未出现")

    clicked = await page.evaluate(
        """
        () => {
            const glass = document.querySelector('flt-glass-pane');
            const root = glass && glass.shadowRoot ? glass.shadowRoot : glass;
            if (!root) return false;
            const placeholder = root.querySelector('flt-semantics-placeholder');
            if (!placeholder) return false;
            placeholder.click();
            return true;
        }
        """
    )
    logger.debug("语义树占位元素点击: clicked=%s", clicked)
    await asyncio.sleep(0.25)
    return bool(clicked)


async def poll_query(
    index: ElementIndex,
    predicate: LabelQuery,
    timeout: float,
    interval: float = 0.3,
    min_count: int = 1,
) -> List[CandidateElement]:
    """轮询直到至少有 min_count 个匹配，超时返回空列表"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        results = await index.query(predicate)
        if len(results) >= min_count:
            return results
        if loop.time() >= deadline:
            return []
        await asyncio.sleep(interval)


async def dump_labels(index: ElementIndex, limit: int = 40) -> None:
    """调试用：输出语义树中的数字标签"""
    labels = await index.labels()
    numeric = [label for label in labels if re.search(r"\d", label)]
    logger.debug("语义树标签: total=%d numeric=%s", len(labels), numeric[:limit])
