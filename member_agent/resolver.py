"""目标解析模块：按优先级依次尝试多种定位策略"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from .errors import TargetNotFound
from .geometry import center_distance, min_pairwise_gap
from .models import CandidateElement, Point, Resolution
from .perception import SEMANTICS_HOST, ElementIndex, LabelQuery, poll_query

DEFAULT_VIEWPORT = {"width": 1280, "height": 720}

MIN_ASSOCIATION_RADIUS = 60
MAX_ASSOCIATION_RADIUS = 140


def _regex(pattern: str):
    return re.compile(pattern, re.IGNORECASE)


async def locator_center(locator: Locator, timeout: float) -> Optional[Point]:
    """取第一个匹配（文档顺序）的包围盒中心，失败返回 None"""
    try:
        handle = await locator.first.element_handle(timeout=timeout * 1000)
        if handle is None:
            return None
        box = await handle.bounding_box()
    except PlaywrightError:
        return None
    if not box:
        return None
    return Point(box["x"] + box["width"] / 2, box["y"] + box["height"] / 2)


class Strategy:
    """定位策略基类，子类都是纯数据，可以被测试直接枚举"""

    timeout: float = 2.0

    @property
    def name(self) -> str:
        return type(self).__name__

    async def locate(self, resolver: "TargetResolver") -> Optional[Point]:
        raise NotImplementedError


@dataclass
class RoleQuery(Strategy):
    role: str
    pattern: str
    timeout: float = 2.0

    @property
    def name(self) -> str:
        return f"role-{self.role}"

    async def locate(self, resolver):
        return await locator_center(resolver.page.get_by_role(self.role, name=_regex(self.pattern)), self.timeout)


@dataclass
class TextQuery(Strategy):
    pattern: str
    timeout: float = 2.0

    @property
    def name(self) -> str:
        return "text"

    async def locate(self, resolver):
        return await locator_center(resolver.page.get_by_text(_regex(self.pattern)), self.timeout)


@dataclass
class ScopedTextQuery(Strategy):
    pattern: str
    scope: str = SEMANTICS_HOST
    timeout: float = 2.0

    @property
    def name(self) -> str:
        return "semantics-text"

    async def locate(self, resolver):
        locator = resolver.page.locator(self.scope).get_by_text(_regex(self.pattern))
        return await locator_center(locator, self.timeout)


@dataclass
class FieldLabelQuery(Strategy):
    pattern: str
    timeout: float = 1.5

    @property
    def name(self) -> str:
        return "label"

    async def locate(self, resolver):
        return await locator_center(resolver.page.get_by_label(_regex(self.pattern)), self.timeout)


@dataclass
class PlaceholderQuery(Strategy):
    pattern: str
    timeout: float = 1.5

    @property
    def name(self) -> str:
        return "placeholder"

    async def locate(self, resolver):
        return await locator_center(resolver.page.get_by_placeholder(_regex(self.pattern)), self.timeout)


@dataclass
class SelectorQuery(Strategy):
    selector: str
    timeout: float = 1.5

    @property
    def name(self) -> str:
        return "preferred-input"

    async def locate(self, resolver):
        return await locator_center(resolver.page.locator(self.selector), self.timeout)


@dataclass
class SemanticsQuery(Strategy):
    """从语义索引中取第一个匹配；y_ratio 决定点击点在元素高度上的位置"""
    query: LabelQuery
    timeout: float = 0.0
    y_ratio: float = 0.5
    label: str = ""

    @property
    def name(self) -> str:
        return f"semantics-{self.label}" if self.label else "semantics-query"

    async def locate(self, resolver):
        if resolver.index is None:
            return None
        matches = await poll_query(resolver.index, self.query, self.timeout)
        if not matches:
            return None
        el = matches[0]
        return Point(el.x + el.width / 2, el.y + el.height * self.y_ratio)


@dataclass
class PositionalFallback(Strategy):
    """
    按视口比例点击的兜底策略，假设页面布局固定，仅在语义树策略全部失败后使用。

    y_from_bottom 优先于 y_ratio。
    """
    x_ratio: float = 0.5
    y_ratio: Optional[float] = None
    y_from_bottom: Optional[float] = None
    timeout: float = 0.0

    @property
    def name(self) -> str:
        return "positional"

    async def locate(self, resolver):
        viewport = getattr(resolver.page, "viewport_size", None) or DEFAULT_VIEWPORT
        width, height = viewport["width"], viewport["height"]
        if self.y_from_bottom is not None:
            y = max(1, height - self.y_from_bottom)
        else:
            y = height * (self.y_ratio if self.y_ratio is not None else 0.5)
        return Point(round(width * self.x_ratio), round(y))


class TargetResolver:
    """依次尝试策略，返回第一个成功的结果；之后的策略不会被调用"""

    def __init__(self, page: Page, index: Optional[ElementIndex] = None, logger: Optional[logging.Logger] = None):
        self.page = page
        self.index = index
        self.logger = logger or logging.getLogger(__name__)

    async def resolve(self, intent: str, strategies: Sequence[Strategy]) -> Optional[Resolution]:
        for strategy in strategies:
            self.logger.debug("尝试定位 %s: strategy=%s", intent, strategy.name)
            point = await strategy.locate(self)
            if point is not None:
                self.logger.debug(
                    "✓ 定位 %s: strategy=%s x=%d y=%d", intent, strategy.name, round(point.x), round(point.y)
                )
                return Resolution(strategy=strategy.name, point=point)
            self.logger.debug("❌ 策略未命中 %s: strategy=%s", intent, strategy.name)
        return None

    async def resolve_required(self, intent: str, strategies: Sequence[Strategy]) -> Resolution:
        resolution = await self.resolve(intent, strategies)
        if resolution is None:
            raise TargetNotFound(intent)
        return resolution


def labeled_control_cascade(
    pattern: str,
    fallback: Optional[PositionalFallback] = None,
    timeout: float = 2.0,
    roles: Sequence[str] = ("button", "link"),
) -> List[Strategy]:
    """带文字的控件的标准策略顺序：role 查询 → 文本 → 语义树内文本 → 坐标兜底"""
    strategies: List[Strategy] = [RoleQuery(role, pattern, timeout=timeout) for role in roles]
    strategies.append(TextQuery(pattern, timeout=timeout))
    strategies.append(ScopedTextQuery(pattern, timeout=timeout))
    if fallback is not None:
        strategies.append(fallback)
    return strategies


def association_radius(slots: Sequence[CandidateElement]) -> int:
    """根据时段卡片之间的最小间距推导关联半径，限制在 [60, 140]"""
    gap = min_pairwise_gap(slots)
    if gap is None:
        return MAX_ASSOCIATION_RADIUS
    return max(MIN_ASSOCIATION_RADIUS, min(MAX_ASSOCIATION_RADIUS, round(0.75 * gap)))


def associate_classes(
    slots: Sequence[CandidateElement],
    labels: Sequence[CandidateElement],
) -> List[Tuple[CandidateElement, CandidateElement]]:
    """
    为每个时段卡片匹配最近的课程名标签。

    半径内没有标签的时段视为不匹配并被排除，不做猜测。
    """
    if not slots or not labels:
        return []
    radius = association_radius(slots)
    pairs = []
    for slot in slots:
        nearest = min(labels, key=lambda label: center_distance(slot, label))
        if center_distance(slot, nearest) <= radius:
            pairs.append((slot, nearest))
    return pairs
