"""课表页面的定位：日期按钮、时段卡片、课程名标签"""

import re
from datetime import date
from typing import List, Optional, Sequence

from .geometry import cluster, largest_cluster
from .models import CandidateElement
from .perception import ElementIndex, LabelQuery
from .resolver import associate_classes

DAY_ORDER = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

TIME_LABEL = re.compile(r"\b\d{1,2}:\d{2}\s?(?:AM|PM)\b", re.IGNORECASE)
DAY_NUMBER = re.compile(r"(\d{1,2})")


def normalize_time_label(value: str) -> str:
    return re.sub(r"\s+", "", value.lower()).replace(".", "")


def time_matches(label: str, time_label: str) -> bool:
    """标签中含有目标时间，前后不紧邻数字（"1:00 AM" 不匹配 "11:00 AM"）"""
    wanted = normalize_time_label(time_label)
    if not wanted:
        return False
    return re.search(rf"(?<!\d){re.escape(wanted)}(?!\d)", normalize_time_label(label)) is not None


def normalize_day(value: str) -> Optional[str]:
    value = value.strip().lower()
    if not value:
        return None
    for key in DAY_ORDER:
        if value.startswith(key[:2]):
            return key
    return None


def parse_days(param: Optional[str]) -> List[str]:
    """'mon, wed fri' -> ['mon', 'wed', 'fri']，去重并保持顺序"""
    if not param:
        return []
    days: List[str] = []
    for part in re.split(r"[,\s]+", param):
        key = normalize_day(part)
        if key and key not in days:
            days.append(key)
    return days


def parse_week_offset(value: Optional[str]) -> int:
    """current/0 -> 0，next -> 1，数字按原值，最多 6 周"""
    if not value:
        return 0
    normalized = value.strip().lower()
    if not normalized or normalized in ("current", "0"):
        return 0
    if normalized == "next":
        return 1
    match = re.search(r"(\d+)", normalized)
    if match:
        return min(int(match.group(1)), 6)
    return 0


def date_patterns(target: date) -> List[str]:
    """日期选择器中可能出现的标签格式"""
    month = MONTH_NAMES[target.month - 1]
    day = target.day
    year = target.year
    return [
        rf"{month}.*\b{day}\b.*{year}",
        rf"\b{day}\b.*{month}.*{year}",
        rf"{month}.*\b{day}\b",
    ]


def label_matches_class(label: str, class_filter: str) -> bool:
    if not label or not class_filter:
        return False
    return class_filter.strip().lower() in label.lower()


def _has_day_number(element: CandidateElement) -> bool:
    return DAY_NUMBER.search(element.label) is not None


async def find_day_buttons(
    index: ElementIndex,
    threshold: float = 30,
    max_y_ratio: float = 0.6,
) -> List[CandidateElement]:
    """
    日历的日期行：带数字标签的元素按 Y 聚类，取成员最多的一簇并按 X 排序。

    假设其他位置零散的数字标签不会比日期行更多。
    """
    candidates = await index.query(
        LabelQuery(match=_has_day_number, max_y_ratio=max_y_ratio)
    )
    return largest_cluster(cluster(candidates, axis="y", threshold=threshold))


async def find_time_slots(index: ElementIndex, time_label: str) -> List[CandidateElement]:
    """可视区域内包含目标时间的卡片，按 Y 排序"""
    query = LabelQuery(
        match=lambda el: time_matches(el.label, time_label),
        min_width=40,
        min_height=18,
        viewport_only=True,
        sort_by_y=True,
    )
    return await index.query(query)


async def find_class_labels(index: ElementIndex, class_filter: str) -> List[CandidateElement]:
    query = LabelQuery(text=class_filter, min_width=40, min_height=18, sort_by_y=True)
    return await index.query(query)


async def slots_for_class(
    index: ElementIndex,
    slots: Sequence[CandidateElement],
    class_filter: str,
) -> List[CandidateElement]:
    """只保留附近有课程名标签的时段"""
    labels = await find_class_labels(index, class_filter)
    return [slot for slot, _ in associate_classes(slots, labels)]


async def visible_times(index: ElementIndex, limit: int = 20) -> List[str]:
    labels = await index.labels()
    return [label.strip() for label in labels if TIME_LABEL.search(label)][:limit]


def best_date_match(elements: Sequence[CandidateElement], patterns: Sequence[str]) -> Optional[CandidateElement]:
    """匹配日期模式最多的标签"""
    best = None
    best_score = 0
    for el in elements:
        if not el.label:
            continue
        score = sum(1 for p in patterns if re.search(p, el.label, re.IGNORECASE))
        if score > best_score:
            best, best_score = el, score
    return best
