"""结果判定：根据语义树中的关键字判断预约状态"""

from typing import Iterable, List, Optional

from .models import BookingStatus
from .perception import normalize_label

RESERVED_KEYWORDS = ["reserved", "registered", "booked", "enrolled", "attending", "checked in"]
CANCEL_KEYWORDS = ["cancel reservation", "cancel booking", "cancel class"]
WAITLIST_KEYWORDS = ["waitlist"]
ON_WAITLIST_KEYWORDS = ["on waitlist", "on the waitlist", "leave waitlist", "waitlisted"]
UNAVAILABLE_KEYWORDS = ["unavailable", "class full"]

BOOKING_ACTION_KEYWORDS = ["reserve", "book", "sign up", "join", "register", "waitlist"]
WAITLIST_ONLY_KEYWORDS = ["class full", "waitlist"]
RESERVE_SOON_KEYWORD = "reserve soon"

# 按优先级排列；存在取消按钮说明已经预约，优先于 waitlist 文本
CLASSIFICATION_TIERS = [
    (RESERVED_KEYWORDS, BookingStatus.RESERVED),
    (CANCEL_KEYWORDS, BookingStatus.RESERVED),
    (WAITLIST_KEYWORDS, BookingStatus.WAITLISTED),
    (UNAVAILABLE_KEYWORDS, BookingStatus.UNAVAILABLE),
]


def _normalized(labels: Iterable[str]) -> List[str]:
    return [normalize_label(label) for label in labels if label]


def _contains_any(labels: List[str], keywords: Iterable[str]) -> bool:
    return any(keyword in label for label in labels for keyword in keywords)


def classify(labels: Iterable[str]) -> str:
    """
    扫描整个标签范围，按层级返回 reserved / waitlisted / unavailable / unknown。

    纯关键字匹配，只是近似判断，并不真正理解页面语义。
    """
    normalized = _normalized(labels)
    for keywords, status in CLASSIFICATION_TIERS:
        if _contains_any(normalized, keywords):
            return status
    return BookingStatus.UNKNOWN


def is_reserved(labels: Iterable[str]) -> bool:
    return classify(labels) == BookingStatus.RESERVED


def booked_status(labels: Iterable[str]) -> Optional[str]:
    """详情中已有的预约状态：reserved、waitlisted，都没有时返回 None"""
    if is_reserved(labels):
        return BookingStatus.RESERVED
    # "Join Waitlist" 是预约按钮，不算已在候补名单中
    if _contains_any(_normalized(labels), ON_WAITLIST_KEYWORDS):
        return BookingStatus.WAITLISTED
    return None


def has_booking_action(labels: Iterable[str]) -> bool:
    return _contains_any(_normalized(labels), BOOKING_ACTION_KEYWORDS)


def is_waitlist_only(labels: Iterable[str]) -> bool:
    return _contains_any(_normalized(labels), WAITLIST_ONLY_KEYWORDS)


def has_reserve_soon(label: str) -> bool:
    return RESERVE_SOON_KEYWORD in normalize_label(label)
