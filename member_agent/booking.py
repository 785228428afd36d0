"""预约状态机：逐天、逐时段地判定并记录结果"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Dict, List, Optional

from .classifier import booked_status, classify, has_booking_action, has_reserve_soon, is_reserved, is_waitlist_only
from .models import BookingRecord, BookingStatus, CandidateElement, Signal
from .schedule import TIME_LABEL, label_matches_class, time_matches

BUCKETS = ("matches", "bookings", "attempts")


class DetailsView:
    """时段详情（可能在弹窗中）"""

    async def labels(self) -> List[str]:
        raise NotImplementedError

    async def click_booking_action(self) -> None:
        raise NotImplementedError


class ScheduleDriver:
    """课表页面的交互接口；真实实现基于语义树，测试中使用假实现"""

    async def select_day(self, day: str) -> bool:
        raise NotImplementedError

    async def find_slots(self, day: str, time_label: str, class_filter: Optional[str]) -> List[CandidateElement]:
        raise NotImplementedError

    def open_details(self, slot: CandidateElement, class_filter: Optional[str]) -> AsyncContextManager[DetailsView]:
        """退出时必须关闭详情，并交还弹窗之前的页面"""
        raise NotImplementedError


@dataclass
class BookingOptions:
    time: str
    class_name: str = "CrossFit"
    confirm: bool = False
    allow_waitlist: bool = False


class BookingRun:
    """
    预约状态机。

    每个时段的处理结果写入 flow_data 的三个列表之一：
    matches（试运行）、bookings（成功预约/候补）、attempts（其余所有情况）。
    遇到 "reserve soon" 时返回 STOP_RUN，整个运行立即结束。
    """

    def __init__(
        self,
        driver: ScheduleDriver,
        options: BookingOptions,
        flow_data: Dict[str, Any],
        logger: Optional[logging.Logger] = None,
    ):
        self.driver = driver
        self.options = options
        self.flow_data = flow_data
        self.logger = logger or logging.getLogger(__name__)
        for bucket in BUCKETS:
            self.flow_data.setdefault(bucket, [])

    async def run(self, days: List[str]) -> Signal:
        for day in days:
            signal = await self.process_day(day)
            if signal is Signal.STOP_RUN:
                self.logger.info("⚠ 运行提前结束: day=%s", day)
                return signal
        return Signal.CONTINUE

    async def process_day(self, day: str) -> Signal:
        opts = self.options
        if not await self.driver.select_day(day):
            self.logger.warning("⚠ 未找到日期按钮，跳过: day=%s", day)
            return Signal.CONTINUE

        slots = await self.driver.find_slots(day, opts.time, opts.class_name)
        if not slots:
            self.logger.info("没有匹配的时段: day=%s time=%s class=%s", day, opts.time, opts.class_name)
            return Signal.CONTINUE
        self.logger.debug("匹配到时段: day=%s count=%d", day, len(slots))

        for slot in slots:
            signal = await self.process_slot(day, slot)
            if signal is Signal.STOP_RUN:
                return signal
            if signal is Signal.STOP_DAY:
                break
        return Signal.CONTINUE

    async def process_slot(self, day: str, slot: CandidateElement) -> Signal:
        opts = self.options

        if is_reserved([slot.label]):
            self._record("attempts", day, slot, BookingStatus.RESERVED, "already-reserved")
            self.logger.info("✓ 已预约，跳过: day=%s label=%s", day, slot.label)
            return Signal.CONTINUE

        if has_reserve_soon(slot.label):
            self._record("attempts", day, slot, BookingStatus.SKIPPED, "reserve-soon")
            self.flow_data["notice"] = {
                "reason": "reserve-soon",
                "day": day,
                "time": opts.time,
                "label": slot.label,
            }
            self.logger.info("⚠ 检测到 reserve soon，停止本次运行: day=%s label=%s", day, slot.label)
            return Signal.STOP_RUN

        if not opts.confirm:
            self._record("matches", day, slot, BookingStatus.ATTEMPTED)
            self.logger.info("试运行匹配: day=%s time=%s label=%s", day, opts.time, slot.label)
            return Signal.CONTINUE

        async with self.driver.open_details(slot, opts.class_name) as details:
            return await self._book_in_details(day, slot, details)

    async def _book_in_details(self, day: str, slot: CandidateElement, details: DetailsView) -> Signal:
        opts = self.options
        labels = await details.labels()

        if self._time_mismatch(labels):
            self._record("attempts", day, slot, BookingStatus.SKIPPED, "time-mismatch")
            self.logger.debug("详情中的时间不匹配，跳过: day=%s label=%s", day, slot.label)
            return Signal.CONTINUE

        if opts.class_name and not any(label_matches_class(label, opts.class_name) for label in labels):
            self._record("attempts", day, slot, BookingStatus.SKIPPED, "class-mismatch")
            self.logger.debug("详情中没有课程名，跳过: day=%s label=%s", day, slot.label)
            return Signal.CONTINUE

        status = booked_status(labels)
        if status is not None:
            self._record("attempts", day, slot, status, "already-booked")
            self.logger.info("✓ 详情显示已预约: day=%s label=%s status=%s", day, slot.label, status)
            return Signal.CONTINUE

        if not has_booking_action(labels):
            self._record("attempts", day, slot, BookingStatus.UNAVAILABLE, "no-booking-action")
            self.logger.debug("没有可用的预约按钮: day=%s label=%s", day, slot.label)
            return Signal.CONTINUE

        if not opts.allow_waitlist and is_waitlist_only(labels):
            self._record("attempts", day, slot, BookingStatus.SKIPPED, "waitlist-only")
            self.logger.info("跳过只能候补的时段: day=%s label=%s", day, slot.label)
            return Signal.CONTINUE

        await details.click_booking_action()
        outcome = classify(await details.labels())
        if outcome in (BookingStatus.RESERVED, BookingStatus.WAITLISTED):
            self._record("bookings", day, slot, outcome)
            self.logger.info("✓ 预约成功: day=%s label=%s status=%s", day, slot.label, outcome)
        else:
            self._record("attempts", day, slot, BookingStatus.ATTEMPTED, outcome)
            self.logger.info("❌ 预约结果未确认: day=%s label=%s outcome=%s", day, slot.label, outcome)
        return Signal.CONTINUE

    def _time_mismatch(self, labels: List[str]) -> bool:
        # 详情中没有任何时间文本时无法判断，视为匹配
        times = [label for label in labels if TIME_LABEL.search(label)]
        if not times:
            return False
        return not any(time_matches(label, self.options.time) for label in times)

    def _record(self, bucket: str, day: str, slot: CandidateElement, status: str, note: Optional[str] = None) -> None:
        record = BookingRecord(
            day=day,
            time=self.options.time,
            class_name=self.options.class_name,
            label=slot.label,
            status=status,
            note=note,
        )
        self.flow_data[bucket].append(record.to_dict())
