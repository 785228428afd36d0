"""课表预约流程：基于语义树的 ScheduleDriver 实现"""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date, timedelta
from typing import AsyncIterator, List, Optional

from ..booking import BookingOptions, BookingRun, DetailsView, ScheduleDriver
from ..classifier import has_booking_action
from ..controller import follow_popup
from ..models import CandidateElement, FlowContext, FlowDefinition, FlowStep, Point
from ..perception import LabelQuery, dump_labels, enable_semantics
from ..resolver import RoleQuery, ScopedTextQuery, Strategy, TextQuery
from ..schedule import (
    DAY_ORDER,
    best_date_match,
    date_patterns,
    find_class_labels,
    find_day_buttons,
    find_time_slots,
    parse_days,
    parse_week_offset,
    slots_for_class,
    visible_times,
)
from .common import (
    CHECK_SESSION,
    ENABLE_SEMANTICS,
    NAVIGATE_HOME,
    click_by_label,
    controller_for,
    index_for,
    resolver_for,
)

BOOKING_ACTION_PATTERNS = [r"reserve", r"book", r"sign up", r"join", r"register"]
DAY_BUTTON_WAIT = 8.0
SLOT_WAIT = 6.0
MAX_SCROLLS = 12
SCROLL_STEP = 600


async def wait_for_day_buttons(ctx: FlowContext) -> List[CandidateElement]:
    """轮询日期行直到凑齐 7 个按钮，超时返回最后一次的结果"""
    index = index_for(ctx)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + ctx.config.capped_timeout(DAY_BUTTON_WAIT)
    buttons = await find_day_buttons(index)
    while len(buttons) < len(DAY_ORDER) and loop.time() < deadline:
        await asyncio.sleep(0.3)
        buttons = await find_day_buttons(index)
    return buttons


async def wait_for_time_slots(ctx: FlowContext, time_label: str, timeout: float) -> List[CandidateElement]:
    index = index_for(ctx)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        slots = await find_time_slots(index, time_label)
        if slots or loop.time() >= deadline:
            return slots
        await asyncio.sleep(0.3)


async def find_time_slots_with_scroll(ctx: FlowContext, time_label: str) -> List[CandidateElement]:
    index = index_for(ctx)
    controller = controller_for(ctx)
    slots = await find_time_slots(index, time_label)
    for _ in range(MAX_SCROLLS):
        if slots:
            break
        await controller.wheel(0, SCROLL_STEP)
        await asyncio.sleep(0.5)
        slots = await find_time_slots(index, time_label)
    return slots


def booking_action_cascade(timeout: float) -> List[Strategy]:
    strategies: List[Strategy] = []
    for pattern in BOOKING_ACTION_PATTERNS:
        strategies += [
            RoleQuery("button", pattern, timeout=timeout),
            TextQuery(pattern, timeout=timeout),
            ScopedTextQuery(pattern, timeout=timeout),
        ]
    return strategies


class SemanticsDetailsView(DetailsView):
    """当前交互页面（基础页面或弹窗）上的时段详情"""

    def __init__(self, ctx: FlowContext):
        self.ctx = ctx

    async def labels(self) -> List[str]:
        return await index_for(self.ctx).labels()

    async def click_booking_action(self) -> None:
        timeout = self.ctx.config.capped_timeout(2.0)
        resolution = await resolver_for(self.ctx).resolve_required("booking action", booking_action_cascade(timeout))
        await controller_for(self.ctx).click(resolution.point, "预约按钮")
        await asyncio.sleep(1.2)


class SemanticsScheduleDriver(ScheduleDriver):
    def __init__(self, ctx: FlowContext):
        self.ctx = ctx

    @property
    def logger(self):
        return self.ctx.logger

    async def select_day(self, day: str) -> bool:
        ctx = self.ctx
        buttons = await wait_for_day_buttons(ctx)
        if len(buttons) < len(DAY_ORDER):
            # 日期行可能被滚出可视区域，回到顶部后重试一次
            controller = controller_for(ctx)
            await controller.wheel(0, -2000)
            await asyncio.sleep(0.4)
            await controller.press_quietly("Home")
            await asyncio.sleep(0.4)
            await enable_semantics(ctx.page, ctx.config.timeout_seconds)
            buttons = await wait_for_day_buttons(ctx)

        if len(buttons) < len(DAY_ORDER):
            await dump_labels(index_for(ctx))
            self.logger.warning("⚠ 日期按钮不足: day=%s buttons=%d", day, len(buttons))
            return False

        button = buttons[DAY_ORDER.index(day)]
        await controller_for(ctx).click(button.center, f"日期 {day} ({button.label})")
        await asyncio.sleep(1)
        return True

    async def find_slots(self, day: str, time_label: str, class_filter: Optional[str]) -> List[CandidateElement]:
        ctx = self.ctx
        slots = await wait_for_time_slots(ctx, time_label, SLOT_WAIT)
        if not slots:
            slots = await find_time_slots_with_scroll(ctx, time_label)
        if not slots:
            self.logger.info(
                "没有匹配时间的时段: day=%s time=%s visible=%s",
                day, time_label, await visible_times(index_for(ctx)),
            )
            return []
        if not class_filter:
            return slots
        return await slots_for_class(index_for(ctx), slots, class_filter)

    @asynccontextmanager
    async def open_details(self, slot: CandidateElement, class_filter: Optional[str]) -> AsyncIterator[DetailsView]:
        """
        依次点击时段卡片的几个位置直到详情中出现预约按钮。

        点击打开弹窗后，后续操作都在弹窗中进行；退出时先关闭详情，
        再由 follow_popup 关闭弹窗并交还原页面。
        """
        async with AsyncExitStack() as stack:
            ctx = self.ctx
            opened = False
            for name, point in self._click_attempts(slot):
                ctx = await self._click_slot(stack, ctx, point, name)
                await asyncio.sleep(0.5)
                if has_booking_action(await index_for(ctx).labels()):
                    opened = True
                    break

            if not opened and class_filter:
                labels = await find_class_labels(index_for(ctx), class_filter)
                if labels:
                    nearest = min(labels, key=lambda label: abs(label.y - slot.y))
                    ctx = await self._click_slot(stack, ctx, nearest.center, "class-label")
                    await asyncio.sleep(0.6)

            try:
                yield SemanticsDetailsView(ctx)
            finally:
                await controller_for(ctx).close_details()
                await asyncio.sleep(0.3)

    def _click_attempts(self, slot: CandidateElement):
        center = slot.center
        offset_x = center.x + max(160, slot.width * 2)
        attempts = [
            ("time-label", center),
            ("card-body", Point(offset_x, center.y + 24)),
            ("card-body-lower", Point(offset_x, center.y + 64)),
        ]
        viewport = self.ctx.page.viewport_size
        if viewport:
            attempts.append(("card-center", Point(viewport["width"] * 0.6, center.y + 24)))
        return attempts

    async def _click_slot(self, stack: AsyncExitStack, ctx: FlowContext, point: Point, name: str) -> FlowContext:
        popup = await controller_for(ctx).click_with_popup(point, name)
        if popup is None:
            return ctx
        ctx = await stack.enter_async_context(follow_popup(ctx, popup))
        await enable_semantics(ctx.page, ctx.config.timeout_seconds)
        return ctx


def booking_options(ctx: FlowContext) -> BookingOptions:
    time_label = ctx.param("time")
    if not ctx.param("days") or not time_label:
        raise ValueError("Missing --days or --time parameter.")
    return BookingOptions(
        time=time_label,
        class_name=ctx.param("class", "CrossFit"),
        confirm=ctx.flag("confirm"),
        allow_waitlist=ctx.flag("waitlist"),
    )


async def open_schedule(ctx: FlowContext) -> None:
    await click_by_label(ctx, r"schedule", "Schedule")
    await asyncio.sleep(1.5)


async def open_category(ctx: FlowContext) -> None:
    category = ctx.param("category", "Classes")
    await click_by_label(ctx, category, category)
    await asyncio.sleep(1)


async def select_date_in_picker(ctx: FlowContext, target: date) -> bool:
    elements = await index_for(ctx).query(LabelQuery(min_width=12, min_height=12))
    best = best_date_match(elements, date_patterns(target))
    if best is None:
        return False
    await controller_for(ctx).click(best.center, f"日期选择 {target.isoformat()}")
    await asyncio.sleep(0.8)
    return True


async def maybe_open_next_week(ctx: FlowContext) -> None:
    offset = parse_week_offset(ctx.param("week"))
    if offset <= 0:
        return

    target = date.today() + timedelta(weeks=offset)
    buttons = await wait_for_day_buttons(ctx)
    if not buttons:
        ctx.logger.debug("没有找到周切换按钮，停留在本周")
        return

    # 周切换按钮在日期行正下方，以周三为水平锚点
    anchor = buttons[DAY_ORDER.index("wed")] if len(buttons) > DAY_ORDER.index("wed") else buttons[len(buttons) // 2]
    max_bottom = max(button.bottom for button in buttons)
    await controller_for(ctx).click(Point(anchor.center.x, max_bottom + 24), "下周切换")
    await asyncio.sleep(0.8)

    if not await select_date_in_picker(ctx, target):
        ctx.logger.debug("日期选择器中没有找到目标日期: %s", target.isoformat())
        return
    await wait_for_day_buttons(ctx)


async def book_days(ctx: FlowContext) -> None:
    options = booking_options(ctx)
    days = parse_days(ctx.param("days"))
    if not days:
        raise ValueError("No valid days found in --days.")

    run = BookingRun(SemanticsScheduleDriver(ctx), options, ctx.flow_data, ctx.logger)
    await run.run(days)


schedule_book_flow = FlowDefinition(
    name="schedule-book",
    description="Book CrossFit sessions on specified days and time",
    steps=[
        CHECK_SESSION,
        NAVIGATE_HOME,
        ENABLE_SEMANTICS,
        FlowStep("open-schedule", open_schedule, "Open the Schedule tab in the bottom navigation."),
        FlowStep(
            "open-category",
            open_category,
            "Select the desired category at the top (Classes/Appointments/Events/Reservations).",
        ),
        FlowStep("maybe-open-next-week", maybe_open_next_week, "Optionally open the next week selector when requested."),
        FlowStep("book-days", book_days, "Book sessions for the specified days/time."),
    ],
)
