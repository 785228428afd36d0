"""一周训练内容捕获流程"""

import asyncio
from typing import Any, Callable, Dict, List

from ..models import CaptureRule, FlowContext, FlowDefinition, FlowStep
from ..perception import dump_labels
from ..schedule import DAY_ORDER, find_day_buttons
from .common import CHECK_SESSION, ENABLE_SEMANTICS, NAVIGATE_HOME, click_by_label, controller_for, index_for

DAY_BUTTON_WAIT = 10.0
RESPONSE_WAIT = 6.0
SETTLE_AFTER_RESPONSE = 1.0


async def open_workouts(ctx: FlowContext) -> None:
    await click_by_label(ctx, r"workouts", "Workouts")
    await asyncio.sleep(1.5)


async def click_day_by_index(ctx: FlowContext, position: int, day: str) -> None:
    """训练页的日期行位置更低，聚类阈值和纵向范围都比课表页宽"""
    index = index_for(ctx)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + ctx.config.capped_timeout(DAY_BUTTON_WAIT)
    buttons = await find_day_buttons(index, threshold=40, max_y_ratio=0.85)
    while len(buttons) < len(DAY_ORDER) and loop.time() < deadline:
        await asyncio.sleep(0.3)
        buttons = await find_day_buttons(index, threshold=40, max_y_ratio=0.85)

    if len(buttons) < len(DAY_ORDER):
        await dump_labels(index)
        raise RuntimeError(f"Expected {len(DAY_ORDER)} day buttons, found {len(buttons)}.")

    button = buttons[position]
    await controller_for(ctx).click(button.center, f"日期 {day} ({button.label})")


def tag_day(day: str) -> Callable[[Any], Dict[str, Any]]:
    return lambda data: {"day": day, "data": data}


def day_capture_rules(day: str) -> List[CaptureRule]:
    return [
        CaptureRule(name="workouts-week", url_pattern="workout", transform=tag_day(day)),
        CaptureRule(name="workout-history-week", url_pattern="history", transform=tag_day(day)),
        CaptureRule(name="week-raw", url_pattern="*", transform=tag_day(day)),
    ]


def capture_day_step(position: int, day: str) -> FlowStep:
    async def action(ctx: FlowContext) -> None:
        await click_day_by_index(ctx, position, day)
        if ctx.capture is None:
            await asyncio.sleep(RESPONSE_WAIT)
            return
        if await ctx.capture.wait_for("workouts-week", RESPONSE_WAIT):
            await asyncio.sleep(SETTLE_AFTER_RESPONSE)
        else:
            ctx.logger.debug("⚠ 没有等到训练数据响应: day=%s", day)

    return FlowStep(
        name=f"capture-{day}",
        action=action,
        description=f"Capture workouts for {day}.",
        capture_rules=day_capture_rules(day),
    )


workout_week_flow = FlowDefinition(
    name="workout-week",
    description="Capture workout data for each day of the week",
    steps=[
        CHECK_SESSION,
        NAVIGATE_HOME,
        ENABLE_SEMANTICS,
        FlowStep("open-workouts", open_workouts, "Open the Workouts tab in the bottom navigation."),
    ] + [capture_day_step(position, day) for position, day in enumerate(DAY_ORDER)],
)
