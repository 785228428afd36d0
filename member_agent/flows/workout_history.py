"""训练记录捕获流程"""

import asyncio

from ..models import CaptureRule, FlowContext, FlowDefinition, FlowStep
from ..resolver import PositionalFallback
from .common import CHECK_SESSION, ENABLE_SEMANTICS, NAVIGATE_HOME, click_by_label


async def open_workouts(ctx: FlowContext) -> None:
    # 底部导航中 Workouts 大致位于右侧四分之三处
    await click_by_label(ctx, r"workouts", "Workouts", fallback=PositionalFallback(x_ratio=0.75, y_from_bottom=30))
    await asyncio.sleep(1)


async def capture_workouts(ctx: FlowContext) -> None:
    await asyncio.sleep(5)


workout_history_flow = FlowDefinition(
    name="workout-history",
    description="Navigate to workouts and capture workout data",
    steps=[
        CHECK_SESSION,
        NAVIGATE_HOME,
        ENABLE_SEMANTICS,
        FlowStep("open-workouts", open_workouts, "Open the Workouts tab in the bottom navigation."),
        FlowStep(
            "capture-workouts",
            capture_workouts,
            "Capture JSON responses after opening Workouts.",
            capture_rules=[
                CaptureRule(name="workouts", url_pattern="workout"),
                CaptureRule(name="workout-history", url_pattern="history"),
                CaptureRule(name="workout-json", url_pattern="*"),
            ],
        ),
    ],
)
