"""各流程共用的步骤和定位辅助"""

import asyncio
from typing import Optional

from ..auth import ensure_session, session_state_exists
from ..controller import Controller
from ..errors import SessionInvalid
from ..models import FlowContext, FlowStep, Resolution
from ..perception import SemanticsIndex, enable_semantics
from ..resolver import PositionalFallback, TargetResolver, labeled_control_cascade


def index_for(ctx: FlowContext) -> SemanticsIndex:
    return SemanticsIndex(ctx.page)


def resolver_for(ctx: FlowContext) -> TargetResolver:
    return TargetResolver(ctx.page, index_for(ctx), ctx.logger)


def controller_for(ctx: FlowContext) -> Controller:
    return Controller(ctx.page, ctx.logger)


async def click_by_label(
    ctx: FlowContext,
    pattern: str,
    label_name: str,
    fallback: Optional[PositionalFallback] = None,
) -> Resolution:
    """按标准策略链点击带文字的控件，全部失败时抛出 TargetNotFound"""
    timeout = ctx.config.capped_timeout(2.0)
    resolution = await resolver_for(ctx).resolve_required(
        label_name, labeled_control_cascade(pattern, fallback=fallback, timeout=timeout)
    )
    await controller_for(ctx).click(resolution.point, label_name)
    return resolution


async def navigate_home(ctx: FlowContext) -> None:
    await ctx.page.goto(ctx.config.base_url, wait_until="domcontentloaded")
    await asyncio.sleep(1)


async def enable_semantics_step(ctx: FlowContext) -> None:
    await enable_semantics(ctx.page, ctx.config.timeout_seconds)


async def check_session(ctx: FlowContext) -> None:
    """没有保存的登录态或登录态失效时抛出 SessionInvalid，由执行器触发重新登录"""
    if not session_state_exists(ctx.config):
        raise SessionInvalid("No saved session state.")
    await ensure_session(ctx.page, ctx.config, ctx.logger)


NAVIGATE_HOME = FlowStep(
    name="navigate-home",
    description="Open the members app home screen.",
    action=navigate_home,
)

ENABLE_SEMANTICS = FlowStep(
    name="enable-semantics",
    description="Ensure Flutter semantics tree is enabled (if placeholder exists).",
    action=enable_semantics_step,
)

CHECK_SESSION = FlowStep(
    name="check-session",
    description="Verify the saved session; re-authenticate when it has expired.",
    action=check_session,
)
