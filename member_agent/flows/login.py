"""登录流程"""

import asyncio
from typing import List

from ..auth import save_session_state, wait_for_login_success
from ..geometry import cluster, representatives
from ..models import CandidateElement, FlowContext, FlowDefinition, FlowStep
from ..perception import LabelQuery, normalize_label, poll_query
from ..resolver import (
    FieldLabelQuery,
    PlaceholderQuery,
    PositionalFallback,
    RoleQuery,
    ScopedTextQuery,
    SelectorQuery,
    SemanticsQuery,
    Strategy,
    TextQuery,
)
from ..stability import wait_stable
from .common import ENABLE_SEMANTICS, click_by_label, controller_for, index_for, navigate_home, resolver_for

EMAIL_SELECTOR = '[aria-label="Email"], input[type="email"]'
PASSWORD_SELECTOR = '[aria-label="Password"], input[type="password"]'
GET_STARTED_PATTERN = r"let['’]s get started"
LOGIN_PATTERN = r"log in"
EMAIL_PATTERN = r"username/email|email|username"


def is_likely_field(element: CandidateElement) -> bool:
    role = normalize_label(element.role)
    label = normalize_label(element.label)
    return (
        "textbox" in role
        or "text field" in role
        or any(word in label for word in ("email", "username", "password"))
    )


async def find_field_rows(ctx: FlowContext) -> List[CandidateElement]:
    """语义树中的输入框按行聚类，每行取面积最大的节点，从上到下排列"""
    fields = await index_for(ctx).query(LabelQuery(match=is_likely_field, min_width=120, min_height=24))
    return representatives(cluster(fields, axis="y", threshold=40))


def field_cascade(pattern: str, aria_labels: List[str], selector: str, timeout: float) -> List[Strategy]:
    strategies: List[Strategy] = [
        SemanticsQuery(LabelQuery(text=label, min_width=1, min_height=1), y_ratio=0.7, label=label)
        for label in aria_labels
    ]
    strategies += [
        SelectorQuery(selector, timeout=timeout),
        FieldLabelQuery(pattern, timeout=timeout),
        RoleQuery("textbox", pattern, timeout=timeout),
        PlaceholderQuery(pattern, timeout=timeout),
        TextQuery(pattern, timeout=timeout),
        ScopedTextQuery(pattern, timeout=timeout),
    ]
    return strategies


async def open_login(ctx: FlowContext) -> None:
    await ctx.page.locator("flt-semantics-host").wait_for(state="attached", timeout=ctx.config.global_timeout)
    await poll_query(index_for(ctx), LabelQuery(pattern=GET_STARTED_PATTERN), ctx.config.capped_timeout(15))
    await click_by_label(ctx, GET_STARTED_PATTERN, "get started", fallback=PositionalFallback(y_from_bottom=60))


async def fill_credentials(ctx: FlowContext) -> None:
    config = ctx.config
    timeout = config.capped_timeout(8)
    index = index_for(ctx)
    controller = controller_for(ctx)

    await poll_query(index, LabelQuery(pattern=r"username|email", min_width=1, min_height=1), timeout)
    if not await wait_stable(index, LabelQuery(pattern=EMAIL_PATTERN, min_width=1, min_height=1), timeout):
        ctx.logger.warning("⚠ 登录面板位置未稳定，继续输入")

    rows = await find_field_rows(ctx)
    if len(rows) >= 2:
        email_field, password_field = rows[0], rows[1]
        ctx.logger.debug("按位置输入: email=%s password=%s", email_field.label, password_field.label)
        await controller.type_text(email_field.center, config.email, timeout=min(2, timeout))
        await controller.type_text(password_field.center, config.password, timeout=min(2, timeout))
        return

    resolver = resolver_for(ctx)
    per_attempt = min(1.5, timeout)
    email = await resolver.resolve_required(
        "email/username field",
        field_cascade(EMAIL_PATTERN, ["Username/email", "Email", "Username"], EMAIL_SELECTOR, per_attempt),
    )
    await controller.type_text(email.point, config.email, timeout=per_attempt)

    password = await resolver.resolve_required(
        "password field",
        field_cascade(r"password", ["Password"], PASSWORD_SELECTOR, per_attempt),
    )
    await controller.type_text(password.point, config.password, timeout=per_attempt)


async def submit_login(ctx: FlowContext) -> None:
    await asyncio.sleep(0.3)
    await poll_query(index_for(ctx), LabelQuery(pattern=LOGIN_PATTERN), ctx.config.capped_timeout(10))
    await asyncio.sleep(0.15)
    await click_by_label(ctx, LOGIN_PATTERN, "log in", fallback=PositionalFallback(y_from_bottom=80))


async def wait_for_login(ctx: FlowContext) -> None:
    await wait_for_login_success(ctx.page, ctx.config, ctx.logger)


async def save_session(ctx: FlowContext) -> None:
    await save_session_state(ctx.page.context, ctx.config)
    ctx.logger.info("✓ 登录态已保存")


login_flow = FlowDefinition(
    name="login",
    description="Sign in to the PushPress member app",
    steps=[
        FlowStep("navigate-to-home", navigate_home, "Open the members app landing page."),
        ENABLE_SEMANTICS,
        FlowStep("open-login", open_login, "Click “Let’s get started” to open the login window."),
        FlowStep("fill-credentials", fill_credentials, "Fill in the email and password fields."),
        FlowStep("submit-login", submit_login, "Submit the login form."),
        FlowStep("wait-for-login-success", wait_for_login, "Wait until the login form disappears."),
        FlowStep("save-session", save_session, "Persist the browser storage state to reuse the session."),
    ],
)
