"""流程执行：按顺序运行步骤并汇总捕获数据"""

from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import FlowAborted, SessionInvalid
from .models import FlowContext, FlowDefinition, FlowStep, RunResult

Relogin = Callable[[FlowContext], Awaitable[None]]


def merge_capture(target: Dict[str, Any], captured: Dict[str, Any]) -> None:
    """列表追加，其余值覆盖；目标中为空的键直接写入"""
    for key, value in captured.items():
        if not target.get(key):
            target[key] = value
            continue
        if isinstance(target[key], list) and isinstance(value, list):
            target[key].extend(value)
            continue
        target[key] = value


async def _run_step(step: FlowStep, ctx: FlowContext, relogin: Optional[Relogin]) -> None:
    try:
        await step.action(ctx)
    except SessionInvalid:
        if relogin is None:
            raise
        ctx.logger.info("⚠ 登录态失效，重新登录后重试步骤: step=%s", step.name)
        await relogin(ctx)
        if ctx.capture is not None:
            ctx.capture.set_rules(step.capture_rules)
        await step.action(ctx)


async def run_flow(
    flow: FlowDefinition,
    ctx: FlowContext,
    dry_run: bool = False,
    relogin: Optional[Relogin] = None,
) -> RunResult:
    """
    依次执行流程中的步骤。

    步骤抛出异常时包装成 FlowAborted，其中带有已完成步骤的数据，
    调用方仍然可以把这部分结果写出。
    """
    data: Dict[str, Any] = {}
    steps_completed = 0
    ctx.logger.info("开始流程: flow=%s dry_run=%s", flow.name, dry_run)

    for step in flow.steps:
        if dry_run:
            ctx.logger.info("[dry-run] %s: %s", step.name, step.description)
            steps_completed += 1
            continue

        if ctx.page is None:
            raise RuntimeError("FlowContext.page is required for non-dry-run execution.")

        ctx.logger.info("执行步骤: flow=%s step=%s", flow.name, step.name)
        if ctx.capture is not None:
            ctx.capture.set_rules(step.capture_rules)
        try:
            await _run_step(step, ctx, relogin)
        except Exception as e:
            ctx.logger.error("❌ 步骤失败: flow=%s step=%s err=%s", flow.name, step.name, e)
            if ctx.capture is not None:
                merge_capture(data, ctx.capture.flush())
            merge_capture(data, ctx.flow_data)
            raise FlowAborted(flow.name, step.name, RunResult(data, steps_completed), e) from e
        steps_completed += 1

        if ctx.capture is not None:
            merge_capture(data, ctx.capture.flush())

    ctx.logger.info("✓ 流程完成: flow=%s", flow.name)
    merge_capture(data, ctx.flow_data)
    return RunResult(data=data, steps_completed=steps_completed)
