"""会员端自动化智能体核心类"""

import asyncio
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from openai import OpenAIError

from .auth import session_state_exists, validate_session
from .browser import launch_browser
from .capture import NetworkCapture
from .config import AppConfig
from .errors import FlowAborted
from .flows import get_flow
from .models import FlowContext, FlowDefinition, InteractionSurface, RunResult
from .output import build_envelope, to_jsonable, write_output, write_text_output
from .report import ReportError, generate_week_markdown
from .runner import run_flow
from .summary import build_workout_summary_by_day

LOGIN_FLOW = "login"


class MemberAgent:
    """
    启动浏览器、执行流程并写出结果。

    非登录流程在会话失效时会先运行一次登录流程再重试失败的步骤。
    """

    def __init__(self, config: AppConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        flow: FlowDefinition,
        params: Optional[Dict[str, Optional[str]]] = None,
        dry_run: bool = False,
        pause: bool = False,
    ) -> List[str]:
        """执行流程，返回写出的文件路径"""
        if dry_run:
            await run_flow(flow, FlowContext(config=self.config, logger=self.logger, params=params or {}), dry_run=True)
            return []

        self.logger.info("启动浏览器: flow=%s session_state=%s", flow.name, session_state_exists(self.config))
        async with launch_browser(self.config) as session:
            capture = NetworkCapture(session.page, self.logger)
            ctx = FlowContext(
                config=self.config,
                logger=self.logger,
                surface=InteractionSurface(page=session.page),
                capture=capture,
                params=params or {},
            )
            if flow.name == "schedule-book" and not ctx.flag("confirm"):
                self.logger.info("预约流程以试运行模式执行，使用 --confirm 才会真正预约")

            started = datetime.now(timezone.utc)
            start = time.monotonic()
            relogin = None if flow.name == LOGIN_FLOW else self.relogin
            try:
                result = await run_flow(flow, ctx, relogin=relogin)
            except FlowAborted as e:
                if flow.name != LOGIN_FLOW:
                    path = self.write_result(
                        flow, e.result, started, start, success=False, errors=[str(e.cause or e)]
                    )
                    self.logger.info("部分结果已写出: %s", path)
                raise

            paths: List[str] = []
            if flow.name != LOGIN_FLOW:
                paths.append(self.write_result(flow, result, started, start))
                self.logger.info("✓ 结果已写出: %s", paths[-1])
                if flow.name == "workout-week":
                    paths.extend(await self.write_week_summary(flow, result, started, start))

            if pause:
                await self.wait_for_enter()
        self.logger.info("浏览器已关闭: flow=%s", flow.name)
        return paths

    async def relogin(self, ctx: FlowContext) -> None:
        self.logger.info("会话无效，重新登录")
        login = get_flow(LOGIN_FLOW)
        await run_flow(login, ctx)

    async def validate_session(self) -> bool:
        async with launch_browser(self.config) as session:
            return await validate_session(session.page, self.config, self.logger)

    def write_result(
        self,
        flow: FlowDefinition,
        result: RunResult,
        started: datetime,
        start: float,
        success: bool = True,
        errors: Optional[List[str]] = None,
    ) -> str:
        envelope = build_envelope(
            self.config,
            flow.name,
            result.data,
            started=started,
            duration_ms=round((time.monotonic() - start) * 1000),
            steps_completed=result.steps_completed,
            steps_total=len(flow.steps),
            success=success,
            errors=errors,
        )
        return write_output(self.config, flow.name, envelope, now=started)

    async def write_week_summary(
        self,
        flow: FlowDefinition,
        result: RunResult,
        started: datetime,
        start: float,
    ) -> List[str]:
        """一周数据整理成摘要 JSON；配置了 OpenAI 时再生成 Markdown"""
        data = to_jsonable(result.data)
        summary = build_workout_summary_by_day({
            "workoutsWeek": data.get("workouts-week"),
            "workoutHistoryWeek": data.get("workout-history-week"),
            "weekRaw": data.get("week-raw"),
        })
        envelope = build_envelope(
            self.config,
            f"{flow.name}-summary",
            {"summaryByDay": summary},
            started=started,
            duration_ms=round((time.monotonic() - start) * 1000),
            steps_completed=result.steps_completed,
            steps_total=len(flow.steps),
        )
        paths = [write_output(self.config, flow.name, envelope, suffix="-summary", now=started)]
        self.logger.info("✓ 摘要已写出: %s", paths[-1])

        try:
            markdown = await generate_week_markdown(self.config, envelope, self.logger)
        except (ReportError, OpenAIError) as e:
            self.logger.warning("⚠ 跳过 Markdown 摘要: %s", e)
            return paths
        paths.append(write_text_output(self.config, flow.name, markdown, suffix="-summary", now=started))
        self.logger.info("✓ Markdown 摘要已写出: %s", paths[-1])
        return paths

    async def wait_for_enter(self) -> None:
        if not sys.stdin.isatty():
            return
        self.logger.info("流程完成，按回车关闭浏览器")
        await asyncio.get_running_loop().run_in_executor(None, sys.stdin.readline)
