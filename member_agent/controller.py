"""执行模块：在解析出的坐标上执行点击和输入"""

import asyncio
import logging
import re
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .models import FlowContext, InteractionSurface, Point
from .resolver import locator_center

TEXT_EDITING_HOST = "flt-text-editing-host"
CLOSE_LABELS = [r"back", r"close", r"^x$", r"cancel"]


class Controller:
    """
    执行模块：点击、输入、跟随弹窗。

    点击可能触发应用内跳转，这里不等待跳转完成，由调用方决定下一个同步点。
    """

    def __init__(self, page: Page, logger: Optional[logging.Logger] = None):
        self.page = page
        self.logger = logger or logging.getLogger(__name__)

    async def click(self, point: Point, label: str = "") -> None:
        """点击坐标"""
        await self.page.mouse.click(point.x, point.y)
        self.logger.debug("✓ 点击 %s (%d, %d)", label, round(point.x), round(point.y))

    async def type_text(self, point: Point, text: str, timeout: float = 2.0) -> str:
        """
        先点击定位，再输入文字。

        应用的可编辑区域不是普通表单控件，所以不能只靠选择器聚焦。
        优先填充 flt-text-editing-host 中的原生输入框，找不到时退回到
        全选 + 删除 + 逐字输入。返回实际使用的方式。
        """
        await self.click(point, "输入框")
        await asyncio.sleep(0.15)

        editor = self.page.locator(TEXT_EDITING_HOST).locator('textarea, input, [contenteditable="true"]').first
        try:
            await editor.wait_for(state="attached", timeout=timeout * 1000)
            await editor.fill("")
            await editor.fill(text)
            return "editing-host"
        except PlaywrightError:
            self.logger.debug("文本编辑宿主不可用，改用键盘输入")

        modifier = "Meta" if sys.platform == "darwin" else "Control"
        await self.press_quietly(f"{modifier}+A")
        await self.press_quietly("Backspace")
        await self.page.keyboard.insert_text(text)
        return "keyboard"

    async def click_with_popup(self, point: Point, label: str = "", wait: float = 1.0) -> Optional[Page]:
        """点击的同时等待新弹窗，短时间内没有弹窗则返回 None"""
        try:
            async with self.page.expect_popup(timeout=wait * 1000) as popup_info:
                await self.click(point, label)
            popup = await popup_info.value
        except PlaywrightTimeoutError:
            return None

        try:
            await popup.wait_for_load_state("domcontentloaded")
        except PlaywrightError:
            self.logger.debug("弹窗加载状态等待失败")
        self.logger.debug("✓ 弹窗已打开: %s", label)
        return popup

    async def press(self, key: str) -> None:
        await self.page.keyboard.press(key)
        self.logger.debug("✓ 按键 %s", key)

    async def wheel(self, delta_x: float, delta_y: float) -> None:
        await self.page.mouse.wheel(delta_x, delta_y)
        self.logger.debug("✓ 滚动 %s", delta_y)

    async def close_details(self) -> None:
        """关闭详情：找返回/关闭按钮，找不到则按 Escape"""
        for pattern in CLOSE_LABELS:
            locator = self.page.get_by_role("button", name=re.compile(pattern, re.IGNORECASE))
            point = await locator_center(locator, timeout=0.5)
            if point is not None:
                await self.click(point, "关闭")
                return
        await self.press_quietly("Escape")

    async def press_quietly(self, key: str) -> None:
        try:
            await self.page.keyboard.press(key)
        except PlaywrightError:
            self.logger.debug("按键失败: %s", key)


@asynccontextmanager
async def follow_popup(ctx: FlowContext, popup: Page) -> AsyncIterator[FlowContext]:
    """
    把弹窗作为当前交互页面，返回新的上下文值。

    无论正常退出还是异常，都会关闭弹窗并把焦点交还给原页面；
    调用方继续使用原来的 ctx 即可。
    """
    base = ctx.surface
    popup_ctx = ctx.with_surface(InteractionSurface(page=popup, base=base))
    ctx.logger.debug("切换到弹窗页面")
    try:
        yield popup_ctx
    finally:
        try:
            await popup.close()
        except PlaywrightError:
            ctx.logger.debug("弹窗关闭失败")
        if base is not None:
            try:
                await base.page.bring_to_front()
            except PlaywrightError:
                ctx.logger.debug("原页面切回前台失败")
            await asyncio.sleep(0.3)
        ctx.logger.debug("已交还原页面")
