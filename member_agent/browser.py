"""浏览器会话"""

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from .config import AppConfig


@dataclass
class BrowserSession:
    browser: Browser
    context: BrowserContext
    page: Page


@asynccontextmanager
async def launch_browser(config: AppConfig) -> AsyncIterator[BrowserSession]:
    """启动 Chromium；存在已保存的登录态时直接复用"""
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.headless, slow_mo=config.slow_mo)
        storage_state = config.session_state_path if os.path.exists(config.session_state_path) else None
        context = await browser.new_context(storage_state=storage_state)
        context.set_default_timeout(config.global_timeout)
        page = await context.new_page()
        try:
            yield BrowserSession(browser=browser, context=context, page=page)
        finally:
            await context.close()
            await browser.close()


def is_missing_browser_error(error: BaseException) -> bool:
    message = str(error).lower()
    return "executable doesn" in message or "playwright install" in message
