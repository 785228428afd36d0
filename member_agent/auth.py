"""登录态：会话保存、校验与登录完成检测"""

import asyncio
import logging
import os
from typing import Dict, List, Optional

from playwright.async_api import BrowserContext, Page

from .config import AppConfig
from .errors import SessionInvalid
from .perception import SemanticsIndex, enable_semantics, normalize_label

LOGIN_LABELS = ["username/email", "email", "password", "log in"]
NAV_LABELS = ["home", "schedule", "workouts", "social"]
GET_STARTED_LABEL = "let's get started"
AUTH_KEY_NEEDLES = ["token", "auth", "session", "jwt", "user", "member"]

logger = logging.getLogger(__name__)


def session_state_exists(config: AppConfig) -> bool:
    return os.path.exists(config.session_state_path)


def delete_session_state(config: AppConfig) -> None:
    if os.path.exists(config.session_state_path):
        os.remove(config.session_state_path)


async def save_session_state(context: BrowserContext, config: AppConfig) -> None:
    os.makedirs(os.path.dirname(config.session_state_path) or ".", exist_ok=True)
    await context.storage_state(path=config.session_state_path)


def has_auth_like_keys(keys: List[str]) -> bool:
    return any(needle in key.lower() for key in keys for needle in AUTH_KEY_NEEDLES)


def contains_any(labels: List[str], targets: List[str]) -> bool:
    normalized = [normalize_label(label) for label in labels]
    return any(target in label for label in normalized for target in targets)


async def login_indicators(page: Page) -> Dict:
    """登录表单是否还在，以及 local/session storage 中的键"""
    labels = await SemanticsIndex(page).labels()
    has_login_form = contains_any(labels, LOGIN_LABELS)
    storage = await page.evaluate(
        """
        () => ({
            bodyText: document.body ? document.body.innerText.toLowerCase() : '',
            localStorageKeys: Object.keys(localStorage),
            sessionStorageKeys: Object.keys(sessionStorage),
        })
        """
    )
    if not has_login_form:
        has_login_form = any(target in storage["bodyText"] for target in LOGIN_LABELS)
    return {
        "has_login_form": has_login_form,
        "local_storage_keys": storage["localStorageKeys"],
        "session_storage_keys": storage["sessionStorageKeys"],
        "labels": labels,
    }


async def validate_session(page: Page, config: AppConfig, log: Optional[logging.Logger] = None) -> bool:
    """
    打开首页，等待出现底部导航（有效）或登录入口（无效）。

    超时视为无效。
    """
    log = log or logger
    await page.goto(config.base_url, wait_until="domcontentloaded")
    await asyncio.sleep(0.5)
    await enable_semantics(page, config.timeout_seconds)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + config.timeout_seconds
    last_snapshot = None

    while loop.time() < deadline:
        indicators = await login_indicators(page)
        labels = indicators["labels"]
        has_nav = contains_any(labels, NAV_LABELS)
        has_get_started = contains_any(labels, [GET_STARTED_LABEL])

        snapshot = (indicators["has_login_form"], has_nav, has_get_started)
        if snapshot != last_snapshot:
            log.debug(
                "会话校验: login_form=%s nav=%s get_started=%s", *snapshot
            )
            last_snapshot = snapshot

        if has_nav and not indicators["has_login_form"]:
            return True
        if has_get_started or indicators["has_login_form"]:
            return False
        await asyncio.sleep(0.5)

    return False


async def ensure_session(page: Page, config: AppConfig, log: Optional[logging.Logger] = None) -> None:
    """会话无效时抛出 SessionInvalid"""
    if not await validate_session(page, config, log):
        raise SessionInvalid("Saved session is no longer valid.")


async def wait_for_login_success(page: Page, config: AppConfig, log: Optional[logging.Logger] = None) -> None:
    """等待登录表单消失，超时抛出异常"""
    log = log or logger
    indicators = await login_indicators(page)
    if not indicators["has_login_form"]:
        return

    loop = asyncio.get_running_loop()
    deadline = loop.time() + config.timeout_seconds
    while loop.time() < deadline:
        indicators = await login_indicators(page)
        auth_like = has_auth_like_keys(indicators["local_storage_keys"] + indicators["session_storage_keys"])
        log.debug("登录检测: login_form=%s auth_like=%s", indicators["has_login_form"], auth_like)
        if not indicators["has_login_form"]:
            return
        await asyncio.sleep(0.5)

    raise SessionInvalid("Login did not complete before timeout (login form still visible).")
