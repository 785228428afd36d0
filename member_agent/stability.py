"""等待动画中的元素位置稳定"""

import asyncio
import logging
from typing import Optional

from .perception import ElementIndex, LabelQuery

logger = logging.getLogger(__name__)


async def wait_stable(
    index: ElementIndex,
    query: LabelQuery,
    timeout: float = 8.0,
    interval: float = 0.15,
    required: int = 5,
    tolerance: float = 1.0,
) -> bool:
    """
    轮询首个匹配元素的顶边 Y 坐标，连续 required 次变化小于 tolerance 即认为稳定。

    元素暂时不存在时继续轮询。超时返回 False，调用方应继续执行而不是中断，
    滑入动画本身就有竞争，这里接受不精确。
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    last_y: Optional[float] = None
    stable_count = 0

    while loop.time() < deadline:
        element = await index.first(query)
        if element is not None:
            if last_y is not None and abs(element.y - last_y) < tolerance:
                stable_count += 1
                if stable_count >= required:
                    return True
            else:
                stable_count = 0
                last_y = element.y
        await asyncio.sleep(interval)

    logger.debug("⚠ 元素位置未稳定: text=%s pattern=%s", query.text, query.pattern)
    return False
