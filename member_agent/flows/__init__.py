"""
可执行的流程

- login: 登录并保存会话
- workout-history: 打开训练页并捕获数据
- workout-week: 逐天捕获一周的训练数据
- schedule-book: 按天和时间预约课程
"""

from typing import List, Optional

from ..models import FlowDefinition
from .login import login_flow
from .schedule_book import schedule_book_flow
from .workout_history import workout_history_flow
from .workout_week import workout_week_flow

FLOWS: List[FlowDefinition] = [
    login_flow,
    workout_history_flow,
    workout_week_flow,
    schedule_book_flow,
]


def get_flow(name: str) -> Optional[FlowDefinition]:
    for flow in FLOWS:
        if flow.name == name:
            return flow
    return None


__all__ = ["FLOWS", "get_flow"]
