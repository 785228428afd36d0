"""数据模型定义"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Tuple, Union


@dataclass(frozen=True)
class Point:
    """页面坐标点"""
    x: float
    y: float


@dataclass(frozen=True)
class CandidateElement:
    """语义树中单个候选元素的快照（每次查询重新生成，不缓存）"""
    x: float
    y: float
    width: float
    height: float
    label: str = ""
    role: str = ""

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)


@dataclass
class Cluster:
    """同一视觉行/列上的元素，按锚点（首个成员坐标）归组"""
    anchor: float
    members: List[CandidateElement] = field(default_factory=list)

    @property
    def representative(self) -> CandidateElement:
        # 同一控件可能有多个重叠节点，取面积最大的
        best = self.members[0]
        for member in self.members[1:]:
            if member.area > best.area:
                best = member
        return best


@dataclass(frozen=True)
class Resolution:
    """目标解析结果"""
    strategy: str
    point: Point


class BookingStatus:
    RESERVED = "reserved"
    WAITLISTED = "waitlisted"
    ATTEMPTED = "attempted"
    SKIPPED = "skipped"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BookingRecord:
    """单个时段的预约结果记录，创建后不再修改"""
    day: str
    time: str
    class_name: str
    label: str
    status: str
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "day": self.day,
            "time": self.time,
            "className": self.class_name,
            "label": self.label,
            "status": self.status,
        }
        if self.note:
            data["note"] = self.note
        return data


class Signal(Enum):
    """时段处理后返回给外层循环的控制信号"""
    CONTINUE = "continue"
    STOP_DAY = "stop-day"
    STOP_RUN = "stop-run"


@dataclass
class CaptureRule:
    """网络响应捕获规则"""
    name: str
    url_pattern: Union[str, Pattern[str]]
    method: Optional[str] = None
    status_code: Optional[int] = None
    transform: Optional[Callable[[Any], Any]] = None


@dataclass
class CaptureRecord:
    """单条捕获到的 JSON 响应"""
    url: str
    status: int
    method: str
    timestamp: float
    data: Any


@dataclass
class InteractionSurface:
    """当前交互的页面；base 指向弹窗打开前的页面"""
    page: Any
    base: Optional["InteractionSurface"] = None

    @property
    def is_popup(self) -> bool:
        return self.base is not None


@dataclass
class FlowContext:
    """一次 CLI 调用内共享的上下文"""
    config: Any
    logger: logging.Logger
    surface: Optional[InteractionSurface] = None
    capture: Any = None
    params: Dict[str, Optional[str]] = field(default_factory=dict)
    flow_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def page(self):
        if self.surface is None:
            return None
        return self.surface.page

    def with_surface(self, surface: InteractionSurface) -> "FlowContext":
        # 新的上下文值，flow_data 仍按引用共享
        return replace(self, surface=surface)

    def param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.params.get(name)
        if value is None:
            return default
        value = value.strip()
        return value or default

    def flag(self, name: str) -> bool:
        return self.params.get(name) == "true"


StepAction = Callable[[FlowContext], Awaitable[None]]


@dataclass
class FlowStep:
    """流程中的单个步骤"""
    name: str
    action: StepAction
    description: str = ""
    capture_rules: List[CaptureRule] = field(default_factory=list)


@dataclass
class FlowDefinition:
    name: str
    description: str
    steps: List[FlowStep]


@dataclass
class RunResult:
    data: Dict[str, Any]
    steps_completed: int


ConfigProblem = Tuple[str, str]
