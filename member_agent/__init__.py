"""PushPress 会员端自动化包

包含各个模块：
- models: 数据模型
- perception: 感知模块（语义树索引）
- geometry: 行列聚类
- stability: 布局稳定等待
- resolver: 目标解析（策略链、课程与时段关联）
- controller: 执行模块
- classifier: 预约结果判定
- booking: 预约状态机
- capture: 网络响应捕获
- runner: 流程执行
- core: 核心 Agent 类
"""

__version__ = "0.1.0"

from .models import BookingRecord, BookingStatus, CandidateElement, Cluster, Point, Resolution, Signal
from .perception import ElementIndex, LabelQuery, SemanticsIndex, StaticIndex
from .resolver import TargetResolver
from .controller import Controller, follow_popup
from .classifier import classify
from .booking import BookingOptions, BookingRun
from .errors import FlowAborted, SessionInvalid, TargetNotFound
from .core import MemberAgent

__all__ = [
    "BookingRecord",
    "BookingStatus",
    "CandidateElement",
    "Cluster",
    "Point",
    "Resolution",
    "Signal",
    "ElementIndex",
    "LabelQuery",
    "SemanticsIndex",
    "StaticIndex",
    "TargetResolver",
    "Controller",
    "follow_popup",
    "classify",
    "BookingOptions",
    "BookingRun",
    "FlowAborted",
    "SessionInvalid",
    "TargetNotFound",
    "MemberAgent",
]
