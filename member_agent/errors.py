"""异常定义"""

from typing import Optional


class TargetNotFound(Exception):
    """必需的交互目标在整个策略链中都没有找到"""

    def __init__(self, intent: str):
        super().__init__(f"Failed to locate {intent}.")
        self.intent = intent


class SessionInvalid(Exception):
    """登录态失效，需要重新登录"""


class ConfigError(Exception):
    """配置无效"""


class FlowAborted(Exception):
    """步骤执行失败，携带已完成部分的结果"""

    def __init__(self, flow: str, step: str, result, cause: Optional[BaseException] = None):
        super().__init__(f"Flow '{flow}' aborted at step '{step}': {cause}")
        self.flow = flow
        self.step = step
        self.result = result
        self.cause = cause
