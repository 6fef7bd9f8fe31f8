"""Scorebase 异常体系

所有可预期的业务错误都继承 ScorebaseError，携带稳定的 code 和 HTTP 状态码，
由 gateway 统一转换为 {"error": {...}} 响应。
"""

from typing import Any


class ScorebaseError(Exception):
    """Scorebase 基础异常"""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Args:
            message: 面向调用方的错误描述
            details: 可选的结构化错误详情
        """
        super().__init__(message)
        self.message = message
        self.details = details


class EventValidationError(ScorebaseError):
    """事件 payload 结构不合法，details 为 字段路径 -> 原因 映射"""

    code = "INVALID_EVENT_PAYLOAD"
    status_code = 400

    def __init__(self, details: dict[str, str]) -> None:
        super().__init__("Invalid event payload", details=details)


class UnknownEventTypeError(ScorebaseError):
    """事件类型不在封闭枚举内"""

    code = "UNKNOWN_EVENT_TYPE"
    status_code = 400

    def __init__(self, event_type: str) -> None:
        super().__init__(f"Unknown event type: {event_type}")
        self.event_type = event_type


class BadRequestError(ScorebaseError):
    """请求语义错误，例如进球球队不属于该比赛"""

    code = "BAD_REQUEST"
    status_code = 400


class NotFoundError(ScorebaseError):
    """资源不存在

    跨租户访问同样抛出此异常，且消息与“不存在”完全一致，避免泄露其他租户的数据存在性。
    """

    code = "NOT_FOUND"
    status_code = 404


class ConflictWithTerminalStateError(ScorebaseError):
    """比赛已处于终态（FINAL / CANCELLED），拒绝新的普通事件"""

    code = "GAME_ALREADY_TERMINAL"
    status_code = 409

    def __init__(self, game_id: str, status: str) -> None:
        super().__init__(f"Game {game_id} is already {status}; no further events accepted")
        self.game_id = game_id
        self.status = status


class ProjectionFailedError(ScorebaseError):
    """事件已落盘，但投影失败

    事件日志不会因投影失败而回滚；调用方应通过对账任务或使用同一幂等键重试恢复。
    details 始终携带 event_id。业务错误经 wrap 包装后保留原错误类型与 code，
    例如进球球队不属于该比赛时调用方仍得到 BadRequestError / BAD_REQUEST。
    """

    code = "PROJECTION_FAILED"

    def __init__(self, event_id: str, cause: Exception) -> None:
        message = cause.message if isinstance(cause, ScorebaseError) else "Projection failed"
        super().__init__(message, details={"event_id": event_id})
        self.event_id = event_id
        self.cause = cause
        if isinstance(cause, ScorebaseError):
            self.status_code = cause.status_code

    @classmethod
    def wrap(cls, event_id: str, cause: Exception) -> "ProjectionFailedError":
        """按原错误类型选择子类"""
        if isinstance(cause, BadRequestError):
            return ProjectionBadRequestError(event_id, cause)
        if isinstance(cause, NotFoundError):
            return ProjectionNotFoundError(event_id, cause)
        return cls(event_id, cause)


class ProjectionBadRequestError(ProjectionFailedError, BadRequestError):
    """投影阶段的 BadRequest（事件已落盘）"""

    code = "BAD_REQUEST"


class ProjectionNotFoundError(ProjectionFailedError, NotFoundError):
    """投影阶段比赛不存在（事件已落盘，比赛在写入后被删除或不可见）"""

    code = "NOT_FOUND"


class DuplicateIdempotencyKeyError(ScorebaseError):
    """事件库唯一索引拒绝了重复的 (tenant_id, idempotency_key)

    由 pipeline 内部吸收并转换为“返回已存在事件”，不会暴露给调用方。
    """

    code = "DUPLICATE_IDEMPOTENCY_KEY"
    status_code = 409

    def __init__(self, tenant_id: str, idempotency_key: str) -> None:
        super().__init__("Duplicate idempotency key")
        self.tenant_id = tenant_id
        self.idempotency_key = idempotency_key


class DeliveryError(ScorebaseError):
    """单个观众连接投递失败（永久性）

    仅在 BroadcastEngine 内部使用：记录日志并清理连接，永远不会传递给提交方。
    """

    code = "DELIVERY_FAILED"

    def __init__(self, connection_id: str, reason: str) -> None:
        super().__init__(f"Failed to deliver to connection {connection_id}: {reason}")
        self.connection_id = connection_id
        self.reason = reason
