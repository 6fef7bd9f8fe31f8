"""Event Validator -- 事件 payload 结构校验

纯函数、同步、无状态：不访问存储，也不修改输入。
校验失败时抛出 EventValidationError，details 为 字段路径 -> 可读原因 映射。
"""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, ValidationError

from .exceptions import EventValidationError, UnknownEventTypeError
from .models.enums import EventType
from .models.event import SpatialCoordinates
from .models.payloads import PAYLOAD_SCHEMAS

Normalized = Annotated[StrictFloat, Field(ge=0.0, le=1.0)]


class _SpatialCoordinatesSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    x: Normalized
    y: Normalized


# pydantic 错误类型 -> 可读原因
_REASONS: dict[str, str] = {
    "missing": "Missing required field",
    "extra_forbidden": "Unknown field",
    "int_type": "Expected integer",
    "int_from_float": "Expected integer",
    "float_type": "Expected number",
    "string_type": "Expected string",
    "string_too_short": "Must not be empty",
    "string_pattern_mismatch": "Does not match required pattern",
    "model_type": "Expected object",
    "dict_type": "Expected object",
}


def is_valid_event_type(event_type: str) -> bool:
    """判断事件类型是否属于封闭枚举"""
    return isinstance(event_type, str) and event_type in EventType.__members__.values()


def _reason(error: dict[str, Any]) -> str:
    err_type = error["type"]
    ctx = error.get("ctx") or {}
    if err_type == "greater_than_equal":
        return f"Must be >= {ctx.get('ge')}"
    if err_type == "less_than_equal":
        return f"Must be <= {ctx.get('le')}"
    if err_type == "value_error":
        # AfterValidator 抛出的 ValueError 文本即为原因
        return str(ctx.get("error", error["msg"]))
    return _REASONS.get(err_type, error["msg"])


def _collect(exc: ValidationError, prefix: str = "") -> dict[str, str]:
    details: dict[str, str] = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"])
        if prefix:
            path = f"{prefix}.{path}" if path else prefix
        # 同一字段只保留第一条原因
        details.setdefault(path or "payload", _reason(error))
    return details


def _validate_spatial(spatial_coordinates: Any) -> dict[str, str]:
    if isinstance(spatial_coordinates, SpatialCoordinates):
        spatial_coordinates = spatial_coordinates.model_dump()
    try:
        _SpatialCoordinatesSchema.model_validate(spatial_coordinates)
    except ValidationError as e:
        return _collect(e, prefix="spatial_coordinates")
    return {}


def validate_event(
    event_type: str,
    payload: Any,
    spatial_coordinates: Any = None,
) -> None:
    """校验事件类型和 payload 结构

    Args:
        event_type: 事件类型字符串
        payload: 事件 payload（应为 dict）
        spatial_coordinates: 可选的场地坐标，独立校验

    Raises:
        UnknownEventTypeError: 事件类型不在封闭枚举内
        EventValidationError: payload 或坐标不符合对应 schema
    """
    if not is_valid_event_type(event_type):
        raise UnknownEventTypeError(str(event_type))

    schema = PAYLOAD_SCHEMAS[EventType(event_type)]
    details: dict[str, str] = {}

    if not isinstance(payload, dict):
        details["payload"] = "Expected object"
    else:
        try:
            schema.model_validate(payload)
        except ValidationError as e:
            details.update(_collect(e))

    if spatial_coordinates is not None:
        details.update(_validate_spatial(spatial_coordinates))

    if details:
        raise EventValidationError(details)
