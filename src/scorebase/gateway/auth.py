"""调用方身份声明

认证由上游网关完成，此处只读取其注入的可信请求头：
X-Tenant-ID（必需）、X-User-ID、X-User-Roles（逗号分隔）。
"""

from fastapi import Header, HTTPException
from pydantic import BaseModel, Field

WRITER_ROLES = frozenset({"scorekeeper", "admin"})


class Claims(BaseModel):
    """已认证调用方的身份声明"""

    tenant_id: str
    user_id: str = "anonymous"
    roles: list[str] = Field(default_factory=list)

    @property
    def can_write_events(self) -> bool:
        return bool(WRITER_ROLES.intersection(self.roles))


def get_claims(
    x_tenant_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
    x_user_roles: str | None = Header(default=None),
) -> Claims:
    """从请求头解析身份声明，缺少租户时返回 401"""
    if not x_tenant_id:
        raise HTTPException(status_code=401, detail="Missing tenant claim")
    roles = [r.strip() for r in (x_user_roles or "").split(",") if r.strip()]
    return Claims(tenant_id=x_tenant_id, user_id=x_user_id or "anonymous", roles=roles)


def require_writer(claims: Claims) -> None:
    """写事件需要 scorekeeper 或 admin 角色"""
    if not claims.can_write_events:
        raise HTTPException(
            status_code=403,
            detail="Role scorekeeper or admin required to submit events",
        )
