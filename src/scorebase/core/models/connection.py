"""Connection Domain Model -- 观众实时连接"""

from datetime import datetime

from pydantic import BaseModel, Field


class Connection(BaseModel):
    """观众连接注册记录，expires_at 之后视为陈旧连接"""

    connection_id: str = Field(description="连接 ID")
    game_id: str
    tenant_id: str
    user_id: str
    connected_at: datetime
    expires_at: datetime = Field(description="connected_at + 连接 TTL")
