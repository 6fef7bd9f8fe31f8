"""快照路由 -- GET /v1/games/{game_id}/snapshot"""

from fastapi import APIRouter, Depends

from ..auth import Claims, get_claims
from ..deps import get_snapshot_builder

router = APIRouter()


@router.get("/v1/games/{game_id}/snapshot")
async def get_snapshot(
    game_id: str,
    claims: Claims = Depends(get_claims),
    snapshot_builder=Depends(get_snapshot_builder),
):
    """返回比赛当前快照（比分、状态、节次、时钟、最近 10 条事件）"""
    snapshot = await snapshot_builder.generate(claims.tenant_id, game_id)
    return snapshot.model_dump(mode="json")
