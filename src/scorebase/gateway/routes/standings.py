"""积分榜路由 -- GET /v1/seasons/{season_id}/standings"""

from fastapi import APIRouter, Depends

from ..auth import Claims, get_claims
from ..deps import get_standings_trigger

router = APIRouter()


@router.get("/v1/seasons/{season_id}/standings")
async def get_standings(
    season_id: str,
    claims: Claims = Depends(get_claims),
    standings_trigger=Depends(get_standings_trigger),
):
    """返回赛季积分榜；跨租户与不存在同为 404"""
    standings = await standings_trigger.get_standings(claims.tenant_id, season_id)
    return {"standings": [s.model_dump(mode="json") for s in standings]}
