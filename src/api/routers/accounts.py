"""Account lookup endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from schemas.bookmark import AccountListResponse
from services.search_service import list_accounts

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("/", response_model=AccountListResponse)
async def list_all_accounts(
    db: AsyncSession = Depends(get_async_session),
) -> AccountListResponse:
    """Get every imported account with its bookmark count."""
    return AccountListResponse(accounts=await list_accounts(db))
