"""Download token redemption."""
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_funnel_hooks
from ..use_cases.download_tokens import redeem_download_token_use_case
from ..use_cases.funnel_hooks import FunnelHooks

router = APIRouter(tags=["download"])


@router.get("/download/{token}")
def redeem_download(
    token: str,
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
):
    """Single-use: 302 to the gate file on first redemption, 409 afterwards."""
    redeemed = redeem_download_token_use_case(db=db, token=token, hooks=hooks)
    response = RedirectResponse(url=redeemed.file_url, status_code=302)
    response.headers["Cache-Control"] = "no-store"
    return response
