"""
Paste routes.
Handles create, view (JSON and raw), renew, explore and stats.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import PlainTextResponse

from pasteburn.config import settings
from pasteburn.lifecycle import PasteLifecycle
from pasteburn.models import (
    ExplorePage,
    PasteCreate,
    PasteCreated,
    PasteDetail,
    PasteSummary,
    RenewRequest,
    RenewResponse,
    Stats,
)

router = APIRouter()
logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


def get_lifecycle(request: Request) -> PasteLifecycle:
    return request.app.state.lifecycle


def _request_time(x_test_now_ms: Optional[str] = Header(None)) -> Optional[datetime]:
    """
    Current time override for deterministic testing.

    Only honoured in TEST_MODE; otherwise None so the engine uses its clock.
    """
    if settings.TEST_MODE and x_test_now_ms:
        try:
            # Convert milliseconds to seconds
            timestamp_ms = int(x_test_now_ms)
            return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid x-test-now-ms header: {e}")
    return None


@router.post("/api/pastes", response_model=PasteCreated, status_code=201)
def create_paste(
    paste: PasteCreate,
    lifecycle: PasteLifecycle = Depends(get_lifecycle),
    now: Optional[datetime] = Depends(_request_time),
) -> PasteCreated:
    """
    Create a new paste.

    Returns:
        Paste token, shareable URL and the computed limits
    """
    created = lifecycle.create(
        content=paste.content,
        expiry_choice=paste.expires_in,
        burn_choice=paste.max_views,
        is_public=paste.is_public,
        title=paste.title,
        language=paste.language,
        token_length=paste.token_length,
        now=now,
    )

    # Generate shareable URL
    base_url = settings.APP_DOMAIN.rstrip("/")
    return PasteCreated(
        token=created.token,
        url=f"{base_url}/r/{created.token}",
        expires_at=created.expires_at,
        max_views=created.max_views,
        is_public=created.is_public,
        total_pastes=lifecycle.total_created(),
    )


@router.get("/api/pastes/{token}", response_model=PasteDetail)
def fetch_paste(
    token: str,
    lifecycle: PasteLifecycle = Depends(get_lifecycle),
    now: Optional[datetime] = Depends(_request_time),
) -> PasteDetail:
    """
    Fetch a paste (API endpoint).
    Each fetch consumes one view; unknown, expired and burned tokens all 404.
    """
    return PasteDetail.from_view(lifecycle.view(token, now=now))


@router.get("/r/{token}", response_class=PlainTextResponse)
def raw_paste(
    token: str,
    lifecycle: PasteLifecycle = Depends(get_lifecycle),
    now: Optional[datetime] = Depends(_request_time),
) -> PlainTextResponse:
    """Raw text of a paste. Counts as a view."""
    view = lifecycle.view(token, now=now)
    return PlainTextResponse(
        view.paste.content,
        headers={"Content-Disposition": f'inline; filename="paste-{token}.txt"'},
    )


@router.get("/api/pastes/{token}/fork", response_model=PasteCreate)
def fork_paste(
    token: str,
    lifecycle: PasteLifecycle = Depends(get_lifecycle),
    now: Optional[datetime] = Depends(_request_time),
) -> PasteCreate:
    """Prefill for a new paste based on an existing one. Does not consume a view."""
    paste = lifecycle.peek(token, now=now).paste
    return PasteCreate(content=paste.content, title=paste.title, language=paste.language)


@router.post("/api/pastes/{token}/renew", response_model=RenewResponse)
def renew_paste(
    token: str,
    body: Optional[RenewRequest] = None,
    lifecycle: PasteLifecycle = Depends(get_lifecycle),
    now: Optional[datetime] = Depends(_request_time),
) -> RenewResponse:
    """Extend a paste's expiry. Burned or expired pastes 404."""
    extends_in = body.extends_in if body else None
    expires_at = lifecycle.renew(token, extension_choice=extends_in, now=now)
    return RenewResponse(token=token, expires_at=expires_at)


@router.get("/api/explore", response_model=ExplorePage)
def explore(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    lifecycle: PasteLifecycle = Depends(get_lifecycle),
    now: Optional[datetime] = Depends(_request_time),
) -> ExplorePage:
    """Newest public pastes."""
    now = now or lifecycle.clock()
    size = min(page_size or lifecycle.policy.explore_page_size, lifecycle.policy.explore_max_page_size)
    pastes = lifecycle.list_public(page=page, page_size=size, now=now)
    items = [
        PasteSummary(
            token=paste.token,
            title=paste.title,
            preview=paste.content[:PREVIEW_LENGTH],
            language=paste.language,
            created_at=paste.created_at,
            expires_at=paste.expires_at,
            remaining_life=lifecycle.remaining_life(paste, now),
        )
        for paste in pastes
    ]
    return ExplorePage(
        items=items,
        page=page,
        page_size=size,
        total=lifecycle.count_public(now=now),
    )


@router.get("/api/stats", response_model=Stats)
def stats(
    lifecycle: PasteLifecycle = Depends(get_lifecycle),
    now: Optional[datetime] = Depends(_request_time),
) -> Stats:
    """Counters for the landing page."""
    return Stats(
        total_pastes=lifecycle.total_created(),
        live_public=lifecycle.count_public(now=now),
        faded=lifecycle.faded_count(now=now),
    )
