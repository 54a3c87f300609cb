"""
Pydantic models: the stored paste record and the request/response schemas.
"""
from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import BaseModel, Field


def to_millis(moment: datetime) -> int:
    """Epoch milliseconds for an aware datetime."""
    return int(moment.timestamp() * 1000)


def from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class Paste(BaseModel):
    """A stored paste record."""
    token: str
    title: str = "Untitled"
    content: str
    language: str = "auto"
    created_at: datetime
    expires_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    max_views: Optional[int] = None
    remaining_views: Optional[int] = None
    is_public: bool = False
    view_count: int = 0

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def burn_limited(self) -> bool:
        return self.max_views is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and to_millis(self.expires_at) <= to_millis(now)

    def is_exhausted(self) -> bool:
        return self.remaining_views is not None and self.remaining_views <= 0

    def is_live(self, now: datetime) -> bool:
        return not self.is_expired(now) and not self.is_exhausted()


class RemainingLife(BaseModel):
    """Display-only indication of how close a paste is to disappearing."""
    fraction: float = Field(..., ge=0.0, le=1.0)
    stage: str = Field(..., description="vibrant, fading or dying")
    seconds_left: Optional[int] = None
    views_left: Optional[int] = None


class PasteView(BaseModel):
    """What a successful read hands back to the HTTP layer."""
    paste: Paste
    life: RemainingLife


class PasteCreate(BaseModel):
    """Schema for creating a new paste."""
    content: str = Field(..., min_length=1, description="Text content (required, non-empty)")
    title: Optional[str] = Field(None, max_length=200, description="Optional title")
    language: Optional[str] = Field(None, description="Syntax highlighting hint")
    expires_in: Optional[Union[int, str]] = Field(
        None, description="Lifetime in seconds from the offered choices, or 'never'"
    )
    max_views: Optional[Union[int, str]] = Field(
        None, description="Burn after this many views, or 'unlimited'"
    )
    token_length: Optional[int] = Field(None, ge=1, description="Token length from the offered choices")
    is_public: bool = Field(False, description="List the paste on the explore page")


class PasteCreated(BaseModel):
    """Schema for paste creation response."""
    token: str = Field(..., description="Unique paste token")
    url: str = Field(..., description="Shareable URL to view the paste")
    expires_at: Optional[datetime] = Field(None, description="Expiry timestamp, null if never")
    max_views: Optional[int] = Field(None, description="View budget, null if unlimited")
    is_public: bool
    total_pastes: int = Field(..., description="Pastes created so far, including this one")


class PasteDetail(BaseModel):
    """Schema for viewing/fetching a paste."""
    token: str
    title: str
    content: str = Field(..., description="Paste text content")
    language: str
    created_at: datetime
    expires_at: Optional[datetime] = Field(None, description="Expiry timestamp, null if no TTL")
    remaining_views: Optional[int] = Field(None, description="Views left (null if unlimited)")
    view_count: int
    is_public: bool
    remaining_life: RemainingLife

    @classmethod
    def from_view(cls, view: PasteView) -> "PasteDetail":
        paste = view.paste
        return cls(
            token=paste.token,
            title=paste.title,
            content=paste.content,
            language=paste.language,
            created_at=paste.created_at,
            expires_at=paste.expires_at,
            remaining_views=paste.remaining_views,
            view_count=paste.view_count,
            is_public=paste.is_public,
            remaining_life=view.life,
        )


class RenewRequest(BaseModel):
    extends_in: Optional[Union[int, str]] = Field(None, description="Extension in seconds from the offered choices")


class RenewResponse(BaseModel):
    token: str
    expires_at: Optional[datetime] = Field(None, description="New expiry, null if the paste never expires")


class PasteSummary(BaseModel):
    """One entry on the explore page."""
    token: str
    title: str
    preview: str
    language: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    remaining_life: RemainingLife


class ExplorePage(BaseModel):
    items: List[PasteSummary]
    page: int
    page_size: int
    total: int = Field(..., description="Live public pastes")


class Stats(BaseModel):
    total_pastes: int = Field(..., description="Pastes ever created")
    live_public: int
    faded: int = Field(..., description="Pastes that have expired or burned")


class HealthCheck(BaseModel):
    """Schema for health check response."""
    ok: bool = Field(..., description="Is the application healthy?")
    using_fallback: bool = Field(False, description="True when running on the in-memory store")
