"""
Paste lifecycle engine.

Policy layer over the store: validates creation requests, computes expiry
and view budgets, issues tokens with collision retry, consumes views,
renews, lists public pastes and reports how much life a paste has left.
Every state-touching call sweeps expired pastes first.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Union

from pasteburn.config import NEVER, UNLIMITED, PastePolicy
from pasteburn.database import PasteStore, Status
from pasteburn.errors import (
    ConflictError,
    ContentTooLargeError,
    EmptyContentError,
    InvalidChoiceError,
    PasteGoneError,
    PasteNotFoundError,
    TokenSpaceExhaustedError,
)
from pasteburn.models import Paste, PasteView, RemainingLife
from pasteburn.sweeper import CleanupSweeper
from pasteburn.tokens import TokenGenerator

logger = logging.getLogger(__name__)

Choice = Union[int, str, None]

TITLE_MAX_LENGTH = 100
DERIVED_TITLE_LENGTH = 50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def life_stage(fraction: float) -> str:
    if fraction > 0.5:
        return "vibrant"
    if fraction > 0.2:
        return "fading"
    return "dying"


def normalize_title(title: Optional[str], content: str) -> str:
    """Explicit title if given, else the first non-blank line of the content."""
    if title and title.strip():
        return title.strip()[:TITLE_MAX_LENGTH]
    for line in content.splitlines():
        if line.strip():
            return line.strip()[:DERIVED_TITLE_LENGTH]
    return "Untitled"


def resolve_choice(
    field: str,
    value: Choice,
    choices: Sequence[Optional[int]],
    default: Optional[int],
    sentinel: str,
) -> Optional[int]:
    """
    Map a requested option onto one of the configured choices.

    None selects the default, the sentinel word selects "no limit" (None).
    """
    if value is None:
        resolved = default
    elif isinstance(value, str):
        word = value.strip().lower()
        if word == sentinel:
            resolved = None
        else:
            try:
                resolved = int(word)
            except ValueError:
                raise InvalidChoiceError(field, value, _display(choices, sentinel)) from None
    else:
        resolved = value
    if resolved not in choices:
        raise InvalidChoiceError(field, value, _display(choices, sentinel))
    return resolved


def _display(choices: Sequence[Optional[int]], sentinel: str) -> List[Union[int, str]]:
    return [sentinel if choice is None else choice for choice in choices]


class PasteLifecycle:
    def __init__(
        self,
        store: PasteStore,
        policy: Optional[PastePolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tokens: Optional[TokenGenerator] = None,
        sweeper: Optional[CleanupSweeper] = None,
    ):
        self.store = store
        self.policy = policy or PastePolicy()
        self.clock = clock or utcnow
        self.tokens = tokens or TokenGenerator(
            length=self.policy.token_length, alphabet=self.policy.token_alphabet
        )
        self.sweeper = sweeper or CleanupSweeper(store, self.policy.sweep_batch_size)

    def _begin(self, now: Optional[datetime]) -> datetime:
        now = now or self.clock()
        self.sweeper.sweep(now)
        return now

    def create(
        self,
        content: str,
        expiry_choice: Choice = None,
        burn_choice: Choice = None,
        is_public: bool = False,
        title: Optional[str] = None,
        language: Optional[str] = None,
        token_length: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Paste:
        """
        Create and store a new paste.

        Raises:
            EmptyContentError: content is blank
            ContentTooLargeError: content exceeds the configured maximum
            InvalidChoiceError: an option is not among the configured choices
            StorageFullError: the store is at capacity
            TokenSpaceExhaustedError: every token attempt collided
        """
        policy = self.policy
        if not content or not content.strip():
            raise EmptyContentError()
        length = len(content)
        if length > policy.max_content_length:
            raise ContentTooLargeError(length, policy.max_content_length)
        if policy.max_total_content_length is not None and length > policy.max_total_content_length:
            raise ContentTooLargeError(length, policy.max_total_content_length)

        expires_in = resolve_choice(
            "expires_in", expiry_choice, policy.expiry_choices, policy.default_expiry, NEVER
        )
        max_views = resolve_choice(
            "max_views", burn_choice, policy.burn_choices, policy.default_burn, UNLIMITED
        )
        if token_length is not None and token_length not in policy.token_lengths:
            raise InvalidChoiceError("token_length", token_length, policy.token_lengths)

        now = self._begin(now)
        expires_at = now + timedelta(seconds=expires_in) if expires_in is not None else None
        language = (language or "").strip().lower()
        if language not in policy.languages:
            language = "auto"

        for attempt in range(1, policy.token_max_attempts + 1):
            token = self.tokens.next(token_length)
            if self.store.exists(token):
                logger.info(f"Token collision on attempt {attempt}, regenerating")
                continue
            paste = Paste(
                token=token,
                title=normalize_title(title, content),
                content=content,
                language=language,
                created_at=now,
                expires_at=expires_at,
                duration_seconds=expires_in,
                max_views=max_views,
                remaining_views=max_views,
                # Burn-limited pastes stay out of the explore listing.
                is_public=is_public and max_views is None,
            )
            try:
                total = self.store.insert(
                    paste,
                    max_pastes=policy.max_pastes,
                    max_total_length=policy.max_total_content_length,
                )
            except ConflictError:
                logger.info(f"Token collision on insert, attempt {attempt}, regenerating")
                continue
            logger.info(f"Paste {token} created (#{total})")
            return paste

        logger.error(f"No unique token after {policy.token_max_attempts} attempts")
        raise TokenSpaceExhaustedError()

    def view(self, token: str, now: Optional[datetime] = None) -> PasteView:
        """
        Read a paste, consuming one view.

        The view that spends the last unit of a burn budget still returns the
        content; the paste is deleted in the same atomic step.
        """
        now = self._begin(now)
        outcome = self.store.consume_view(token, now)
        if outcome.status is Status.EXPIRED:
            self.sweeper.sweep(now)
            raise PasteNotFoundError(token)
        if outcome.status is Status.EXHAUSTED:
            raise PasteGoneError(token)
        if outcome.status is not Status.OK:
            raise PasteNotFoundError(token)

        paste = outcome.paste
        if paste.remaining_views == 0:
            logger.info(f"Paste {token} burned after {paste.view_count} view(s)")
        return PasteView(paste=paste, life=self.remaining_life(paste, now))

    def peek(self, token: str, now: Optional[datetime] = None) -> PasteView:
        """Read a paste without consuming a view. Burn-limited pastes are never peekable."""
        now = self._begin(now)
        paste = self.store.get(token)
        if paste is None or not paste.is_live(now) or paste.burn_limited:
            raise PasteNotFoundError(token)
        return PasteView(paste=paste, life=self.remaining_life(paste, now))

    def renew(
        self, token: str, extension_choice: Choice = None, now: Optional[datetime] = None
    ) -> Optional[datetime]:
        """
        Push a paste's expiry out by the requested extension.

        Without an explicit extension the paste's last granted duration is
        reused. Returns the new expiry, or None for a paste that never expires.
        """
        now = self._begin(now)
        if extension_choice is None:
            paste = self.store.get(token)
            if paste is None:
                raise PasteNotFoundError(token)
            duration = paste.duration_seconds or 0
        else:
            duration = resolve_choice(
                "extends_in",
                extension_choice,
                [c for c in self.policy.expiry_choices if c is not None],
                None,
                NEVER,
            )

        outcome = self.store.renew(token, now, duration, self.policy.renewal_policy)
        if outcome.status is Status.EXHAUSTED:
            raise PasteGoneError(token)
        if outcome.status is Status.NO_EXPIRY:
            return None
        if outcome.status is not Status.OK:
            raise PasteNotFoundError(token)
        logger.info(f"Paste {token} renewed until {outcome.expires_at.isoformat()}")
        return outcome.expires_at

    def list_public(
        self, page: int = 1, page_size: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[Paste]:
        """Newest-first page of live public pastes. Pages start at 1."""
        now = self._begin(now)
        page = max(page, 1)
        page_size = min(page_size or self.policy.explore_page_size, self.policy.explore_max_page_size)
        return self.store.list_public(limit=page_size, offset=(page - 1) * page_size, now=now)

    def count_public(self, now: Optional[datetime] = None) -> int:
        return self.store.count_public(self._begin(now))

    def total_created(self) -> int:
        return self.store.count_total()

    def faded_count(self, now: Optional[datetime] = None) -> int:
        """Pastes created so far that are no longer live."""
        now = self._begin(now)
        return max(self.store.count_total() - self.store.count_live(now), 0)

    def remaining_life(self, paste: Paste, now: Optional[datetime] = None) -> RemainingLife:
        """
        Fraction of life left, by whichever of time or views runs out first.

        Display only; never used for access control.
        """
        now = now or self.clock()
        fractions = []
        seconds_left = None
        views_left = None
        if paste.expires_at is not None:
            seconds_left = max(int((paste.expires_at - now).total_seconds()), 0)
            duration = paste.duration_seconds or seconds_left
            fractions.append(min(seconds_left / duration, 1.0) if duration > 0 else 0.0)
        if paste.max_views:
            views_left = max(paste.remaining_views or 0, 0)
            fractions.append(min(views_left / paste.max_views, 1.0))
        fraction = min(fractions) if fractions else 1.0
        return RemainingLife(
            fraction=fraction,
            stage=life_stage(fraction),
            seconds_left=seconds_left,
            views_left=views_left,
        )
