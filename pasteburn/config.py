"""
Configuration module for Pasteburn.
Loads environment variables and provides config objects.
"""
import os
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

NEVER = "never"
UNLIMITED = "unlimited"

RENEWAL_POLICIES = ("reset", "extend")

DEFAULT_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
DEFAULT_LANGUAGES = (
    "auto,plaintext,rust,python,javascript,typescript,go,java,cpp,"
    "html,css,json,yaml,sql,bash"
)


def _bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class Settings:
    """Application settings loaded from environment variables."""

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    REDIS_PREFIX: str = os.getenv("REDIS_PREFIX", "pasteburn")
    DEBUG: bool = _bool("DEBUG", "True")
    APP_DOMAIN: str = os.getenv("APP_DOMAIN", "http://localhost:8000")
    TEST_MODE: bool = _bool("TEST_MODE", "0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    TOKEN_LENGTH: int = _int("TOKEN_LENGTH", 8)
    TOKEN_LENGTHS: str = os.getenv("TOKEN_LENGTHS", "4,6,8,12")
    TOKEN_ALPHABET: str = os.getenv("TOKEN_ALPHABET", DEFAULT_ALPHABET)
    TOKEN_MAX_ATTEMPTS: int = _int("TOKEN_MAX_ATTEMPTS", 5)

    # Seconds, comma separated; "never" offers pastes without time expiry
    EXPIRY_CHOICES: str = os.getenv("EXPIRY_CHOICES", "300,3600,86400,604800,never")
    DEFAULT_EXPIRY: str = os.getenv("DEFAULT_EXPIRY", "86400")
    BURN_CHOICES: str = os.getenv("BURN_CHOICES", "1,2,5,10,unlimited")
    DEFAULT_BURN: str = os.getenv("DEFAULT_BURN", UNLIMITED)

    MAX_CONTENT_LENGTH: int = _int("MAX_CONTENT_LENGTH", 100_000)
    MAX_TOTAL_CONTENT_LENGTH: int = _int("MAX_TOTAL_CONTENT_LENGTH", 0)
    MAX_PASTES: int = _int("MAX_PASTES", 0)

    RENEWAL_POLICY: str = os.getenv("RENEWAL_POLICY", "reset")
    SWEEP_BATCH_SIZE: int = _int("SWEEP_BATCH_SIZE", 500)
    SWEEP_INTERVAL_SECONDS: int = _int("SWEEP_INTERVAL_SECONDS", 0)

    EXPLORE_PAGE_SIZE: int = _int("EXPLORE_PAGE_SIZE", 20)
    EXPLORE_MAX_PAGE_SIZE: int = _int("EXPLORE_MAX_PAGE_SIZE", 100)
    LANGUAGES: str = os.getenv("LANGUAGES", DEFAULT_LANGUAGES)


settings = Settings()


def parse_choices(raw: str, sentinel: str) -> Tuple[Optional[int], ...]:
    """
    Parse a comma separated list of positive integers.

    The sentinel word ("never" / "unlimited") is parsed as None.
    """
    choices: List[Optional[int]] = []
    for item in raw.split(","):
        item = item.strip().lower()
        if not item:
            continue
        if item == sentinel:
            value = None
        else:
            value = int(item)
            if value < 1:
                raise ValueError(f"choice must be >= 1, got {value}")
        if value not in choices:
            choices.append(value)
    if not choices:
        raise ValueError("at least one choice must be configured")
    return tuple(choices)


def parse_choice(raw: str, sentinel: str) -> Optional[int]:
    raw = raw.strip().lower()
    return None if raw == sentinel else int(raw)


class PastePolicy(BaseModel):
    """Validated, immutable view of the settings the lifecycle engine consumes."""

    model_config = ConfigDict(frozen=True)

    expiry_choices: Tuple[Optional[int], ...] = (300, 3600, 86400, 604800, None)
    default_expiry: Optional[int] = 86400
    burn_choices: Tuple[Optional[int], ...] = (1, 2, 5, 10, None)
    default_burn: Optional[int] = None

    token_length: int = Field(8, ge=1)
    token_lengths: Tuple[int, ...] = (4, 6, 8, 12)
    token_alphabet: str = Field(DEFAULT_ALPHABET, min_length=2)
    token_max_attempts: int = Field(5, ge=1)

    max_content_length: int = Field(100_000, ge=1)
    max_total_content_length: Optional[int] = None
    max_pastes: Optional[int] = None

    renewal_policy: str = "reset"
    sweep_batch_size: int = Field(500, ge=1)
    explore_page_size: int = Field(20, ge=1)
    explore_max_page_size: int = Field(100, ge=1)
    languages: Tuple[str, ...] = tuple(DEFAULT_LANGUAGES.split(","))

    @field_validator("renewal_policy")
    @classmethod
    def _check_renewal_policy(cls, value: str) -> str:
        if value not in RENEWAL_POLICIES:
            raise ValueError(f"renewal_policy must be one of {RENEWAL_POLICIES}")
        return value

    @field_validator("token_alphabet")
    @classmethod
    def _check_alphabet(cls, value: str) -> str:
        if len(set(value)) != len(value):
            raise ValueError("token_alphabet must not repeat characters")
        return value

    @model_validator(mode="after")
    def _check_defaults(self) -> "PastePolicy":
        if self.default_expiry not in self.expiry_choices:
            raise ValueError(
                f"default_expiry {self.default_expiry!r} is not one of {list(self.expiry_choices)}"
            )
        if self.default_burn not in self.burn_choices:
            raise ValueError(
                f"default_burn {self.default_burn!r} is not one of {list(self.burn_choices)}"
            )
        if self.token_length not in self.token_lengths:
            raise ValueError(
                f"token_length {self.token_length} is not one of {list(self.token_lengths)}"
            )
        return self

    @classmethod
    def from_settings(cls, config: Settings) -> "PastePolicy":
        """Build the policy from environment-backed settings."""
        token_lengths = tuple(
            int(item) for item in config.TOKEN_LENGTHS.split(",") if item.strip()
        )
        return cls(
            expiry_choices=parse_choices(config.EXPIRY_CHOICES, NEVER),
            default_expiry=parse_choice(config.DEFAULT_EXPIRY, NEVER),
            burn_choices=parse_choices(config.BURN_CHOICES, UNLIMITED),
            default_burn=parse_choice(config.DEFAULT_BURN, UNLIMITED),
            token_length=config.TOKEN_LENGTH,
            token_lengths=token_lengths or (config.TOKEN_LENGTH,),
            token_alphabet=config.TOKEN_ALPHABET,
            token_max_attempts=config.TOKEN_MAX_ATTEMPTS,
            max_content_length=config.MAX_CONTENT_LENGTH,
            max_total_content_length=config.MAX_TOTAL_CONTENT_LENGTH or None,
            max_pastes=config.MAX_PASTES or None,
            renewal_policy=config.RENEWAL_POLICY.lower(),
            sweep_batch_size=config.SWEEP_BATCH_SIZE,
            explore_page_size=config.EXPLORE_PAGE_SIZE,
            explore_max_page_size=config.EXPLORE_MAX_PAGE_SIZE,
            languages=tuple(
                item.strip().lower() for item in config.LANGUAGES.split(",") if item.strip()
            ),
        )
