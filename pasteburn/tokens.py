"""
Token generation for paste URLs.
"""
import secrets
from typing import Callable, Optional

from pasteburn.config import DEFAULT_ALPHABET


def generate_token(length: int, alphabet: str = DEFAULT_ALPHABET) -> str:
    """Draw `length` characters uniformly from `alphabet` using the OS CSPRNG."""
    if length < 1:
        raise ValueError("token length must be >= 1")
    return "".join(secrets.choice(alphabet) for _ in range(length))


class TokenGenerator:
    """
    Produces candidate tokens.

    `factory` replaces the random draw and receives the requested length;
    tests use it to force collisions.
    """

    def __init__(
        self,
        length: int = 8,
        alphabet: str = DEFAULT_ALPHABET,
        factory: Optional[Callable[[int], str]] = None,
    ):
        self.length = length
        self.alphabet = alphabet
        self.factory = factory

    def next(self, length: Optional[int] = None) -> str:
        length = length or self.length
        if self.factory is not None:
            return self.factory(length)
        return generate_token(length, self.alphabet)
