# tests/test_tokens.py
# Unit tests for token generation

import pytest

from pasteburn.config import DEFAULT_ALPHABET
from pasteburn.tokens import TokenGenerator, generate_token


def test_generate_token_length():
    assert len(generate_token(8)) == 8
    assert len(generate_token(16)) == 16


def test_generate_token_uses_alphabet():
    token = generate_token(64, "ab")
    assert set(token) <= {"a", "b"}


def test_generate_token_uniqueness():
    tokens = {generate_token(10) for _ in range(200)}
    assert len(tokens) == 200


def test_generate_token_rejects_zero_length():
    with pytest.raises(ValueError):
        generate_token(0)


def test_generator_defaults_and_override_length():
    generator = TokenGenerator(length=6)
    assert len(generator.next()) == 6
    assert len(generator.next(12)) == 12
    assert set(generator.next(50)) <= set(DEFAULT_ALPHABET)


def test_generator_factory_hook():
    forced = iter(["one", "two"])
    generator = TokenGenerator(factory=lambda length: next(forced))
    assert generator.next() == "one"
    assert generator.next() == "two"
