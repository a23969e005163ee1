"""
PassVault - Password Generator

Builds random passwords from configurable character classes.

Rules:
- At least one character from every selected class
- Excluded characters never appear
- Optional: no two identical characters next to each other
- Guaranteed characters land on positions picked by a Fisher-Yates
  shuffle, so they are not in predictable places

All randomness comes from the 'secrets' module (OS CSPRNG).
"""

import secrets
import string
import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger("passvault.generator")


LOWERCASE = string.ascii_lowercase
UPPERCASE = string.ascii_uppercase
NUMBERS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

MIN_LENGTH = 8
MAX_LENGTH = 128

# Placements tried before giving up; only a two-character pool ever needs a second
_BUILD_ATTEMPTS = 100


class GeneratorError(ValueError):
    """Invalid password generator configuration."""


@dataclass
class PasswordConfig:
    """Options for generate_password()."""
    length: int = 16
    uppercase: bool = True
    lowercase: bool = True
    numbers: bool = True
    symbols: bool = True
    exclude: str = ""
    no_repeating: bool = True


def _strip(chars: str, exclude: str) -> str:
    return "".join(c for c in chars if c not in exclude)


def _selected_classes(config: PasswordConfig) -> List[str]:
    """Character classes turned on in config, with exclusions removed."""
    classes = []
    if config.uppercase:
        classes.append(UPPERCASE)
    if config.lowercase:
        classes.append(LOWERCASE)
    if config.numbers:
        classes.append(NUMBERS)
    if config.symbols:
        classes.append(SYMBOLS)
    return [_strip(c, config.exclude) for c in classes]


def _validate(config: PasswordConfig) -> None:
    if config.length < MIN_LENGTH:
        raise GeneratorError(f"password length must be at least {MIN_LENGTH} characters")
    if config.length > MAX_LENGTH:
        raise GeneratorError(f"password length cannot exceed {MAX_LENGTH} characters")
    if not (config.uppercase or config.lowercase or config.numbers or config.symbols):
        raise GeneratorError("at least one character set must be selected")


def _shuffle(chars: List[str]) -> None:
    """Fisher-Yates shuffle using the secrets module."""
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]


def _build(classes: List[str], pool: str, length: int, no_repeating: bool) -> Optional[str]:
    """
    One left-to-right pass. Each class owns one random position.

    With no_repeating, a character never equals its left neighbour, and
    never takes the only character the next position's class has left.
    Returns None when a position runs out of candidates.
    """
    positions = list(range(length))
    _shuffle(positions)
    required = dict(zip(positions, classes))

    chars: List[str] = []
    for i in range(length):
        allowed = required.get(i, pool)
        if no_repeating:
            prev = chars[-1] if chars else None
            nxt = required.get(i + 1)
            allowed = [
                c for c in allowed
                if c != prev and not (nxt is not None and set(nxt) == {c})
            ]
        if not allowed:
            return None
        chars.append(secrets.choice(allowed))
    return "".join(chars)


def generate_password(config: Optional[PasswordConfig] = None) -> str:
    """
    Generate a strong random password.

    Args:
        config: Generator options (defaults to PasswordConfig())

    Returns:
        Random password string of config.length characters

    Raises:
        GeneratorError: If the configuration is invalid or exclusions
            leave nothing to pick from
    """
    if config is None:
        config = PasswordConfig()
    _validate(config)

    classes = [c for c in _selected_classes(config) if c]
    pool = "".join(classes)
    if not pool:
        raise GeneratorError("no characters left after exclusions")
    if config.no_repeating and len(set(pool)) < 2:
        raise GeneratorError("no_repeating needs at least two distinct characters")

    for _ in range(_BUILD_ATTEMPTS):
        password = _build(classes, pool, config.length, config.no_repeating)
        if password is not None:
            logger.debug("Generated password of length %d", len(password))
            return password

    raise GeneratorError("could not build a password with these options")
