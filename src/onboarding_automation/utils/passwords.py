"""Initial password generation for new accounts."""

import secrets
from typing import List

# No l, 1, I, O, 0 or o
LOWERCASE = "abcdefghijkmnpqrstuvwxyz"
UPPERCASE = "ABCDEFGHJKLMNPQRSTUVWXYZ"
DIGITS = "23456789"
SYMBOLS = "!@#$%^&*-_=+?"

MIN_PER_CLASS = 2
DEFAULT_LENGTH = 16

_rng = secrets.SystemRandom()


def generate_password(length: int = DEFAULT_LENGTH) -> str:
    """
    Generate a one-time password.

    At least two characters come from each of the four character classes;
    the rest are drawn from all of them, then the whole sequence is shuffled.
    """
    classes = (LOWERCASE, UPPERCASE, DIGITS, SYMBOLS)
    if length < MIN_PER_CLASS * len(classes):
        raise ValueError(f"password length must be at least {MIN_PER_CLASS * len(classes)}")

    chars: List[str] = []
    for charset in classes:
        chars.extend(secrets.choice(charset) for _ in range(MIN_PER_CLASS))

    everything = "".join(classes)
    chars.extend(secrets.choice(everything) for _ in range(length - len(chars)))

    _rng.shuffle(chars)
    return "".join(chars)
