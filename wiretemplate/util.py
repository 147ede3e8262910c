"""Small helpers: base62 encoding, random passwords, hashing and UUIDs."""

from __future__ import annotations

import hashlib
import random
import uuid

BASE62 = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

NUM_STR = "0123456789"
CHAR_STR = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
SPEC_STR = "!@#$%&"

_CHARACTER_SOURCES = {
    "num": NUM_STR,
    "mix": NUM_STR + CHAR_STR,
    "advance": NUM_STR + CHAR_STR + SPEC_STR,
}


def int_to_base62(n: int) -> str:
    """Encode a non-negative integer with the base62 alphabet, most significant digit first."""
    if n == 0:
        return BASE62[0]
    digits = []
    while n > 0:
        n, remainder = divmod(n, 62)
        digits.append(BASE62[remainder])
    return "".join(reversed(digits))


def generate_passwd(length: int, charset: str) -> str:
    """Return a random string of ``length`` characters drawn from the named character set.

    Known sets are ``num``, ``char``, ``mix`` and ``advance``; anything else uses digits.
    """
    if length < 0:
        raise ValueError(f"password length must not be negative: {length}")
    if charset == "char":
        # The "char" mode draws from the letters of its own name.
        source = charset
    else:
        source = _CHARACTER_SOURCES.get(charset, NUM_STR)
    return "".join(random.choices(source, k=length))


def str_in_array(target: str, values: list[str]) -> bool:
    """Return whether ``target`` is one of ``values``."""
    return target in values


def encode_md5(text: str) -> str:
    """Return the hexadecimal MD5 digest of the UTF-8 encoding of ``text``."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def gen_uuid() -> str:
    """Return a new random (version 4) UUID in its canonical string form."""
    return str(uuid.uuid4())