"""
Slug and invite code helpers for leagues
"""

import re
import secrets
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name):
    """Lowercase, strip accents and collapse everything else into dashes"""
    normalized = unicodedata.normalize("NFD", name.lower())
    ascii_only = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("-", ascii_only).strip("-")


def generate_unique_slug(name, exists_check, fallback="league"):
    """
    Derive a slug from a name that does not collide with an existing one.

    Args:
        name: Human readable name
        exists_check: Callable returning True when a slug is already taken
        fallback: Base used when the name has no usable characters

    Returns:
        The base slug, or the base slug with a ``-N`` suffix on collision
    """
    base = slugify(name) or fallback

    slug = base
    counter = 1
    while exists_check(slug):
        slug = f"{base}-{counter}"
        counter += 1

    return slug


def generate_invite_code():
    """Random 8 character uppercase hex code"""
    return secrets.token_hex(4).upper()
