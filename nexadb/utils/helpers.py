"""
NexaDB Helpers
==============

String helpers used for table, key and accessor name inference.
"""

from __future__ import annotations

import re


def snake_case(text: str) -> str:
    """
    Convert text to snake_case.

    Example:
        >>> snake_case("BlogPost")
        'blog_post'
    """
    text = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", text)
    text = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", text)
    text = re.sub(r"[-\s]+", "_", text)

    return text.lower()


def studly(text: str) -> str:
    """
    Convert snake_case text to StudlyCase.

    Example:
        >>> studly("first_name")
        'FirstName'
    """
    parts = re.split(r"[_\-\s]+", text)
    return "".join(p[:1].upper() + p[1:] for p in parts)


def pluralize(word: str) -> str:
    """
    Simple English pluralization.

    Example:
        >>> pluralize("user")
        'users'
        >>> pluralize("category")
        'categories'
    """
    irregulars = {
        "person": "people",
        "child": "children",
        "man": "men",
        "woman": "women",
        "mouse": "mice",
    }

    head, _, last = word.rpartition("_")
    if last.lower() in irregulars:
        plural = irregulars[last.lower()]
        return f"{head}_{plural}" if head else plural

    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    elif word.endswith("y") and word[-2:-1] not in ("a", "e", "i", "o", "u"):
        return word[:-1] + "ies"
    return word + "s"
