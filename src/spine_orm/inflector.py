"""English pluralization for table names and foreign keys.

Covers the regular rules (``book`` → ``books``, ``category`` → ``categories``,
``box`` → ``boxes``) plus a short list of irregular nouns.  Table names that
do not follow these rules should be set explicitly with
``SchemaBuilder.table_name()``.
"""

from __future__ import annotations

import re

_IRREGULAR = {
    "person": "people",
    "man": "men",
    "woman": "women",
    "child": "children",
    "mouse": "mice",
}
_UNCOUNTABLE = frozenset({"series", "species", "news", "data", "information", "equipment"})
_SINGULAR_IRREGULAR = {plural: singular for singular, plural in _IRREGULAR.items()}


def pluralize(word: str) -> str:
    """Return the plural form of a lower-case English noun."""
    if not word or word in _UNCOUNTABLE:
        return word
    if word in _IRREGULAR:
        return _IRREGULAR[word]
    if re.search(r"[^aeiou]y$", word):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", word):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    """Return the singular form of a lower-case English noun.

    Words that are already singular come back unchanged.
    """
    if not word or word in _UNCOUNTABLE:
        return word
    if word in _SINGULAR_IRREGULAR:
        return _SINGULAR_IRREGULAR[word]
    if word in _IRREGULAR:
        return word
    if re.search(r"[^aeiou]ies$", word):
        return word[:-3] + "y"
    if re.search(r"(ss|x|z|ch|sh)es$", word):
        return word[:-2]
    if word.endswith("ss") or word.endswith("us"):
        return word
    if word.endswith("s"):
        return word[:-1]
    return word


def foreign_key(name: str, primary_key: str = "id") -> str:
    """Foreign key column for an entity: ``author`` → ``author_id``."""
    return f"{singularize(name.lower())}_{primary_key}"


__all__ = [
    "pluralize",
    "singularize",
    "foreign_key",
]
