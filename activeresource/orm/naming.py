"""
Name inflection used for default providers, foreign keys and URL paths.

Only the handful of English rules model names actually need; irregular
names should pass an explicit ``provider`` or ``foreign_key``.
"""

import re

_IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
}
_IRREGULAR_SINGULARS = {plural: single for single, plural in _IRREGULAR_PLURALS.items()}


def singularize(word: str) -> str:
    """'comments' -> 'comment', 'categories' -> 'category', 'boxes' -> 'box'."""
    lower = word.lower()
    if lower in _IRREGULAR_SINGULARS:
        return _IRREGULAR_SINGULARS[lower]
    if lower.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if re.search(r"(ss|x|z|ch|sh)es$", lower):
        return word[:-2]
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def pluralize(word: str) -> str:
    """'comment' -> 'comments', 'category' -> 'categories', 'box' -> 'boxes'."""
    lower = word.lower()
    if lower in _IRREGULAR_PLURALS:
        return _IRREGULAR_PLURALS[lower]
    if re.search(r"[^aeiou]y$", lower):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", lower):
        return word + "es"
    return word + "s"


def camelize(name: str) -> str:
    """'blog_post' -> 'BlogPost'."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def underscore(name: str) -> str:
    """'BlogPost' -> 'blog_post'."""
    snake = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name)
    return snake.lower()


def provider_name(association: str) -> str:
    """Default target model name for an association: 'comments' -> 'Comment'."""
    return camelize(singularize(association))


def resource_path(model_name: str) -> str:
    """Default URL path segment for a model: 'BlogPost' -> 'blog_posts'."""
    return pluralize(underscore(model_name))
