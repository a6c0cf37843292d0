"""Functions that turn attribute names into database column names."""

import unicodedata

__all__ = ["default_mapper", "lower_case", "snake_case", "get_mapper", "set_mapper"]


def default_mapper(name):
    """Return ``name`` with surrounding whitespace removed; otherwise unchanged."""
    return name.strip()


def lower_case(name):
    """Return a lower-cased version of ``name``."""
    return name.lower()


def _is_number(char):
    return unicodedata.category(char).startswith("N")


def snake_case(name):
    """Return a snake_cased version of ``name`` (``UserID`` -> ``user_id``)."""
    out = []
    last = len(name) - 1
    for i, char in enumerate(name):
        if i > 0 and (char.isupper() or _is_number(char)):
            next_lower = i < last and name[i + 1].islower()
            if next_lower or name[i - 1].islower():
                out.append("_")
        out.append(char.lower())
    return "".join(out)


_mapper = default_mapper


def get_mapper():
    """Return the function currently used to map attribute names to columns."""
    return _mapper


def set_mapper(func):
    """Use ``func`` to map attribute names without an explicit column name."""
    global _mapper
    if not callable(func):
        raise TypeError("mapper must be callable")
    _mapper = func