"""Column metadata gathered from dataclass declarations.

A dataclass attribute maps to a column. By default the column name is the
attribute name passed through the current mapper. :func:`column` overrides
that with a tag of the form ``"name,option,option"``:

* an empty name keeps the mapped attribute name;
* the name ``-`` leaves the attribute out entirely;
* the option ``pk`` marks the integer primary key;
* any other option names a registered meddler.

Attributes whose names start with an underscore are never mapped.
"""

import dataclasses
import threading
import types
import typing
from dataclasses import dataclass

from .errors import MeddlerError
from .mapper import get_mapper
from .meddlers import Meddler, lookup

__all__ = ["TAG_KEY", "FieldInfo", "StructInfo", "column", "get_fields", "clear_cache"]

TAG_KEY = "rowmeddle"
"""Key under which :func:`column` stores its tag in a field's metadata."""

_INTEGER_NAMES = frozenset({"int", "builtins.int"})


@dataclass(frozen=True)
class FieldInfo:
    """How one attribute maps to one column."""

    column: str
    attribute: str
    index: int
    primary_key: bool
    meddler: Meddler
    type: typing.Any = None


@dataclass(frozen=True)
class StructInfo:
    """The mapped columns of a dataclass, in declaration order."""

    columns: tuple
    fields: dict
    pk: typing.Optional[str] = None


def column(tag, **kwargs):
    """Declare a dataclass field carrying a column ``tag``.

    Other keyword arguments go to :func:`dataclasses.field` unchanged.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG_KEY] = tag
    return dataclasses.field(metadata=metadata, **kwargs)


_cache = {}
_cache_lock = threading.Lock()


def clear_cache():
    """Forget all gathered column metadata, e.g. after changing the mapper."""
    with _cache_lock:
        _cache.clear()


def _split_optional(field_type):
    origin = typing.get_origin(field_type)
    if origin is typing.Union or origin is types.UnionType:
        args = typing.get_args(field_type)
        inner = [arg for arg in args if arg is not type(None)]
        return (inner[0] if len(inner) == 1 else field_type), len(inner) < len(args)
    return field_type, False


def _string_is_optional(annotation):
    text = annotation.replace(" ", "")
    return text.startswith("Optional[") or "|None" in text or "None|" in text


def _check_pk_type(attribute, field_type):
    if isinstance(field_type, str):
        if _string_is_optional(field_type):
            raise MeddlerError(
                f"found field {attribute} which is marked as the primary key but is optional"
            )
        if field_type.strip() not in _INTEGER_NAMES:
            raise MeddlerError(
                f"found field {attribute} which is marked as the primary key, "
                "but is not an integer type"
            )
        return
    inner, optional = _split_optional(field_type)
    if optional:
        raise MeddlerError(
            f"found field {attribute} which is marked as the primary key but is optional"
        )
    if not (isinstance(inner, type) and issubclass(inner, int) and not issubclass(inner, bool)):
        raise MeddlerError(
            f"found field {attribute} which is marked as the primary key, "
            "but is not an integer type"
        )


def _gather(cls):
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise MeddlerError(f"expected a dataclass type, got {cls!r}")

    mapper = get_mapper()
    columns = []
    fields = {}
    pk = None

    for index, field in enumerate(dataclasses.fields(cls)):
        if field.name.startswith("_"):
            continue
        parts = str(field.metadata.get(TAG_KEY, "")).split(",")
        if parts[0] == "-":
            continue
        name = parts[0] or mapper(field.name)
        field_type = field.type

        meddler = lookup("identity")
        for option in parts[1:]:
            if option == "pk":
                _check_pk_type(field.name, field_type)
                if pk is not None:
                    raise MeddlerError(
                        f"found field {field.name} which is marked as the primary key, "
                        "but a primary key field was already found"
                    )
                pk = name
            else:
                try:
                    meddler = lookup(option)
                except KeyError:
                    raise MeddlerError(
                        f"found field {field.name} with meddler {option}, "
                        "but that meddler is not registered"
                    ) from None

        if name in fields:
            raise MeddlerError(f"found multiple fields for column {name}")
        fields[name] = FieldInfo(
            column=name,
            attribute=field.name,
            index=index,
            primary_key=name == pk,
            meddler=meddler,
            type=field_type,
        )
        columns.append(name)

    return StructInfo(columns=tuple(columns), fields=fields, pk=pk)


def get_fields(cls):
    """Return the :class:`StructInfo` for dataclass ``cls``, cached per class."""
    with _cache_lock:
        try:
            return _cache[cls]
        except (KeyError, TypeError):
            pass
        info = _gather(cls)
        _cache[cls] = info
        return info