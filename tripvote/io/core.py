"""Shared functionality for document I/O. Internal."""

from __future__ import annotations

import json
import typing
from typing import Any, Callable, TextIO, Tuple


class ParseError(Exception):
    """An input document is structurally invalid."""
    pass


def loaders(document_loader: Callable[..., Any]
            ) -> Tuple[Callable[..., Any], Callable[..., Any]]:
    """Create load() and loads() functions from a JSON document parser."""
    return_annot = typing.get_type_hints(document_loader).get('return', Any)

    def load(file: TextIO, **kwargs) -> return_annot:
        return loads(file.read(), **kwargs)

    def loads(text: str, **kwargs) -> return_annot:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f'invalid JSON: {e}') from e
        return document_loader(document, **kwargs)

    return load, loads


def dumpers(document_dumper: Callable[..., Any]
            ) -> Tuple[Callable[..., None], Callable[..., str]]:
    """Create dump() and dumps() functions from a JSON document builder."""

    def dump(file: TextIO, *args, indent: int = 2, **kwargs) -> None:
        file.write(dumps(*args, indent=indent, **kwargs))
        file.write('\n')

    def dumps(*args, indent: int = 2, **kwargs) -> str:
        return json.dumps(
            document_dumper(*args, **kwargs),
            indent=indent,
            ensure_ascii=False,
        )

    return dump, dumps
