"""Bracket matching: carve a flat formula into top-level groups.

The same splitter runs twice during parsing, first for parentheses (which
may be math calls like ``floor(...)``) and then for dice pools in braces.
Flavor annotations (``2d6[fire]``) are lifted out before scanning so their
text can never be mistaken for structure, then handed back either to the
group they follow or to the free text they came from.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Collection
from dataclasses import dataclass

from chatons.errors import FormatError

_FLAVOR_RE = re.compile(r"\[([^\]]+)\]")
_PLACEHOLDER_RE = re.compile(r"\$\$F(\d+)\$\$")
_NAME_SUFFIX_RE = re.compile(r"([A-Za-z_]\w*)$")


@dataclass
class Group:
    """One balanced top-level bracketed span."""

    prefix: str  # function name written before the open symbol, if any
    content: str
    suffix: str  # modifier codes written after the close symbol
    flavor: str | None = None


@dataclass(frozen=True)
class GroupSyntax:
    open_symbol: str
    close_symbol: str
    # Brackets of another kind whose content is left for a later pass
    opaque: tuple[str, str] = ("", "")
    functions: Collection[str] = ()
    suffix: re.Pattern[str] = re.compile("")


def extract_flavors(formula: str) -> tuple[str, list[str]]:
    """Replace each ``[flavor]`` with a ``$$F<n>$$`` placeholder.

    Raises:
        FormatError: If placeholder text appears outside a flavor.
    """
    if _PLACEHOLDER_RE.search(_FLAVOR_RE.sub("", formula)):
        raise FormatError(f"Reserved placeholder text in formula {formula!r}")
    flavors: list[str] = []

    def _sub(match: re.Match[str]) -> str:
        flavors.append(match.group(1))
        return f"$$F{len(flavors) - 1}$$"

    return _FLAVOR_RE.sub(_sub, formula), flavors


def restore_flavors(text: str, flavors: list[str]) -> str:
    return _PLACEHOLDER_RE.sub(lambda m: f"[{flavors[int(m.group(1))]}]", text)


def split_group(
    formula: str,
    syntax: GroupSyntax,
    on_close: Callable[[Group], list],
) -> list:
    """Split formula into free-text strings and the terms built by on_close.

    Raises:
        FormatError: If the open and close symbols are not balanced.
    """
    text, flavors = extract_flavors(formula)
    opaque_open, opaque_close = syntax.opaque
    terms: list = []
    depth = 0
    opaque_depth = 0
    start = 0
    content_start = 0
    prefix = ""

    def _free_text(fragment: str) -> None:
        if fragment:
            terms.append(restore_flavors(fragment, flavors))

    pos = 0
    while pos < len(text):
        char = text[pos]
        if opaque_open and char == opaque_open:
            opaque_depth += 1
        elif opaque_close and char == opaque_close:
            opaque_depth = max(opaque_depth - 1, 0)
        elif opaque_depth == 0 and char == syntax.open_symbol:
            if depth == 0:
                before = text[start:pos]
                prefix = ""
                m = _NAME_SUFFIX_RE.search(before)
                if m and m.group(1) in syntax.functions:
                    prefix = m.group(1)
                    before = before[: m.start()]
                _free_text(before)
                content_start = pos + 1
            depth += 1
        elif opaque_depth == 0 and char == syntax.close_symbol:
            if depth == 0:
                raise FormatError(
                    f"Unbalanced '{syntax.close_symbol}' in formula {formula!r}"
                )
            depth -= 1
            if depth == 0:
                end = pos + 1
                suffix_match = syntax.suffix.match(text, end)
                suffix = suffix_match.group(0) if suffix_match else ""
                end += len(suffix)
                flavor = None
                flavor_match = _PLACEHOLDER_RE.match(text, end)
                if flavor_match:
                    flavor = flavors[int(flavor_match.group(1))]
                    end = flavor_match.end()
                group = Group(
                    prefix=prefix,
                    content=restore_flavors(text[content_start:pos], flavors),
                    suffix=suffix,
                    flavor=flavor,
                )
                terms.extend(on_close(group))
                start = pos = end
                continue
        pos += 1

    if depth:
        raise FormatError(
            f"Unbalanced '{syntax.open_symbol}' in formula {formula!r}"
        )
    _free_text(text[start:])
    return terms


def split_args(expression: str, is_valid: Callable[[str], bool]) -> list[str]:
    """Split on commas that sit outside any nested group.

    A comma only ends an argument once the text gathered so far parses on
    its own; otherwise it belongs to a nested group and is kept.

    Raises:
        FormatError: If an argument is empty, as in ``max(1,,2)``.
    """
    args: list[str] = []
    for part in expression.split(","):
        part = part.strip()
        if args and not is_valid(args[-1]):
            args[-1] = f"{args[-1]},{part}"
        elif not part:
            raise FormatError(f"Empty argument in {expression!r}")
        else:
            args.append(part)
    return args
