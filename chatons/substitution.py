"""Replace ``@path.to.value`` references in a formula with roll data."""

from __future__ import annotations

import logging
import re
import warnings
from collections.abc import Mapping
from typing import Any

from chatons.errors import FormatError, MissingDataWarning

logger = logging.getLogger(__name__)

_DATA_RE = re.compile(r"@([A-Za-z0-9._-]+)")


def get_property(data: Any, path: str) -> Any:
    """Look up a dotted path in nested mappings; None when any step is missing."""
    value = data
    for key in path.split("."):
        if isinstance(value, Mapping) and key in value:
            value = value[key]
        else:
            return None
    return value


def _stringify(reference: str, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise FormatError(
            f"Roll data for {reference} is a {type(value).__name__}, not a number or formula"
        )
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def replace_formula_data(
    formula: str,
    data: Mapping[str, Any] | None,
    missing: str | None = None,
    warn: bool = False,
) -> str:
    """Substitute every ``@reference`` in formula.

    A reference with no value becomes ``missing``, or is left as written when
    ``missing`` is None. With ``warn`` set a MissingDataWarning is issued too.

    Raises:
        FormatError: If a reference resolves to something other than a number
            or formula text, such as a mapping.
    """
    data = data or {}

    def _replace(match: re.Match[str]) -> str:
        value = get_property(data, match.group(1))
        if value is None:
            logger.debug("No roll data for %s", match.group(0))
            if warn:
                logger.warning("Missing roll data for %s in %r", match.group(0), formula)
                warnings.warn(
                    f"Missing roll data for {match.group(0)}",
                    MissingDataWarning,
                    stacklevel=3,
                )
            return missing if missing is not None else match.group(0)
        return _stringify(match.group(0), value)

    return _DATA_RE.sub(_replace, formula)
