"""Parser for the text of an embedded score block.

A block looks like this::

    scores/bach.mei
    scale: 50
    breaks: none
    measureRange: 3-8

The first line names the score source, either an ``http(s)`` URL or a
path inside the vault.  Every following non-blank line is a ``key:
value`` pair.  ``measureRange`` is reserved and captured separately;
every other key is passed through to the engraving engine verbatim.
Lines without a colon are ignored without complaint.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from ..errors import BlockSyntaxError

OptionValue = Union[bool, int, float, str]

#: Block key that selects a subset of measures instead of setting an option.
MEASURE_RANGE_KEY = "measureRange"


@dataclass(frozen=True)
class BlockSpec:
    """Normalised content of one score block."""
    path: str
    options: Dict[str, OptionValue] = field(default_factory=dict)
    measure_range: Optional[str] = None


def coerce_value(value: str) -> OptionValue:
    """Convert a raw option string to a bool, a number or keep it as text.

    >>> coerce_value("true"), coerce_value("42"), coerce_value("0.5")
    (True, 42, 0.5)
    >>> coerce_value("Leland")
    'Leland'
    """
    if value == "true":
        return True
    if value == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return value
    # "nan" and "inf" parse as floats but are not meaningful option values
    return number if math.isfinite(number) else value


def parse_block(source: str) -> BlockSpec:
    """Split raw block text into path, options and measure range.

    :raises BlockSyntaxError: if the block has no source path.
    """
    lines = source.strip().splitlines()
    path = lines[0].strip() if lines else ""
    if not path:
        raise BlockSyntaxError("Score block is empty; the first line must name a file or URL")

    options: Dict[str, OptionValue] = {}
    measure_range: Optional[str] = None
    for raw in lines[1:]:
        line = raw.strip()
        if not line:
            continue
        key, sep, value = line.partition(":")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            continue
        if key == MEASURE_RANGE_KEY:
            measure_range = value
        else:
            options[key] = coerce_value(value)
    return BlockSpec(path=path, options=options, measure_range=measure_range)


def merge_options(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge option layers; later layers win.

    Called as ``merge_options(host_settings, block_options)`` so that a
    block-local value overrides the host-wide one for the same key.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


__all__ = ["BlockSpec", "MEASURE_RANGE_KEY", "coerce_value", "parse_block", "merge_options"]
