"""Conversion routes through the usable converters.

A route is a chain of hops from a file's current format code to its target.
Most files need a single hop; e-mail reaches PDF/A through intermediate
formats (MSG to EML to PDF 1.4 to PDF/A-2b), each hop handled by whichever
usable variant supports it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .variants import ConverterVariant

MAX_ROUTE_HOPS = 3


@dataclass(frozen=True)
class Hop:
    """One conversion step and the variants able to perform it."""

    source_code: str
    target_code: str
    candidates: tuple[ConverterVariant, ...]

    @property
    def key(self) -> tuple[str, str]:
        return (self.source_code, self.target_code)


Route = tuple[Hop, ...]


def plan_routes(
    usable: Sequence[ConverterVariant],
    source_code: str,
    target_code: str,
    *,
    max_hops: int = MAX_ROUTE_HOPS,
) -> tuple[Route, ...]:
    """Return every route from ``source_code`` to ``target_code``.

    Shorter routes come first, so a direct conversion always wins over a
    chain. No route visits a format code twice. Candidates of each hop keep
    the registry's priority order.
    """

    if source_code == target_code:
        return ()
    found: list[tuple[str, ...]] = []
    frontier: list[tuple[str, ...]] = [(source_code,)]
    for _ in range(max_hops):
        extended: list[tuple[str, ...]] = []
        for path in frontier:
            for code in _next_codes(usable, path[-1]):
                if code in path:
                    continue
                if code == target_code:
                    found.append((*path, code))
                else:
                    extended.append((*path, code))
        frontier = extended
    return tuple(_route(usable, path) for path in found)


def _next_codes(
    usable: Sequence[ConverterVariant], code: str
) -> tuple[str, ...]:
    ordered: dict[str, None] = {}
    for variant in usable:
        for target in sorted(variant.capabilities.get(code, ())):
            ordered.setdefault(target, None)
    return tuple(ordered)


def _route(
    usable: Sequence[ConverterVariant], path: tuple[str, ...]
) -> Route:
    return tuple(
        Hop(
            source_code=source,
            target_code=target,
            candidates=tuple(
                variant
                for variant in usable
                if variant.supports(source, target)
            ),
        )
        for source, target in zip(path, path[1:])
    )


__all__ = ["Hop", "MAX_ROUTE_HOPS", "Route", "plan_routes"]
