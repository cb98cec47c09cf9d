# mixing_BatchReporter/core/facets.py
from __future__ import annotations
import logging
import re
from typing import Iterable

from .model import FacetField, RawRow

_LOG = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)")

def natural_key(text: str) -> tuple[tuple, str]:
    """
    Sort key that compares digit runs by value: "LOT-2" < "LOT-10".
    re.split with a capture group alternates text/digits starting with text,
    so every position holds the same type across keys.
    """
    parts = _DIGITS.split(text.casefold())
    return tuple(int(p) if i % 2 else p for i, p in enumerate(parts)), text

def derive_facets(rows: Iterable[RawRow], facet_field: FacetField = "lot") -> tuple[str, ...]:
    """
    Distinct, trimmed, non-blank lot (or batch) identifiers in natural order.
    ``rows`` must be the upstream-filtered subset (date/machine/rubber only),
    never the facet-filtered one.
    """
    seen: set[str] = set()
    for row in rows:
        ident = str(row.facet_value(facet_field)).strip()
        if ident:
            seen.add(ident)
    return tuple(sorted(seen, key=natural_key))

def reconcile_selection(previous: frozenset[str] | None,
                        facets: Iterable[str]) -> frozenset[str]:
    """
    Keep the selection a subset of the offered facets.

    Order:
      1) no facets -> empty selection
      2) nothing offered before (None) -> every facet
      3) previous ∩ facets, unless that is empty while something was selected,
         in which case every facet is selected again
    Idempotent: reconcile(reconcile(p, f), f) == reconcile(p, f).
    """
    available = frozenset(facets)
    if not available:
        return frozenset()
    if previous is None:
        return available
    kept = previous & available
    if not kept and previous:
        _LOG.info("selection %d id(s) no longer offered; selecting all %d facets",
                  len(previous), len(available))
        return available
    return kept

def restrict_selection(requested: Iterable[str], facets: Iterable[str]) -> frozenset[str]:
    """User edits: drop ids that are not currently offered."""
    available = frozenset(facets)
    wanted = frozenset(str(x).strip() for x in requested)
    dropped = wanted - available
    if dropped:
        _LOG.debug("ignoring %d selected id(s) not in facet list: %s",
                   len(dropped), sorted(dropped, key=natural_key))
    return wanted & available
