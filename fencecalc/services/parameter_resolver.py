from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from fencecalc.core.errors import ParameterNotFound
from fencecalc.services.catalog import CatalogSnapshot, ParameterRecord

# Neutral values only. Nothing that moves a price up or down is defaulted here.
HARD_DEFAULTS: Dict[str, Decimal] = {
    "picket_multiplier": Decimal("1"),
    "board_multiplier": Decimal("1"),
}

# formula_adjustments JSON key on the style row, per parameter key
STYLE_ADJUSTMENT_KEYS: Dict[str, str] = {
    "post_spacing": "postSpacing",
    "picket_multiplier": "picketMultiplier",
    "board_multiplier": "boardMultiplier",
}

_ScopeKey = Tuple[Optional[str], Optional[str], Optional[str], str]


def scope_chain(
    product_type: Optional[str], style: Optional[str], component: Optional[str]
) -> Iterable[Tuple[Optional[str], Optional[str], Optional[str]]]:
    """Most specific scope first, global default last."""
    yield (product_type, style, component)
    yield (product_type, style, None)
    yield (product_type, None, component)
    yield (product_type, None, None)
    yield (None, None, None)


class FormulaParameterResolver:
    def __init__(self, snapshot: CatalogSnapshot):
        self._snapshot = snapshot
        self._index: Dict[_ScopeKey, Decimal] = {}
        for row in snapshot.parameters:
            self._index[self._key(row)] = Decimal(row.value)

    @staticmethod
    def _key(row: ParameterRecord) -> _ScopeKey:
        return (row.product_type, row.style, row.component, row.key)

    def find(
        self,
        key: str,
        product_type: Optional[str],
        style: Optional[str] = None,
        component: Optional[str] = None,
    ) -> Optional[Decimal]:
        seen = set()
        for scope in scope_chain(product_type, style, component):
            if scope in seen:
                continue
            seen.add(scope)
            value = self._index.get((*scope, key))
            if value is not None:
                return value
        return None

    def resolve(
        self,
        key: str,
        product_type: Optional[str],
        style: Optional[str] = None,
        component: Optional[str] = None,
    ) -> Decimal:
        """
        Walk the scope chain. A style's formula_adjustments rank right after
        the rows scoped to that style; a product type's default post spacing
        ranks right after the type-wide rows.
        """
        seen = set()
        for scope in scope_chain(product_type, style, component):
            if scope in seen:
                continue
            seen.add(scope)
            value = self._index.get((*scope, key))
            if value is not None:
                return value

            if product_type is not None and scope == (product_type, style, None):
                value = self._style_adjustment(key, product_type, style)
                if value is not None:
                    return value
            if product_type is not None and scope == (product_type, None, None):
                value = self._type_default(key, product_type)
                if value is not None:
                    return value

        if key in HARD_DEFAULTS:
            return HARD_DEFAULTS[key]

        raise ParameterNotFound(key, product_type, style, component)

    def _style_adjustment(self, key: str, product_type: str, style: Optional[str]) -> Optional[Decimal]:
        adjustment_key = STYLE_ADJUSTMENT_KEYS.get(key)
        if style is None or adjustment_key is None:
            return None
        style_row = self._snapshot.styles.get((product_type, style))
        if style_row is None:
            return None
        raw = (style_row.formula_adjustments or {}).get(adjustment_key)
        return Decimal(str(raw)) if raw is not None else None

    def _type_default(self, key: str, product_type: str) -> Optional[Decimal]:
        if key != "post_spacing":
            return None
        type_row = self._snapshot.product_types.get(product_type)
        if type_row is None or type_row.default_post_spacing is None:
            return None
        return Decimal(type_row.default_post_spacing)
