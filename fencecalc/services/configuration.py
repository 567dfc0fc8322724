from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from fencecalc.services.catalog import SkuRecord
from fencecalc.services.expressions import to_decimal

DEFAULT_BUFFER = Decimal("5")


@dataclass(frozen=True)
class ProductConfiguration:
    """One fence run: the product definition plus the run's footage, lines and gates."""

    product_type: str
    style: str
    height: Decimal
    post_type: str
    total_footage: Decimal
    buffer: Decimal = DEFAULT_BUFFER
    lines: int = 1
    gates: int = 0
    rail_count: Optional[int] = None
    post_spacing: Optional[Decimal] = None
    # component code -> material id
    components: Mapping[str, int] = field(default_factory=dict)
    # panel_width, board_width, rails_per_panel, ...
    options: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_sku(
        cls,
        sku: SkuRecord,
        total_footage: Any,
        buffer: Any = DEFAULT_BUFFER,
        lines: int = 1,
        gates: int = 0,
    ) -> "ProductConfiguration":
        options = dict(sku.config or {})
        rail_count = options.pop("rail_count", None)
        return cls(
            product_type=sku.product_type,
            style=sku.style,
            height=to_decimal(sku.height),
            post_type=sku.post_type,
            total_footage=to_decimal(total_footage),
            buffer=to_decimal(DEFAULT_BUFFER if buffer is None else buffer),
            lines=int(lines),
            gates=int(gates),
            rail_count=None if rail_count is None else int(rail_count),
            post_spacing=None if sku.post_spacing is None else to_decimal(sku.post_spacing),
            components=dict(sku.components),
            options=options,
        )

    @property
    def net_length(self) -> Decimal:
        net = to_decimal(self.total_footage) - to_decimal(self.buffer or 0)
        return net if net > 0 else Decimal("0")

    def option(self, key: str) -> Optional[Decimal]:
        raw = self.options.get(key)
        if raw is None:
            return None
        return to_decimal(raw)

    def attributes(self) -> Dict[str, Any]:
        """Flat attribute view that rule conditions and quantity expressions are evaluated against."""
        attrs: Dict[str, Any] = dict(self.options)
        attrs.update(
            {
                "product_type": self.product_type,
                "style": self.style,
                "height": to_decimal(self.height),
                "post_type": self.post_type.upper(),
                "lines": self.lines,
                "gates": self.gates,
                "net_length": self.net_length,
                "total_footage": to_decimal(self.total_footage),
                "components": frozenset(self.components),
            }
        )
        if self.rail_count is not None:
            attrs["rail_count"] = self.rail_count
        if self.post_spacing is not None:
            attrs["post_spacing"] = to_decimal(self.post_spacing)
        return attrs
