from __future__ import annotations

from typing import List, Optional, Sequence

from fencecalc.services.catalog import CatalogSnapshot, EligibilityRecord, MaterialRecord
from fencecalc.services.rule_engine import MaterialFilter


def _scoped_records(
    snapshot: CatalogSnapshot, component: str, product_type: str, style: Optional[str]
) -> List[EligibilityRecord]:
    return [
        r
        for r in snapshot.eligibility
        if r.component == component
        and (r.product_type is None or r.product_type == product_type)
        and (r.style is None or r.style == style)
    ]


def eligible_materials(
    snapshot: CatalogSnapshot,
    component: str,
    product_type: str,
    style: Optional[str],
    filters: Sequence[MaterialFilter] = (),
) -> List[MaterialRecord]:
    """
    Active materials a component may use, narrowed by every filter.

    The base set comes from component_material_rules scoped to the type and
    style; a component with no such rows may use any active material.
    Ordered default first, then display order, then SKU.
    """
    records = _scoped_records(snapshot, component, product_type, style)

    ranked = []
    for material in snapshot.materials.values():
        if not material.is_active:
            continue
        if records:
            admitting = [r for r in records if r.admits(material)]
            if not admitting:
                continue
            is_default = any(r.is_default for r in admitting)
            display_order = min(r.display_order for r in admitting)
        else:
            is_default, display_order = False, 0
        if not all(f.matches(material) for f in filters):
            continue
        ranked.append((not is_default, display_order, material.sku, material))

    ranked.sort(key=lambda row: row[:3])
    return [row[3] for row in ranked]
