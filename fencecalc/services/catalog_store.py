"""
Database side of the calculator: one consistent catalog read in, atomic
aggregate upserts out.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from fencecalc.database import dialect_name
from fencecalc.models.business_unit import BusinessUnit
from fencecalc.models.formula_parameter import FormulaParameter
from fencecalc.models.labor import LaborCode, LaborRate
from fencecalc.models.material import Material
from fencecalc.models.product import (
    ComponentDefinition,
    ComponentMaterialRule,
    ProductStyle,
    ProductType,
    ProductTypeComponent,
)
from fencecalc.models.product_rule import ProductLaborRule, ProductRule
from fencecalc.models.project import ProjectLabor, ProjectMaterial
from fencecalc.models.sku import ProductSku, SkuComponent
from fencecalc.services.aggregator import BolLine, BomLine
from fencecalc.services.catalog import (
    CatalogSnapshot,
    ComponentRecord,
    EligibilityRecord,
    LaborCodeRecord,
    LaborRateRecord,
    MaterialRecord,
    ParameterRecord,
    ProductStyleRecord,
    ProductTypeRecord,
    SkuRecord,
)
from fencecalc.services.labor_selector import compile_labor_rule
from fencecalc.services.rule_engine import compile_rule, validate_rule_set

logger = logging.getLogger(__name__)


def _dec(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def load_snapshot(db: Session) -> CatalogSnapshot:
    """
    Read every catalog table the calculator needs inside the caller's
    transaction and compile the rule rows. Raises RuleDefinitionError on
    malformed or double-applying rules.
    """
    snapshot = CatalogSnapshot()

    type_codes: Dict[int, str] = {}
    for row in db.query(ProductType).order_by(ProductType.id.asc()).all():
        type_codes[row.id] = row.code
        snapshot.product_types[row.code] = ProductTypeRecord(
            id=row.id,
            code=row.code,
            name=row.name,
            calculator_class=row.calculator_class,
            default_post_spacing=_dec(row.default_post_spacing),
        )

    style_codes: Dict[int, str] = {}
    for row in db.query(ProductStyle).order_by(ProductStyle.id.asc()).all():
        type_code = type_codes[row.product_type_id]
        style_codes[row.id] = row.code
        snapshot.styles[(type_code, row.code)] = ProductStyleRecord(
            id=row.id,
            product_type=type_code,
            code=row.code,
            name=row.name,
            formula_adjustments=dict(row.formula_adjustments or {}),
        )

    component_codes: Dict[int, str] = {}
    for row in db.query(ComponentDefinition).order_by(ComponentDefinition.display_order.asc()).all():
        component_codes[row.id] = row.code
        snapshot.components[row.code] = ComponentRecord(
            id=row.id, code=row.code, name=row.name, category=row.category, unit_type=row.unit_type
        )

    required: Dict[str, set] = defaultdict(set)
    for row in db.query(ProductTypeComponent).filter(ProductTypeComponent.is_required.is_(True)).all():
        required[type_codes[row.product_type_id]].add(component_codes[row.component_id])
    snapshot.required_components = {code: frozenset(parts) for code, parts in required.items()}

    for row in db.query(Material).all():
        snapshot.materials[row.id] = MaterialRecord(
            id=row.id,
            sku=row.material_sku,
            name=row.material_name,
            category=row.category,
            sub_category=row.sub_category,
            unit_type=row.unit_type,
            unit_cost=_dec(row.unit_cost),
            quantity_per_unit=_dec(row.quantity_per_unit) or Decimal("1"),
            length_ft=_dec(row.length_ft),
            actual_width=_dec(row.actual_width),
            status=row.status,
            attributes=dict(row.attributes or {}),
        )

    for row in db.query(BusinessUnit).all():
        snapshot.business_units[row.id] = row.code

    for row in db.query(LaborCode).filter(LaborCode.is_active.is_(True)).all():
        snapshot.labor_codes[row.id] = LaborCodeRecord(
            id=row.id, sku=row.labor_sku, description=row.description, unit_type=row.unit_type
        )

    for row in db.query(LaborRate).all():
        snapshot.labor_rates.append(
            LaborRateRecord(
                labor_code_id=row.labor_code_id,
                business_unit=snapshot.business_units[row.business_unit_id],
                rate=_dec(row.rate),
                effective_date=row.effective_date,
            )
        )

    for row in db.query(FormulaParameter).all():
        snapshot.parameters.append(
            ParameterRecord(
                key=row.parameter_key,
                value=_dec(row.parameter_value),
                product_type=type_codes.get(row.product_type_id),
                style=style_codes.get(row.product_style_id),
                component=component_codes.get(row.component_id),
            )
        )

    for row in db.query(ComponentMaterialRule).all():
        snapshot.eligibility.append(
            EligibilityRecord(
                component=component_codes[row.component_id],
                product_type=type_codes.get(row.product_type_id),
                style=style_codes.get(row.product_style_id),
                category=row.material_category,
                sub_category=row.material_sub_category,
                material_id=row.material_id,
                is_default=bool(row.is_default),
                display_order=row.display_order or 0,
            )
        )

    sku_components: Dict[int, Dict[str, int]] = defaultdict(dict)
    for row in db.query(SkuComponent).all():
        sku_components[row.sku_id][component_codes[row.component_id]] = row.material_id

    for row in db.query(ProductSku).all():
        snapshot.skus[row.id] = SkuRecord(
            id=row.id,
            code=row.sku_code,
            name=row.sku_name,
            product_type=type_codes[row.product_type_id],
            style=style_codes[row.product_style_id],
            height=_dec(row.height),
            post_type=row.post_type,
            post_spacing=_dec(row.post_spacing),
            config=dict(row.config_json or {}),
            components=dict(sku_components.get(row.id, {})),
        )

    for order, row in enumerate(db.query(ProductRule).order_by(ProductRule.id.asc()).all()):
        snapshot.rules.append(
            compile_rule(
                name=row.name,
                rule_type=row.rule_type,
                condition_json=row.condition_json,
                action_json=row.action_json,
                product_type=type_codes.get(row.product_type_id),
                style=style_codes.get(row.product_style_id),
                priority=row.priority,
                error_message=row.error_message,
                is_active=row.is_active,
                order=order,
                rule_id=row.id,
            )
        )
    validate_rule_set(snapshot.rules)

    for order, row in enumerate(db.query(ProductLaborRule).order_by(ProductLaborRule.id.asc()).all()):
        # rules for deactivated labor codes drop out with their code
        if row.labor_code_id not in snapshot.labor_codes:
            continue
        snapshot.labor_rules.append(
            compile_labor_rule(
                name=row.name,
                labor_code_id=row.labor_code_id,
                condition_json=row.condition_json,
                quantity_formula=row.quantity_formula,
                product_type=type_codes.get(row.product_type_id),
                style=style_codes.get(row.product_style_id),
                is_base_labor=row.is_base_labor,
                priority=row.priority,
                is_active=row.is_active,
                order=order,
            )
        )

    return snapshot


def _insert_for(db: Session):
    name = dialect_name(db)
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ValueError(f"Atomic upsert not supported on dialect '{name}'")
    return insert


def upsert_project_materials(db: Session, project_id: int, lines: Iterable[BomLine]) -> int:
    """
    Insert or update one row per (project, material) in a single statement.
    manual_quantity is never touched; calculated rows that no longer appear
    are deleted, manual additions are kept.
    """
    now = datetime.utcnow()
    rows: List[Dict[str, Any]] = [
        {
            "project_id": int(project_id),
            "material_id": line.material.id,
            "calculated_quantity": line.calculated_quantity,
            "rounded_quantity": line.rounded_quantity,
            "unit_cost": line.unit_cost,
            "is_manual_addition": False,
            "calculation_note": line.note,
            "updated_at": now,
        }
        for line in lines
    ]

    stale = db.query(ProjectMaterial).filter(
        ProjectMaterial.project_id == int(project_id),
        ProjectMaterial.is_manual_addition.is_(False),
    )
    if rows:
        stale = stale.filter(ProjectMaterial.material_id.notin_([r["material_id"] for r in rows]))
    stale.delete(synchronize_session=False)

    if not rows:
        return 0

    insert = _insert_for(db)
    stmt = insert(ProjectMaterial.__table__).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["project_id", "material_id"],
        set_={
            "calculated_quantity": stmt.excluded.calculated_quantity,
            "rounded_quantity": stmt.excluded.rounded_quantity,
            "unit_cost": stmt.excluded.unit_cost,
            "is_manual_addition": False,
            "calculation_note": stmt.excluded.calculation_note,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    return len(rows)


def upsert_project_labor(db: Session, project_id: int, lines: Iterable[BolLine]) -> int:
    now = datetime.utcnow()
    rows: List[Dict[str, Any]] = [
        {
            "project_id": int(project_id),
            "labor_code_id": line.labor_code.id,
            "calculated_quantity": line.calculated_quantity,
            "labor_rate": Decimal(line.rate),
            "is_manual_addition": False,
            "updated_at": now,
        }
        for line in lines
    ]

    stale = db.query(ProjectLabor).filter(
        ProjectLabor.project_id == int(project_id),
        ProjectLabor.is_manual_addition.is_(False),
    )
    if rows:
        stale = stale.filter(ProjectLabor.labor_code_id.notin_([r["labor_code_id"] for r in rows]))
    stale.delete(synchronize_session=False)

    if not rows:
        return 0

    insert = _insert_for(db)
    stmt = insert(ProjectLabor.__table__).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["project_id", "labor_code_id"],
        set_={
            "calculated_quantity": stmt.excluded.calculated_quantity,
            "labor_rate": stmt.excluded.labor_rate,
            "is_manual_addition": False,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    return len(rows)
