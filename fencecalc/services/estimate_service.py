from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from fencecalc.core.errors import ConstraintViolation, NoEligibleMaterial
from fencecalc.database import SessionLocal
from fencecalc.models.business_unit import BusinessUnit
from fencecalc.models.labor import LaborCode
from fencecalc.models.material import Material
from fencecalc.models.project import (
    LineItemLabor,
    LineItemMaterial,
    Project,
    ProjectLabor,
    ProjectLineItem,
    ProjectMaterial,
)
from fencecalc.models.sku import ProductSku
from fencecalc.services import aggregator
from fencecalc.services.aggregator import BolLine, BomLine, Totals
from fencecalc.services.catalog import CatalogSnapshot
from fencecalc.services.catalog_store import load_snapshot, upsert_project_labor, upsert_project_materials
from fencecalc.services.configuration import ProductConfiguration
from fencecalc.services.labor_selector import LaborQuantity, LaborSelector
from fencecalc.services.parameter_resolver import FormulaParameterResolver
from fencecalc.services.quantity_calculator import MaterialQuantity, calculate_quantities
from fencecalc.services.rule_engine import RuleEngine

logger = logging.getLogger(__name__)


@dataclass
class LineItemResult:
    configuration: ProductConfiguration
    violations: List[ConstraintViolation] = field(default_factory=list)
    issues: List[NoEligibleMaterial] = field(default_factory=list)
    materials: List[MaterialQuantity] = field(default_factory=list)
    labor: List[LaborQuantity] = field(default_factory=list)
    total_posts: Decimal = Decimal("0")

    @property
    def ok(self) -> bool:
        return not self.violations

    @property
    def status(self) -> str:
        return "calculated" if self.ok else "invalid"

    def issue_dicts(self) -> List[Dict[str, Any]]:
        return [v.as_dict() for v in self.violations] + [i.as_dict() for i in self.issues]


@dataclass
class Estimate:
    line_items: List[LineItemResult]
    bom: List[BomLine]
    bol: List[BolLine]
    totals: Totals
    issues: List[NoEligibleMaterial] = field(default_factory=list)

    @property
    def violations(self) -> List[ConstraintViolation]:
        return [v for item in self.line_items for v in item.violations]


def calculate_line_item(snapshot: CatalogSnapshot, configuration: ProductConfiguration) -> LineItemResult:
    """
    Rules, quantities and labor for one fence run. Pure over the snapshot.

    Constraint violations stop the run before any quantity is computed;
    material selection problems are collected and the remaining components
    are still calculated. ParameterNotFound propagates.
    """
    result = LineItemResult(configuration=configuration)
    attributes = configuration.attributes()

    engine = RuleEngine(snapshot.rules)
    evaluation = engine.evaluate(configuration.product_type, configuration.style, attributes)
    if not evaluation.ok:
        result.violations.extend(evaluation.violations)
        return result

    resolver = FormulaParameterResolver(snapshot)
    quantities = calculate_quantities(snapshot, resolver, configuration, evaluation)
    result.materials.extend(quantities.materials)
    result.issues.extend(quantities.issues)
    result.total_posts = quantities.total_posts

    if configuration.net_length > 0:
        selector = LaborSelector(snapshot)
        result.labor.extend(
            selector.labor_quantities(
                configuration.product_type, configuration.style, attributes, quantities.total_posts
            )
        )
    return result


def price_estimate(
    snapshot: CatalogSnapshot,
    line_items: List[LineItemResult],
    business_unit: str,
    as_of: date,
    concrete_type: str = "3-part",
) -> Estimate:
    valid = [item for item in line_items if item.ok]
    total_posts = sum((item.total_posts for item in valid), Decimal("0"))

    concrete, issues = aggregator.concrete_quantities(snapshot, concrete_type, total_posts)
    bom = aggregator.aggregate_materials([m for item in valid for m in item.materials] + concrete)

    selector = LaborSelector(snapshot)
    bol = aggregator.aggregate_labor(
        [labor for item in valid for labor in item.labor],
        lambda code: selector.rate_for(code, business_unit, as_of),
    )

    linear_feet = sum((item.configuration.net_length for item in valid), Decimal("0"))
    return Estimate(
        line_items=line_items,
        bom=bom,
        bol=bol,
        totals=aggregator.totals(linear_feet, bom, bol),
        issues=issues,
    )


def _get_project(db: Session, project_id: int, company_id: Optional[int]) -> Project:
    query = db.query(Project).filter(Project.id == int(project_id))
    if company_id is not None:
        query = query.filter(Project.company_id == int(company_id))
    project = query.first()
    if project is None:
        raise LookupError(f"Project {project_id} not found")
    return project


def recalculate_project(
    project_id: int,
    as_of: Optional[date] = None,
    *,
    company_id: Optional[int] = None,
    db: Optional[Session] = None,
) -> Estimate:
    """
    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        project = _get_project(db, project_id, company_id)
        as_of = as_of or date.today()
        snapshot = load_snapshot(db)
        business_unit = snapshot.business_unit_code(project.business_unit_id)

        items = (
            db.query(ProjectLineItem)
            .filter(ProjectLineItem.project_id == project.id)
            .order_by(ProjectLineItem.sort_order.asc(), ProjectLineItem.id.asc())
            .all()
        )

        results: List[LineItemResult] = []
        for item in items:
            configuration = ProductConfiguration.from_sku(
                snapshot.sku(item.sku_id),
                total_footage=item.total_footage,
                buffer=item.buffer,
                lines=item.number_of_lines,
                gates=item.number_of_gates,
            )
            result = calculate_line_item(snapshot, configuration)
            results.append(result)

            db.query(LineItemMaterial).filter(LineItemMaterial.line_item_id == item.id).delete(
                synchronize_session=False
            )
            db.query(LineItemLabor).filter(LineItemLabor.line_item_id == item.id).delete(
                synchronize_session=False
            )
            for m in result.materials:
                db.add(
                    LineItemMaterial(
                        line_item_id=item.id,
                        material_id=m.material.id,
                        component_code=m.component,
                        calculated_quantity=m.quantity,
                    )
                )
            for labor in result.labor:
                db.add(
                    LineItemLabor(
                        line_item_id=item.id,
                        labor_code_id=labor.labor_code.id,
                        calculated_quantity=labor.quantity,
                    )
                )
            item.status = result.status
            item.issues = result.issue_dicts()

        estimate = price_estimate(snapshot, results, business_unit, as_of, project.concrete_type)

        db.flush()
        upsert_project_materials(db, project.id, estimate.bom)
        upsert_project_labor(db, project.id, estimate.bol)
        db.flush()
        db.expire_all()

        _refresh_project_totals(db, project)

        logger.info(
            "Project recalculated",
            extra={
                "project_id": project.id,
                "line_items": len(results),
                "invalid_line_items": sum(1 for r in results if not r.ok),
                "material_lines": len(estimate.bom),
                "labor_lines": len(estimate.bol),
            },
        )
        if estimate.issues:
            logger.warning(
                "Project calculation issues",
                extra={"project_id": project.id, "issues": [i.message for i in estimate.issues]},
            )

        if owns_db:
            db.commit()
        return estimate
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def _refresh_project_totals(db: Session, project: Project) -> None:
    """Cached totals come from the stored aggregate rows so overrides count."""
    materials = db.query(ProjectMaterial).filter(ProjectMaterial.project_id == project.id).all()
    labor = db.query(ProjectLabor).filter(ProjectLabor.project_id == project.id).all()
    linear_feet = sum(
        (
            item.net_length
            for item in db.query(ProjectLineItem)
            .filter(ProjectLineItem.project_id == project.id, ProjectLineItem.status == "calculated")
            .all()
        ),
        Decimal("0"),
    )

    project_totals = Totals(
        linear_feet=linear_feet,
        material_cost=sum((row.extended_cost for row in materials), Decimal("0")),
        labor_cost=sum((row.extended_cost for row in labor), Decimal("0")),
    )
    project.total_linear_feet = project_totals.linear_feet
    project.total_material_cost = project_totals.material_cost
    project.total_labor_cost = project_totals.labor_cost
    project.total_project_cost = project_totals.project_cost
    project.cost_per_foot = project_totals.cost_per_foot
    project.calculated_at = datetime.utcnow()


def set_material_override(
    project_id: int,
    material_id: int,
    manual_quantity: Optional[Decimal],
    *,
    company_id: Optional[int] = None,
    db: Optional[Session] = None,
) -> ProjectMaterial:
    """Set or clear (None) a manual quantity. A material not yet on the BOM becomes a manual addition."""
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        project = _get_project(db, project_id, company_id)
        if manual_quantity is not None and Decimal(manual_quantity) < 0:
            raise ValueError("manual_quantity must be >= 0")

        row = (
            db.query(ProjectMaterial)
            .filter(ProjectMaterial.project_id == project.id, ProjectMaterial.material_id == int(material_id))
            .first()
        )
        if row is None:
            if manual_quantity is None:
                raise LookupError(f"Material {material_id} is not on project {project_id}")
            material = db.query(Material).filter(Material.id == int(material_id)).first()
            if material is None:
                raise LookupError(f"Material {material_id} not found")
            row = ProjectMaterial(
                project_id=project.id,
                material_id=material.id,
                calculated_quantity=Decimal("0"),
                rounded_quantity=Decimal("0"),
                unit_cost=material.unit_cost,
                is_manual_addition=True,
                calculation_note="manual addition",
            )
            db.add(row)

        if manual_quantity is None and row.is_manual_addition:
            db.delete(row)
        else:
            row.manual_quantity = manual_quantity

        db.flush()
        _refresh_project_totals(db, project)

        if owns_db:
            db.commit()
        return row
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def set_labor_override(
    project_id: int,
    labor_code_id: int,
    manual_quantity: Optional[Decimal],
    *,
    company_id: Optional[int] = None,
    as_of: Optional[date] = None,
    db: Optional[Session] = None,
) -> ProjectLabor:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        project = _get_project(db, project_id, company_id)
        if manual_quantity is not None and Decimal(manual_quantity) < 0:
            raise ValueError("manual_quantity must be >= 0")

        row = (
            db.query(ProjectLabor)
            .filter(ProjectLabor.project_id == project.id, ProjectLabor.labor_code_id == int(labor_code_id))
            .first()
        )
        if row is None:
            if manual_quantity is None:
                raise LookupError(f"Labor code {labor_code_id} is not on project {project_id}")
            code = db.query(LaborCode).filter(LaborCode.id == int(labor_code_id)).first()
            if code is None:
                raise LookupError(f"Labor code {labor_code_id} not found")
            snapshot = load_snapshot(db)
            rate = LaborSelector(snapshot).rate_for(
                snapshot.labor_code(code.id),
                snapshot.business_unit_code(project.business_unit_id),
                as_of or date.today(),
            )
            row = ProjectLabor(
                project_id=project.id,
                labor_code_id=code.id,
                calculated_quantity=Decimal("0"),
                labor_rate=rate,
                is_manual_addition=True,
                calculation_note="manual addition",
            )
            db.add(row)

        if manual_quantity is None and row.is_manual_addition:
            db.delete(row)
        else:
            row.manual_quantity = manual_quantity

        db.flush()
        _refresh_project_totals(db, project)

        if owns_db:
            db.commit()
        return row
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def calculate_sku_standard_cost(
    sku_code: str,
    business_unit_code: str,
    footage: Decimal = Decimal("100"),
    *,
    as_of: Optional[date] = None,
    db: Optional[Session] = None,
) -> Estimate:
    """
    Price one SKU over a reference run, rounding immediately, and store the
    standard material/labor cost and cost per foot on the SKU row.
    The footage is treated as net length.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        snapshot = load_snapshot(db)
        sku = snapshot.sku_by_code(sku_code)
        if db.query(BusinessUnit).filter(BusinessUnit.code == business_unit_code).first() is None:
            raise LookupError(f"Business unit {business_unit_code} not found")

        configuration = ProductConfiguration.from_sku(sku, total_footage=Decimal(footage), buffer=Decimal("0"))
        result = calculate_line_item(snapshot, configuration)
        if not result.ok:
            raise ValueError("; ".join(v.message for v in result.violations))

        estimate = price_estimate(snapshot, [result], business_unit_code, as_of or date.today())

        row = db.query(ProductSku).filter(ProductSku.id == sku.id).first()
        row.standard_material_cost = estimate.totals.material_cost
        row.standard_labor_cost = estimate.totals.labor_cost
        row.standard_cost_per_foot = estimate.totals.cost_per_foot
        row.standard_cost_calculated_at = datetime.utcnow()

        logger.info(
            "SKU standard cost calculated",
            extra={"sku_code": sku_code, "business_unit": business_unit_code},
        )

        if owns_db:
            db.commit()
        return estimate
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()
