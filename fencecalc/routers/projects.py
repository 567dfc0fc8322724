from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from fencecalc.core.authorization import Role, require_role
from fencecalc.database import SessionLocal
from fencecalc.deps.auth import require_auth
from fencecalc.models.business_unit import BusinessUnit
from fencecalc.models.labor import LaborCode
from fencecalc.models.material import Material
from fencecalc.models.project import Project, ProjectLabor, ProjectLineItem, ProjectMaterial
from fencecalc.models.sku import ProductSku
from fencecalc.schemas.project import (
    BomResponse,
    LineItemCreate,
    LineItemResponse,
    OverrideRequest,
    ProjectCreate,
    ProjectResponse,
)
from fencecalc.services import estimate_service

router = APIRouter(prefix="/projects", tags=["Projects"])


def _company(request: Request, x_company_id: int) -> int:
    if int(x_company_id) != int(request.state.company_id):
        raise HTTPException(status_code=403, detail="Company mismatch")
    return int(request.state.company_id)


def _project_or_404(db: Session, project_id: int, company_id: int) -> Project:
    row = (
        db.query(Project)
        .filter(Project.id == int(project_id), Project.company_id == company_id)
        .first()
    )
    if row is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return row


def _bom_lines(db: Session, project_id: int) -> List[dict]:
    rows = (
        db.query(ProjectMaterial, Material)
        .join(Material, Material.id == ProjectMaterial.material_id)
        .filter(ProjectMaterial.project_id == project_id)
        .order_by(Material.category.asc(), Material.material_sku.asc())
        .all()
    )
    return [
        {
            "material_id": material.id,
            "material_sku": material.material_sku,
            "material_name": material.material_name,
            "calculated_quantity": row.calculated_quantity,
            "rounded_quantity": row.rounded_quantity,
            "manual_quantity": row.manual_quantity,
            "final_quantity": row.final_quantity,
            "unit_cost": row.unit_cost,
            "extended_cost": row.extended_cost,
            "is_manual_addition": row.is_manual_addition,
        }
        for row, material in rows
    ]


def _bol_lines(db: Session, project_id: int) -> List[dict]:
    rows = (
        db.query(ProjectLabor, LaborCode)
        .join(LaborCode, LaborCode.id == ProjectLabor.labor_code_id)
        .filter(ProjectLabor.project_id == project_id)
        .order_by(LaborCode.labor_sku.asc())
        .all()
    )
    return [
        {
            "labor_code_id": code.id,
            "labor_sku": code.labor_sku,
            "description": code.description,
            "calculated_quantity": row.calculated_quantity,
            "manual_quantity": row.manual_quantity,
            "final_quantity": row.final_quantity,
            "rate": row.labor_rate,
            "extended_cost": row.extended_cost,
            "is_manual_addition": row.is_manual_addition,
        }
        for row, code in rows
    ]


@router.post("", response_model=ProjectResponse)
def create_project(
    payload: ProjectCreate,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
    _role: Role = Depends(require_role(Role.ESTIMATOR)),
):
    company_id = _company(request, x_company_id)

    db = SessionLocal()
    try:
        unit = db.query(BusinessUnit).filter(BusinessUnit.code == payload.business_unit_code).first()
        if unit is None:
            raise HTTPException(status_code=400, detail=f"Unknown business unit {payload.business_unit_code}")

        row = Project(
            company_id=company_id,
            project_name=payload.project_name,
            customer_name=payload.customer_name,
            business_unit_id=unit.id,
            concrete_type=payload.concrete_type,
            status="draft",
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
):
    company_id = _company(request, x_company_id)

    db = SessionLocal()
    try:
        return _project_or_404(db, project_id, company_id)
    finally:
        db.close()


@router.post("/{project_id}/line-items", response_model=LineItemResponse)
def add_line_item(
    project_id: int,
    payload: LineItemCreate,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
    _role: Role = Depends(require_role(Role.ESTIMATOR)),
):
    company_id = _company(request, x_company_id)

    db = SessionLocal()
    try:
        project = _project_or_404(db, project_id, company_id)
        sku = db.query(ProductSku).filter(ProductSku.sku_code == payload.sku_code).first()
        if sku is None or not sku.is_active:
            raise HTTPException(status_code=400, detail=f"Unknown SKU {payload.sku_code}")

        row = ProjectLineItem(
            project_id=project.id,
            sku_id=sku.id,
            total_footage=payload.total_footage,
            buffer=payload.buffer,
            number_of_lines=payload.number_of_lines,
            number_of_gates=payload.number_of_gates,
            sort_order=payload.sort_order,
            status="pending",
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


@router.post("/{project_id}/recalculate", response_model=BomResponse)
def recalculate(
    project_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
    _role: Role = Depends(require_role(Role.ESTIMATOR)),
):
    company_id = _company(request, x_company_id)

    try:
        estimate_service.recalculate_project(project_id, company_id=company_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return get_bom(project_id, request, x_company_id)


@router.get("/{project_id}/bom", response_model=BomResponse)
def get_bom(
    project_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
):
    company_id = _company(request, x_company_id)

    db = SessionLocal()
    try:
        project = _project_or_404(db, project_id, company_id)
        line_items = (
            db.query(ProjectLineItem)
            .filter(ProjectLineItem.project_id == project.id)
            .order_by(ProjectLineItem.sort_order.asc(), ProjectLineItem.id.asc())
            .all()
        )
        return {
            "project": project,
            "line_items": line_items,
            "materials": _bom_lines(db, project.id),
            "labor": _bol_lines(db, project.id),
        }
    finally:
        db.close()


@router.patch("/{project_id}/materials/{material_id}", response_model=BomResponse)
def override_material(
    project_id: int,
    material_id: int,
    payload: OverrideRequest,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
    _role: Role = Depends(require_role(Role.ESTIMATOR)),
):
    company_id = _company(request, x_company_id)

    try:
        estimate_service.set_material_override(
            project_id, material_id, payload.manual_quantity, company_id=company_id
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return get_bom(project_id, request, x_company_id)


@router.patch("/{project_id}/labor/{labor_code_id}", response_model=BomResponse)
def override_labor(
    project_id: int,
    labor_code_id: int,
    payload: OverrideRequest,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
    _role: Role = Depends(require_role(Role.ESTIMATOR)),
):
    company_id = _company(request, x_company_id)

    try:
        estimate_service.set_labor_override(
            project_id, labor_code_id, payload.manual_quantity, company_id=company_id
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return get_bom(project_id, request, x_company_id)
