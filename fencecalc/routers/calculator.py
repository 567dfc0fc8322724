from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from fencecalc.core.authorization import Role, require_role
from fencecalc.database import SessionLocal
from fencecalc.deps.auth import require_auth
from fencecalc.schemas.calculator import PreviewRequest, PreviewResponse, StandardCostResponse
from fencecalc.services.catalog import CatalogSnapshot
from fencecalc.services.catalog_store import load_snapshot
from fencecalc.services.configuration import ProductConfiguration
from fencecalc.services.estimate_service import calculate_line_item, calculate_sku_standard_cost, price_estimate

router = APIRouter(prefix="/calculator", tags=["Calculator"])


def _configuration(snapshot: CatalogSnapshot, payload: PreviewRequest) -> ProductConfiguration:
    if payload.sku_code:
        return ProductConfiguration.from_sku(
            snapshot.sku_by_code(payload.sku_code),
            total_footage=payload.total_footage,
            buffer=payload.buffer,
            lines=payload.number_of_lines,
            gates=payload.number_of_gates,
        )

    missing = [
        name
        for name in ("product_type", "style", "height", "post_type")
        if getattr(payload, name) is None
    ]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing fields without sku_code: {', '.join(missing)}")

    snapshot.style(payload.product_type, payload.style)
    return ProductConfiguration(
        product_type=payload.product_type,
        style=payload.style,
        height=payload.height,
        post_type=payload.post_type.upper(),
        total_footage=payload.total_footage,
        buffer=payload.buffer,
        lines=payload.number_of_lines,
        gates=payload.number_of_gates,
        rail_count=payload.rail_count,
        post_spacing=payload.post_spacing,
        components=dict(payload.components),
        options=dict(payload.options),
    )


@router.post("/preview", response_model=PreviewResponse)
def preview(
    payload: PreviewRequest,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
):
    if int(x_company_id) != int(request.state.company_id):
        raise HTTPException(status_code=403, detail="Company mismatch")

    db = SessionLocal()
    try:
        snapshot = load_snapshot(db)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    finally:
        db.close()

    try:
        configuration = _configuration(snapshot, payload)
        result = calculate_line_item(snapshot, configuration)
        if not result.ok:
            raise HTTPException(
                status_code=422,
                detail={"violations": [v.as_dict() for v in result.violations]},
            )
        estimate = price_estimate(
            snapshot,
            [result],
            payload.business_unit_code,
            payload.as_of or date.today(),
            payload.concrete_type,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "materials": [line.as_dict() for line in estimate.bom],
        "labor": [line.as_dict() for line in estimate.bol],
        "totals": {
            "linear_feet": estimate.totals.linear_feet,
            "material_cost": estimate.totals.material_cost,
            "labor_cost": estimate.totals.labor_cost,
            "project_cost": estimate.totals.project_cost,
            "cost_per_foot": estimate.totals.cost_per_foot,
        },
        "total_posts": Decimal(result.total_posts),
        "issues": result.issue_dicts() + [i.as_dict() for i in estimate.issues],
    }


@router.post("/skus/{sku_code}/standard-cost", response_model=StandardCostResponse)
def sku_standard_cost(
    sku_code: str,
    business_unit_code: str,
    request: Request,
    footage: Decimal = Decimal("100"),
    x_company_id: int = Header(..., alias="X-Company-Id"),
    _auth: tuple[str, int] = Depends(require_auth),
    _role: Role = Depends(require_role(Role.ADMIN)),
):
    if int(x_company_id) != int(request.state.company_id):
        raise HTTPException(status_code=403, detail="Company mismatch")

    try:
        estimate = calculate_sku_standard_cost(sku_code, business_unit_code, footage)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "sku_code": sku_code,
        "business_unit_code": business_unit_code,
        "footage": footage,
        "standard_material_cost": estimate.totals.material_cost,
        "standard_labor_cost": estimate.totals.labor_cost,
        "standard_cost_per_foot": estimate.totals.cost_per_foot,
    }
