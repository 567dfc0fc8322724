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
from fencecalc.models.project import (
    LineItemLabor,
    LineItemMaterial,
    Project,
    ProjectLabor,
    ProjectLineItem,
    ProjectMaterial,
)
from fencecalc.models.sku import ProductSku, SkuComponent

__all__ = [
    "BusinessUnit",
    "ComponentDefinition",
    "ComponentMaterialRule",
    "FormulaParameter",
    "LaborCode",
    "LaborRate",
    "LineItemLabor",
    "LineItemMaterial",
    "Material",
    "ProductLaborRule",
    "ProductRule",
    "ProductSku",
    "ProductStyle",
    "ProductType",
    "ProductTypeComponent",
    "Project",
    "ProjectLabor",
    "ProjectLineItem",
    "ProjectMaterial",
    "SkuComponent",
]
