"""add catalog tables

Revision ID: 3b8e1d6a90c4
Revises:
Create Date: 2026-10-05 09:12:44.201337

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3b8e1d6a90c4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "business_units",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("business_type", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.UniqueConstraint("code", name="uq_business_units_code"),
    )
    op.create_index("ix_business_units_id", "business_units", ["id"], unique=False)

    op.create_table(
        "materials",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("material_sku", sa.String(), nullable=False),
        sa.Column("material_name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("sub_category", sa.String(), nullable=True),
        sa.Column("unit_type", sa.String(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 4), nullable=False),
        sa.Column("quantity_per_unit", sa.Numeric(12, 4), nullable=False, server_default="1"),
        sa.Column("length_ft", sa.Numeric(10, 2), nullable=True),
        sa.Column("actual_width", sa.Numeric(10, 3), nullable=True),
        sa.Column("thickness", sa.String(), nullable=True),
        sa.Column("attributes", JSON_DOCUMENT, nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="Active"),
        sa.Column("default_stocking_area", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.UniqueConstraint("material_sku", name="uq_materials_material_sku"),
        sa.CheckConstraint("unit_cost >= 0", name="ck_materials_unit_cost_nonnegative"),
        sa.CheckConstraint("quantity_per_unit > 0", name="ck_materials_quantity_per_unit_positive"),
    )
    op.create_index("ix_materials_id", "materials", ["id"], unique=False)
    op.create_index("ix_materials_category", "materials", ["category"], unique=False)
    op.create_index("ix_materials_sub_category", "materials", ["sub_category"], unique=False)

    op.create_table(
        "labor_codes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("labor_sku", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("fence_categories", JSON_DOCUMENT, nullable=True),
        sa.Column("unit_type", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.UniqueConstraint("labor_sku", name="uq_labor_codes_labor_sku"),
    )
    op.create_index("ix_labor_codes_id", "labor_codes", ["id"], unique=False)

    op.create_table(
        "labor_rates",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("labor_code_id", sa.Integer(), nullable=False),
        sa.Column("business_unit_id", sa.Integer(), nullable=False),
        sa.Column("rate", sa.Numeric(12, 4), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["labor_code_id"], ["labor_codes.id"]),
        sa.ForeignKeyConstraint(["business_unit_id"], ["business_units.id"]),
        sa.UniqueConstraint(
            "labor_code_id",
            "business_unit_id",
            "effective_date",
            name="uq_labor_rates_code_unit_effective",
        ),
        sa.CheckConstraint("rate >= 0", name="ck_labor_rates_rate_nonnegative"),
    )
    op.create_index("ix_labor_rates_id", "labor_rates", ["id"], unique=False)
    op.create_index("ix_labor_rates_labor_code_id", "labor_rates", ["labor_code_id"], unique=False)
    op.create_index("ix_labor_rates_business_unit_id", "labor_rates", ["business_unit_id"], unique=False)

    op.create_table(
        "product_types",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("default_post_spacing", sa.Numeric(10, 2), nullable=True),
        sa.Column("calculator_class", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.UniqueConstraint("code", name="uq_product_types_code"),
    )
    op.create_index("ix_product_types_id", "product_types", ["id"], unique=False)

    op.create_table(
        "product_styles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_type_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("formula_adjustments", JSON_DOCUMENT, nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["product_type_id"], ["product_types.id"]),
        sa.UniqueConstraint("product_type_id", "code", name="uq_product_styles_type_code"),
    )
    op.create_index("ix_product_styles_id", "product_styles", ["id"], unique=False)
    op.create_index("ix_product_styles_product_type_id", "product_styles", ["product_type_id"], unique=False)

    op.create_table(
        "component_definitions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False, server_default="primary"),
        sa.Column("unit_type", sa.String(), nullable=False, server_default="Each"),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("code", name="uq_component_definitions_code"),
        sa.CheckConstraint(
            "category IN ('primary', 'optional', 'accessory')",
            name="ck_component_definitions_category",
        ),
    )
    op.create_index("ix_component_definitions_id", "component_definitions", ["id"], unique=False)

    op.create_table(
        "product_type_components",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_type_id", sa.Integer(), nullable=False),
        sa.Column("component_id", sa.Integer(), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(["product_type_id"], ["product_types.id"]),
        sa.ForeignKeyConstraint(["component_id"], ["component_definitions.id"]),
        sa.UniqueConstraint("product_type_id", "component_id", name="uq_product_type_components"),
    )
    op.create_index("ix_product_type_components_id", "product_type_components", ["id"], unique=False)

    op.create_table(
        "component_material_rules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_type_id", sa.Integer(), nullable=True),
        sa.Column("product_style_id", sa.Integer(), nullable=True),
        sa.Column("component_id", sa.Integer(), nullable=False),
        sa.Column("material_category", sa.String(), nullable=True),
        sa.Column("material_sub_category", sa.String(), nullable=True),
        sa.Column("material_id", sa.Integer(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["product_type_id"], ["product_types.id"]),
        sa.ForeignKeyConstraint(["product_style_id"], ["product_styles.id"]),
        sa.ForeignKeyConstraint(["component_id"], ["component_definitions.id"]),
        sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
        sa.CheckConstraint(
            "material_category IS NOT NULL OR material_sub_category IS NOT NULL OR material_id IS NOT NULL",
            name="ck_component_material_rules_has_match",
        ),
    )
    op.create_index("ix_component_material_rules_id", "component_material_rules", ["id"], unique=False)
    op.create_index(
        "ix_component_material_rules_component_id", "component_material_rules", ["component_id"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("component_material_rules")
    op.drop_table("product_type_components")
    op.drop_table("component_definitions")
    op.drop_table("product_styles")
    op.drop_table("product_types")
    op.drop_table("labor_rates")
    op.drop_table("labor_codes")
    op.drop_table("materials")
    op.drop_table("business_units")
