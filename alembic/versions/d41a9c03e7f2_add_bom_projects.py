"""add bom projects

Revision ID: d41a9c03e7f2
Revises: 8f2c47d1b5e9
Create Date: 2026-10-05 10:02:51.904466

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'd41a9c03e7f2'
down_revision: Union[str, Sequence[str], None] = '8f2c47d1b5e9'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "bom_projects",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("project_name", sa.String(), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=True),
        sa.Column("business_unit_id", sa.Integer(), nullable=False),
        sa.Column("concrete_type", sa.String(), nullable=False, server_default="3-part"),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("total_linear_feet", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_material_cost", sa.Numeric(14, 2), nullable=True),
        sa.Column("total_labor_cost", sa.Numeric(14, 2), nullable=True),
        sa.Column("total_project_cost", sa.Numeric(14, 2), nullable=True),
        sa.Column("cost_per_foot", sa.Numeric(12, 2), nullable=True),
        sa.Column("calculated_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["business_unit_id"], ["business_units.id"]),
        sa.CheckConstraint(
            "concrete_type IN ('3-part', 'yellow-bags', 'red-bags')",
            name="ck_bom_projects_concrete_type",
        ),
    )
    op.create_index("ix_bom_projects_id", "bom_projects", ["id"], unique=False)
    op.create_index("ix_bom_projects_company_id", "bom_projects", ["company_id"], unique=False)
    op.create_index("ix_bom_projects_business_unit_id", "bom_projects", ["business_unit_id"], unique=False)

    op.create_table(
        "project_line_items",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("sku_id", sa.Integer(), nullable=False),
        sa.Column("total_footage", sa.Numeric(10, 2), nullable=False),
        sa.Column("buffer", sa.Numeric(10, 2), nullable=False, server_default="5"),
        sa.Column("number_of_lines", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("number_of_gates", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("issues", JSON_DOCUMENT, nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["project_id"], ["bom_projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sku_id"], ["product_skus.id"]),
        sa.CheckConstraint("number_of_lines BETWEEN 1 AND 5", name="ck_line_items_lines"),
        sa.CheckConstraint("number_of_gates BETWEEN 0 AND 3", name="ck_line_items_gates"),
        sa.CheckConstraint("total_footage >= 0", name="ck_line_items_footage_nonnegative"),
    )
    op.create_index("ix_project_line_items_id", "project_line_items", ["id"], unique=False)
    op.create_index("ix_project_line_items_project_id", "project_line_items", ["project_id"], unique=False)
    op.create_index("ix_project_line_items_sku_id", "project_line_items", ["sku_id"], unique=False)

    op.create_table(
        "line_item_materials",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("line_item_id", sa.Integer(), nullable=False),
        sa.Column("material_id", sa.Integer(), nullable=False),
        sa.Column("component_code", sa.String(), nullable=False),
        sa.Column("calculated_quantity", sa.Numeric(14, 4), nullable=False),
        sa.ForeignKeyConstraint(["line_item_id"], ["project_line_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
    )
    op.create_index("ix_line_item_materials_id", "line_item_materials", ["id"], unique=False)
    op.create_index("ix_line_item_materials_line_item_id", "line_item_materials", ["line_item_id"], unique=False)
    op.create_index("ix_line_item_materials_material_id", "line_item_materials", ["material_id"], unique=False)

    op.create_table(
        "line_item_labor",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("line_item_id", sa.Integer(), nullable=False),
        sa.Column("labor_code_id", sa.Integer(), nullable=False),
        sa.Column("calculated_quantity", sa.Numeric(14, 4), nullable=False),
        sa.ForeignKeyConstraint(["line_item_id"], ["project_line_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["labor_code_id"], ["labor_codes.id"]),
    )
    op.create_index("ix_line_item_labor_id", "line_item_labor", ["id"], unique=False)
    op.create_index("ix_line_item_labor_line_item_id", "line_item_labor", ["line_item_id"], unique=False)
    op.create_index("ix_line_item_labor_labor_code_id", "line_item_labor", ["labor_code_id"], unique=False)

    op.create_table(
        "project_materials",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("material_id", sa.Integer(), nullable=False),
        sa.Column("calculated_quantity", sa.Numeric(14, 4), nullable=False),
        sa.Column("rounded_quantity", sa.Numeric(14, 4), nullable=False),
        sa.Column("manual_quantity", sa.Numeric(14, 4), nullable=True),
        sa.Column("unit_cost", sa.Numeric(12, 4), nullable=False),
        sa.Column("is_manual_addition", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("calculation_note", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["project_id"], ["bom_projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
        sa.UniqueConstraint("project_id", "material_id", name="uq_project_materials_project_material"),
        sa.CheckConstraint(
            "manual_quantity IS NULL OR manual_quantity >= 0",
            name="ck_project_materials_manual_nonnegative",
        ),
    )
    op.create_index("ix_project_materials_id", "project_materials", ["id"], unique=False)
    op.create_index("ix_project_materials_project_id", "project_materials", ["project_id"], unique=False)
    op.create_index("ix_project_materials_material_id", "project_materials", ["material_id"], unique=False)

    op.create_table(
        "project_labor",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("labor_code_id", sa.Integer(), nullable=False),
        sa.Column("calculated_quantity", sa.Numeric(14, 4), nullable=False),
        sa.Column("manual_quantity", sa.Numeric(14, 4), nullable=True),
        sa.Column("labor_rate", sa.Numeric(12, 4), nullable=False),
        sa.Column("is_manual_addition", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("calculation_note", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["project_id"], ["bom_projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["labor_code_id"], ["labor_codes.id"]),
        sa.UniqueConstraint("project_id", "labor_code_id", name="uq_project_labor_project_code"),
        sa.CheckConstraint(
            "manual_quantity IS NULL OR manual_quantity >= 0",
            name="ck_project_labor_manual_nonnegative",
        ),
    )
    op.create_index("ix_project_labor_id", "project_labor", ["id"], unique=False)
    op.create_index("ix_project_labor_project_id", "project_labor", ["project_id"], unique=False)
    op.create_index("ix_project_labor_labor_code_id", "project_labor", ["labor_code_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("project_labor")
    op.drop_table("project_materials")
    op.drop_table("line_item_labor")
    op.drop_table("line_item_materials")
    op.drop_table("project_line_items")
    op.drop_table("bom_projects")
