"""add rules parameters skus

Revision ID: 8f2c47d1b5e9
Revises: 3b8e1d6a90c4
Create Date: 2026-10-05 09:40:17.558120

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '8f2c47d1b5e9'
down_revision: Union[str, Sequence[str], None] = '3b8e1d6a90c4'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "formula_parameters",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_type_id", sa.Integer(), nullable=True),
        sa.Column("product_style_id", sa.Integer(), nullable=True),
        sa.Column("component_id", sa.Integer(), nullable=True),
        sa.Column("parameter_key", sa.String(), nullable=False),
        sa.Column("parameter_value", sa.Numeric(12, 4), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        # "<type>|<style>|<component>" with "*" for NULL
        sa.Column("scope_key", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["product_type_id"], ["product_types.id"]),
        sa.ForeignKeyConstraint(["product_style_id"], ["product_styles.id"]),
        sa.ForeignKeyConstraint(["component_id"], ["component_definitions.id"]),
        sa.UniqueConstraint("scope_key", "parameter_key", name="uq_formula_parameters_scope_key"),
    )
    op.create_index("ix_formula_parameters_id", "formula_parameters", ["id"], unique=False)
    op.create_index("ix_formula_parameters_product_type_id", "formula_parameters", ["product_type_id"], unique=False)
    op.create_index("ix_formula_parameters_product_style_id", "formula_parameters", ["product_style_id"], unique=False)
    op.create_index("ix_formula_parameters_component_id", "formula_parameters", ["component_id"], unique=False)

    op.create_table(
        "product_rules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_type_id", sa.Integer(), nullable=True),
        sa.Column("product_style_id", sa.Integer(), nullable=True),
        sa.Column("rule_type", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("plain_english", sa.Text(), nullable=True),
        sa.Column("condition_json", JSON_DOCUMENT, nullable=False),
        sa.Column("action_json", JSON_DOCUMENT, nullable=False),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["product_type_id"], ["product_types.id"]),
        sa.ForeignKeyConstraint(["product_style_id"], ["product_styles.id"]),
        sa.CheckConstraint(
            "rule_type IN ('constraint', 'material_match', 'conditional_component', 'derived_value')",
            name="ck_product_rules_rule_type",
        ),
    )
    op.create_index("ix_product_rules_id", "product_rules", ["id"], unique=False)
    op.create_index("ix_product_rules_product_type_id", "product_rules", ["product_type_id"], unique=False)
    op.create_index("ix_product_rules_product_style_id", "product_rules", ["product_style_id"], unique=False)
    op.create_index("ix_product_rules_is_active", "product_rules", ["is_active"], unique=False)

    op.create_table(
        "product_labor_rules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_type_id", sa.Integer(), nullable=False),
        sa.Column("product_style_id", sa.Integer(), nullable=True),
        sa.Column("labor_code_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("condition_json", JSON_DOCUMENT, nullable=False),
        sa.Column("quantity_formula", sa.String(), nullable=False, server_default="net_length"),
        sa.Column("is_base_labor", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["product_type_id"], ["product_types.id"]),
        sa.ForeignKeyConstraint(["product_style_id"], ["product_styles.id"]),
        sa.ForeignKeyConstraint(["labor_code_id"], ["labor_codes.id"]),
        sa.CheckConstraint(
            "quantity_formula IN ('net_length', 'gates', 'posts')",
            name="ck_product_labor_rules_quantity_formula",
        ),
    )
    op.create_index("ix_product_labor_rules_id", "product_labor_rules", ["id"], unique=False)
    op.create_index("ix_product_labor_rules_product_type_id", "product_labor_rules", ["product_type_id"], unique=False)
    op.create_index(
        "ix_product_labor_rules_product_style_id", "product_labor_rules", ["product_style_id"], unique=False
    )
    op.create_index("ix_product_labor_rules_labor_code_id", "product_labor_rules", ["labor_code_id"], unique=False)
    op.create_index("ix_product_labor_rules_is_active", "product_labor_rules", ["is_active"], unique=False)

    op.create_table(
        "product_skus",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("sku_code", sa.String(), nullable=False),
        sa.Column("sku_name", sa.String(), nullable=False),
        sa.Column("product_type_id", sa.Integer(), nullable=False),
        sa.Column("product_style_id", sa.Integer(), nullable=False),
        sa.Column("height", sa.Integer(), nullable=False),
        sa.Column("post_type", sa.String(), nullable=False),
        sa.Column("post_spacing", sa.Numeric(10, 2), nullable=True),
        sa.Column("config_json", JSON_DOCUMENT, nullable=False),
        sa.Column("standard_material_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("standard_labor_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("standard_cost_per_foot", sa.Numeric(12, 2), nullable=True),
        sa.Column("standard_cost_calculated_at", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.ForeignKeyConstraint(["product_type_id"], ["product_types.id"]),
        sa.ForeignKeyConstraint(["product_style_id"], ["product_styles.id"]),
        sa.UniqueConstraint("sku_code", name="uq_product_skus_sku_code"),
        sa.CheckConstraint("post_type IN ('WOOD', 'STEEL')", name="ck_product_skus_post_type"),
    )
    op.create_index("ix_product_skus_id", "product_skus", ["id"], unique=False)
    op.create_index("ix_product_skus_product_type_id", "product_skus", ["product_type_id"], unique=False)
    op.create_index("ix_product_skus_product_style_id", "product_skus", ["product_style_id"], unique=False)

    op.create_table(
        "sku_components",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("sku_id", sa.Integer(), nullable=False),
        sa.Column("component_id", sa.Integer(), nullable=False),
        sa.Column("material_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sku_id"], ["product_skus.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["component_id"], ["component_definitions.id"]),
        sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
        sa.UniqueConstraint("sku_id", "component_id", name="uq_sku_components_sku_component"),
    )
    op.create_index("ix_sku_components_id", "sku_components", ["id"], unique=False)
    op.create_index("ix_sku_components_sku_id", "sku_components", ["sku_id"], unique=False)
    op.create_index("ix_sku_components_material_id", "sku_components", ["material_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("sku_components")
    op.drop_table("product_skus")
    op.drop_table("product_labor_rules")
    op.drop_table("product_rules")
    op.drop_table("formula_parameters")
