"""repair_workflow_schema

Create the repair workflow tables: repair items with group hierarchy,
options, labour / parts lines, check-result links and the audit trail.
Reference tables (organizations, health_checks, check_results,
labour_codes, suppliers, outcome_reasons) are created when absent so a
standalone database can be bootstrapped.

Revision ID: 5d1e2a7c9b10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5d1e2a7c9b10"
down_revision = None
branch_labels = None
depends_on = None


def _money(name, nullable=False, default="0"):
    if nullable:
        return sa.Column(name, sa.Numeric(10, 2), nullable=True)
    return sa.Column(name, sa.Numeric(10, 2), nullable=False, server_default=default)


def _create_reference_tables(existing):
    if "organizations" not in existing:
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.Column("vat_rate", sa.Numeric(5, 2), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    if "health_checks" not in existing:
        op.create_table(
            "health_checks",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("vehicle_reg", sa.String(length=20), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_health_checks_organization_id", "health_checks", ["organization_id"])

    if "check_results" not in existing:
        op.create_table(
            "check_results",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("health_check_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("rag_status", sa.String(length=10), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("is_mot_failure", sa.Boolean(), nullable=True, server_default=sa.false()),
            sa.ForeignKeyConstraint(["health_check_id"], ["health_checks.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_check_results_health_check_id", "check_results", ["health_check_id"])

    if "labour_codes" not in existing:
        op.create_table(
            "labour_codes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("code", sa.String(length=30), nullable=False),
            sa.Column("description", sa.String(length=200), nullable=True),
            _money("hourly_rate"),
            sa.Column("is_vat_exempt", sa.Boolean(), nullable=True, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_labour_codes_organization_id", "labour_codes", ["organization_id"])

    if "suppliers" not in existing:
        op.create_table(
            "suppliers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_suppliers_organization_id", "suppliers", ["organization_id"])

    if "outcome_reasons" not in existing:
        op.create_table(
            "outcome_reasons",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("reason_type", sa.String(length=20), nullable=False),
            sa.Column("reason", sa.String(length=200), nullable=False),
            sa.Column("is_system", sa.Boolean(), nullable=True, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.CheckConstraint("reason_type IN ('declined','deleted')", name="ck_outcome_reason_type"),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_outcome_reasons_organization_id", "outcome_reasons", ["organization_id"])


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    _create_reference_tables(existing)

    op.create_table(
        "repair_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("organization_id", sa.Integer(), nullable=False),
        sa.Column("health_check_id", sa.Integer(), nullable=False),
        sa.Column("parent_repair_item_id", sa.Integer(), nullable=True),
        sa.Column("selected_option_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_group", sa.Boolean(), nullable=False, server_default=sa.false()),
        _money("price_override", nullable=True),
        sa.Column("price_override_reason", sa.Text(), nullable=True),
        _money("labour_total"),
        _money("parts_total"),
        _money("subtotal"),
        _money("vat_amount"),
        _money("total_inc_vat"),
        sa.Column("labour_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("labour_completed_by", sa.Integer(), nullable=True),
        sa.Column("labour_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("parts_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("parts_completed_by", sa.Integer(), nullable=True),
        sa.Column("parts_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("quote_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("no_labour_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("no_labour_required_by", sa.Integer(), nullable=True),
        sa.Column("no_labour_required_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("no_parts_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("no_parts_required_by", sa.Integer(), nullable=True),
        sa.Column("no_parts_required_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("outcome_status", sa.String(length=20), nullable=True),
        sa.Column("outcome_set_by", sa.Integer(), nullable=True),
        sa.Column("outcome_set_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("outcome_source", sa.String(length=20), nullable=True),
        sa.Column("deferred_until", sa.Date(), nullable=True),
        sa.Column("deferred_notes", sa.Text(), nullable=True),
        sa.Column("declined_reason_id", sa.Integer(), nullable=True),
        sa.Column("declined_notes", sa.Text(), nullable=True),
        sa.Column("deleted_reason_id", sa.Integer(), nullable=True),
        sa.Column("deleted_notes", sa.Text(), nullable=True),
        sa.Column("customer_approved", sa.Boolean(), nullable=True),
        sa.Column("customer_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("customer_declined_reason", sa.Text(), nullable=True),
        sa.Column("work_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("labour_status IN ('pending','in_progress','complete')",
                           name="ck_repair_item_labour_status"),
        sa.CheckConstraint("parts_status IN ('pending','in_progress','complete')",
                           name="ck_repair_item_parts_status"),
        sa.CheckConstraint("quote_status IN ('pending','ready')",
                           name="ck_repair_item_quote_status"),
        sa.CheckConstraint(
            "outcome_status IS NULL OR outcome_status IN "
            "('incomplete','ready','authorised','deferred','declined','deleted')",
            name="ck_repair_item_outcome_status",
        ),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["health_check_id"], ["health_checks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_repair_item_id"], ["repair_items.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["declined_reason_id"], ["outcome_reasons.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["deleted_reason_id"], ["outcome_reasons.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_repair_items_organization_id", "repair_items", ["organization_id"])
    op.create_index("ix_repair_items_health_check_id", "repair_items", ["health_check_id"])
    op.create_index("ix_repair_items_parent_repair_item_id", "repair_items", ["parent_repair_item_id"])
    op.create_index("ix_repair_items_deleted_at", "repair_items", ["deleted_at"])
    op.create_index("ix_repair_items_hc_parent", "repair_items",
                    ["health_check_id", "parent_repair_item_id"])

    op.create_table(
        "repair_options",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("repair_item_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _money("labour_total"),
        _money("parts_total"),
        _money("subtotal"),
        _money("vat_amount"),
        _money("total_inc_vat"),
        sa.Column("is_recommended", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["repair_item_id"], ["repair_items.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_repair_options_repair_item_id", "repair_options", ["repair_item_id"])

    op.create_table(
        "repair_labour",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("repair_item_id", sa.Integer(), nullable=True),
        sa.Column("repair_option_id", sa.Integer(), nullable=True),
        sa.Column("labour_code_id", sa.Integer(), nullable=False),
        sa.Column("hours", sa.Numeric(10, 2), nullable=False),
        sa.Column("rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_vat_exempt", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("(repair_item_id IS NULL) <> (repair_option_id IS NULL)",
                           name="ck_repair_labour_single_owner"),
        sa.ForeignKeyConstraint(["repair_item_id"], ["repair_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["repair_option_id"], ["repair_options.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["labour_code_id"], ["labour_codes.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_repair_labour_repair_item_id", "repair_labour", ["repair_item_id"])
    op.create_index("ix_repair_labour_repair_option_id", "repair_labour", ["repair_option_id"])

    op.create_table(
        "repair_parts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("repair_item_id", sa.Integer(), nullable=True),
        sa.Column("repair_option_id", sa.Integer(), nullable=True),
        sa.Column("part_number", sa.String(length=100), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("quantity", sa.Numeric(10, 2), nullable=False, server_default="1"),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("supplier_name", sa.String(length=200), nullable=True),
        sa.Column("cost_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("sell_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(10, 2), nullable=False),
        sa.Column("margin_percent", sa.Numeric(7, 2), nullable=True),
        sa.Column("markup_percent", sa.Numeric(7, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("(repair_item_id IS NULL) <> (repair_option_id IS NULL)",
                           name="ck_repair_parts_single_owner"),
        sa.ForeignKeyConstraint(["repair_item_id"], ["repair_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["repair_option_id"], ["repair_options.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_repair_parts_repair_item_id", "repair_parts", ["repair_item_id"])
    op.create_index("ix_repair_parts_repair_option_id", "repair_parts", ["repair_option_id"])

    op.create_table(
        "repair_item_check_results",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("repair_item_id", sa.Integer(), nullable=False),
        sa.Column("check_result_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["repair_item_id"], ["repair_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["check_result_id"], ["check_results.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("repair_item_id", "check_result_id", name="uq_repair_item_check_result"),
    )
    op.create_index("ix_repair_item_check_results_repair_item_id",
                    "repair_item_check_results", ["repair_item_id"])
    op.create_index("ix_repair_item_check_results_check_result_id",
                    "repair_item_check_results", ["check_result_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("organization_id", sa.Integer(), nullable=True),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=60), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("diff_json", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_organization_id", "audit_logs", ["organization_id"])
    op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id"])
    op.create_index("idx_audit_action", "audit_logs", ["action"])
    op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    op.drop_table("audit_logs")
    op.drop_table("repair_item_check_results")
    op.drop_table("repair_parts")
    op.drop_table("repair_labour")
    op.drop_table("repair_options")
    op.drop_table("repair_items")
