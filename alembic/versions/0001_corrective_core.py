"""corrective maintenance core tables

Revision ID: 0001_corrective_core
Revises: 
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_corrective_core"
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text("(CURRENT_TIMESTAMP)")


def upgrade() -> None:
    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sector_id", sa.Integer(), nullable=True),
        sa.Column("criticality", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
    )
    op.create_index("ix_assets_tenant_id", "assets", ["tenant_id"])

    op.create_table(
        "work_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id"), nullable=True),
        sa.Column("component_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(), nullable=False, server_default="CORRECTIVE"),
        sa.Column("origin", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="PENDING"),
        sa.Column("priority", sa.String(length=32), nullable=True),
        sa.Column("is_safety_related", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sla_due_at", sa.DateTime(), nullable=True),
        sa.Column("requires_return_to_production", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("return_to_production_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
    )
    op.create_index("ix_work_orders_tenant_id", "work_orders", ["tenant_id"])

    op.create_table(
        "failure_occurrences",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("component_id", sa.Integer(), nullable=True),
        sa.Column("subcomponent_id", sa.Integer(), nullable=True),
        sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("failure_category", sa.String(length=32), nullable=True),
        sa.Column("symptoms", sa.JSON(), nullable=True),
        sa.Column("photos", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reported_by", sa.Integer(), nullable=False),
        sa.Column("reported_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="OPEN"),
        sa.Column("priority", sa.String(length=32), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("is_safety_related", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_intermittent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_observation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("caused_downtime", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_linked_duplicate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "linked_to_occurrence_id", sa.Integer(), sa.ForeignKey("failure_occurrences.id"), nullable=True
        ),
        sa.Column("linked_by_id", sa.Integer(), nullable=True),
        sa.Column("linked_at", sa.DateTime(), nullable=True),
        sa.Column("linked_reason", sa.String(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
    )
    op.create_index("ix_failure_occurrences_tenant_id", "failure_occurrences", ["tenant_id"])
    op.create_index("ix_failure_occurrences_asset_id", "failure_occurrences", ["asset_id"])

    op.create_table(
        "downtime_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column(
            "failure_occurrence_id", sa.Integer(), sa.ForeignKey("failure_occurrences.id"), nullable=False
        ),
        sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=True),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="UNPLANNED"),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("production_impact", sa.Text(), nullable=True),
        sa.Column("return_confirmed_by_id", sa.Integer(), nullable=True),
        sa.Column("return_confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("return_notes", sa.Text(), nullable=True),
        sa.Column("total_minutes", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
    )
    op.create_index("ix_downtime_logs_tenant_id", "downtime_logs", ["tenant_id"])
    op.create_index("ix_downtime_logs_asset_id", "downtime_logs", ["asset_id"])

    op.create_table(
        "quality_assurance",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("required_reason", sa.String(length=32), nullable=True),
        sa.Column("evidence_required", sa.String(length=32), nullable=False, server_default="OPTIONAL"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="NOT_REQUIRED"),
        sa.Column("evidence_provided", sa.JSON(), nullable=True),
        sa.Column("return_to_production_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("return_confirmed_by_id", sa.Integer(), nullable=True),
        sa.Column("return_confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("verified_by_id", sa.Integer(), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.UniqueConstraint("work_order_id", name="uq_qa_work_order"),
    )
    op.create_index("ix_quality_assurance_tenant_id", "quality_assurance", ["tenant_id"])

    op.create_table(
        "solutions_applied",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column(
            "failure_occurrence_id", sa.Integer(), sa.ForeignKey("failure_occurrences.id"), nullable=False
        ),
        sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=True),
        sa.Column("diagnosis", sa.Text(), nullable=False),
        sa.Column("solution", sa.Text(), nullable=False),
        sa.Column("confirmed_cause", sa.String(), nullable=True),
        sa.Column("outcome", sa.String(length=32), nullable=False),
        sa.Column("effectiveness", sa.Integer(), nullable=True),
        sa.Column("performed_by_id", sa.Integer(), nullable=False),
        sa.Column("performed_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("actual_minutes", sa.Integer(), nullable=True),
        sa.Column("final_component_id", sa.Integer(), nullable=True),
        sa.Column("final_subcomponent_id", sa.Integer(), nullable=True),
        sa.Column("fix_type", sa.String(length=32), nullable=True),
        sa.Column("tools_used", sa.JSON(), nullable=True),
        sa.Column("spare_parts_used", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_obsolete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
    )
    op.create_index("ix_solutions_applied_tenant_id", "solutions_applied", ["tenant_id"])

    op.create_table(
        "corrective_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("duplicate_window_hours", sa.Integer(), nullable=False, server_default="48"),
        sa.Column("recurrence_window_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("downtime_qa_threshold_min", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("duplicate_similarity_threshold", sa.Integer(), nullable=False, server_default="70"),
        sa.Column("recurrence_similarity_threshold", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("sla_p1_hours", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("sla_p2_hours", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("sla_p3_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("sla_p4_hours", sa.Integer(), nullable=False, server_default="72"),
        sa.Column("require_evidence_p1", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("require_evidence_p2", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("require_evidence_p3", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "require_return_confirmation_on_downtime", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("require_return_confirmation_on_qa", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=NOW),
        sa.UniqueConstraint("tenant_id", name="uq_corrective_settings_tenant"),
    )


def downgrade() -> None:
    op.drop_table("corrective_settings")
    op.drop_index("ix_solutions_applied_tenant_id", table_name="solutions_applied")
    op.drop_table("solutions_applied")
    op.drop_index("ix_quality_assurance_tenant_id", table_name="quality_assurance")
    op.drop_table("quality_assurance")
    op.drop_index("ix_downtime_logs_asset_id", table_name="downtime_logs")
    op.drop_index("ix_downtime_logs_tenant_id", table_name="downtime_logs")
    op.drop_table("downtime_logs")
    op.drop_index("ix_failure_occurrences_asset_id", table_name="failure_occurrences")
    op.drop_index("ix_failure_occurrences_tenant_id", table_name="failure_occurrences")
    op.drop_table("failure_occurrences")
    op.drop_index("ix_work_orders_tenant_id", table_name="work_orders")
    op.drop_table("work_orders")
    op.drop_index("ix_assets_tenant_id", table_name="assets")
    op.drop_table("assets")
