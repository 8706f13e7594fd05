"""Initial schema: cooperatives, farms, activities, inventory lineage, quality.

Revision ID: 0001
Revises: (none)
Create Date: 2024-02-01

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Organisation / access ────────────────────────────────

    op.create_table(
        "cooperatives",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("province", sa.String(100), nullable=False),
        sa.Column("regency", sa.String(100), nullable=False),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("SUPER_ADMIN", "ADMIN", "OPERATOR", name="userrole"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_cooperatives",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("cooperative_id", sa.Integer(), sa.ForeignKey("cooperatives.id"), nullable=False),
        sa.Column("cooperative_role", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "cooperative_id", name="uq_user_cooperative"),
    )
    op.create_index("ix_user_cooperatives_user_id", "user_cooperatives", ["user_id"])
    op.create_index("ix_user_cooperatives_cooperative_id", "user_cooperatives", ["cooperative_id"])

    # ── Farms ────────────────────────────────────────────────

    op.create_table(
        "farmers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cooperative_id", sa.Integer(), sa.ForeignKey("cooperatives.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(20), nullable=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_farmers_cooperative_id", "farmers", ["cooperative_id"])

    op.create_table(
        "land_plots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cooperative_id", sa.Integer(), sa.ForeignKey("cooperatives.id"), nullable=False),
        sa.Column("farmer_id", sa.Integer(), sa.ForeignKey("farmers.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("area_hectares", sa.Float(), nullable=False),
        sa.Column("estimated_tree_count", sa.Integer(), nullable=False),
        sa.Column("dominant_coffee_variety", sa.String(100), nullable=False),
        sa.Column("status", sa.String(30), server_default="Produktif"),
        sa.Column("first_harvest_estimate", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_land_plots_cooperative_id", "land_plots", ["cooperative_id"])
    op.create_index("ix_land_plots_farmer_id", "land_plots", ["farmer_id"])

    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("land_plot_id", sa.Integer(), sa.ForeignKey("land_plots.id"), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("activity_date", sa.Date(), nullable=False),
        sa.Column("estimate_date", sa.Date(), nullable=True),
        sa.Column("estimated_kg", sa.Float(), nullable=True),
        sa.Column("actual_kg", sa.Float(), nullable=True),
        sa.Column("seed_variety", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("origin", sa.String(20), server_default="MANUAL"),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_activities_land_plot_id", "activities", ["land_plot_id"])
    op.create_index("ix_activities_kind", "activities", ["kind"])
    op.create_index("ix_activities_activity_date", "activities", ["activity_date"])
    op.create_index("ix_activities_status", "activities", ["status"])
    op.create_index("ix_activities_created_at", "activities", ["created_at"])

    # ── Inventory / lineage ──────────────────────────────────

    op.create_table(
        "inventory_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cooperative_id", sa.Integer(), sa.ForeignKey("cooperatives.id"), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(20), nullable=False),
        sa.Column("batch_id", sa.String(100), nullable=True),
        sa.Column("parent_batch_id", sa.String(100), nullable=True),
        sa.Column(
            "source_activity_id",
            sa.Integer(),
            sa.ForeignKey("activities.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("external_marketplace_ref", sa.String(100), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_inventory_entries_quantity_positive"),
    )
    op.create_index("ix_inventory_entries_cooperative_id", "inventory_entries", ["cooperative_id"])
    op.create_index("ix_inventory_entries_entry_date", "inventory_entries", ["entry_date"])
    op.create_index("ix_inventory_entries_batch_id", "inventory_entries", ["batch_id"])
    op.create_index("ix_inventory_entries_parent_batch_id", "inventory_entries", ["parent_batch_id"])
    op.create_index("ix_inventory_entries_created_at", "inventory_entries", ["created_at"])

    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("inventory_id", sa.Integer(), sa.ForeignKey("inventory_entries.id"), nullable=False),
        sa.Column("cooperative_id", sa.Integer(), sa.ForeignKey("cooperatives.id"), nullable=False),
        sa.Column("transaction_type", sa.String(10), nullable=False),
        sa.Column("operation", sa.String(20), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("farmer_id", sa.Integer(), sa.ForeignKey("farmers.id"), nullable=True),
        sa.Column("land_plot_id", sa.Integer(), sa.ForeignKey("land_plots.id"), nullable=True),
        sa.Column("buyer", sa.String(255), nullable=True),
        sa.Column("total_price", sa.Float(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("external_marketplace_ref", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_inventory_transactions_inventory_id", "inventory_transactions", ["inventory_id"])
    op.create_index("ix_inventory_transactions_operation", "inventory_transactions", ["operation"])

    # ── Quality ──────────────────────────────────────────────

    op.create_table(
        "quality_checkpoints",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("inventory_id", sa.Integer(), sa.ForeignKey("inventory_entries.id"), nullable=False),
        sa.Column("checkpoint_type", sa.String(20), nullable=False),
        sa.Column("checkpoint_name", sa.String(255), nullable=False),
        sa.Column("checkpoint_date", sa.Date(), nullable=False),
        sa.Column("quality_score", sa.Float(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("test_results", sa.Text(), nullable=True),
        sa.Column("defects_found", sa.Text(), nullable=True),
        sa.Column("recommendations", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("inspector_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_quality_checkpoints_inventory_id", "quality_checkpoints", ["inventory_id"])
    op.create_index("ix_quality_checkpoints_checkpoint_type", "quality_checkpoints", ["checkpoint_type"])

    # ── Audit ────────────────────────────────────────────────

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("user_name", sa.String(255), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(100), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("quality_checkpoints")
    op.drop_table("inventory_transactions")
    op.drop_table("inventory_entries")
    op.drop_table("activities")
    op.drop_table("land_plots")
    op.drop_table("farmers")
    op.drop_table("user_cooperatives")
    op.drop_table("users")
    op.drop_table("cooperatives")
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
