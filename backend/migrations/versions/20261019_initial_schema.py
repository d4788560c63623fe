"""initial schema: companies, identities, profiles, products, messages, provisioning

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "companies",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("owner_uid", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_companies_owner_uid", "companies", ["owner_uid"], unique=False)

    op.create_table(
        "identities",
        sa.Column("uid", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("uid"),
    )
    op.create_index("ix_identities_email", "identities", ["email"], unique=True)

    op.create_table(
        "profiles",
        sa.Column("uid", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("company_id", sa.String(length=32), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("role IN ('admin', 'worker')", name="ck_profiles_role"),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], name=op.f("fk_profiles_company_id_companies")),
        sa.PrimaryKeyConstraint("uid"),
    )
    op.create_index("ix_profiles_company_id", "profiles", ["company_id"], unique=False)
    op.create_index("ix_profiles_created_by", "profiles", ["created_by"], unique=False)
    op.create_index("ix_profiles_company_role", "profiles", ["company_id", "role"], unique=False)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("uid", sa.String(length=32), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(["uid"], ["identities.uid"], name=op.f("fk_session_tokens_uid_identities"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_session_tokens_uid", "session_tokens", ["uid"], unique=False)
    op.create_index("ix_session_tokens_token_hash", "session_tokens", ["token_hash"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("company_id", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("qty_uploaded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("qty_current", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("qty_sold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="sold"),
        sa.Column("last_sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sold_by_uid", sa.String(length=32), nullable=True),
        sa.Column("last_sold_by_name", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("qty_current >= 0", name="ck_products_qty_current_nonneg"),
        sa.CheckConstraint("qty_uploaded >= qty_current", name="ck_products_uploaded_gte_current"),
        sa.CheckConstraint("qty_sold = qty_uploaded - qty_current", name="ck_products_sold_balance"),
        sa.CheckConstraint("price >= 0", name="ck_products_price_nonneg"),
        sa.CheckConstraint(
            "(status = 'sold' AND qty_current = 0) OR (status = 'available' AND qty_current > 0)",
            name="ck_products_status_matches_qty",
        ),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], name=op.f("fk_products_company_id_companies")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_company_id", "products", ["company_id"], unique=False)
    op.create_index("ix_products_company_updated", "products", ["company_id", "updated_at"], unique=False)

    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("company_id", sa.String(length=32), nullable=False),
        sa.Column("from_uid", sa.String(length=32), nullable=False),
        sa.Column("from_name", sa.String(length=255), nullable=False),
        sa.Column("from_email", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], name=op.f("fk_messages_company_id_companies")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_company_id", "messages", ["company_id"], unique=False)
    op.create_index("ix_messages_company_created", "messages", ["company_id", "created_at"], unique=False)

    op.create_table(
        "security_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.String(length=32), nullable=True),
        sa.Column("uid", sa.String(length=32), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("resource", sa.String(length=128), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_security_events_company_id", "security_events", ["company_id"], unique=False)
    op.create_index("ix_security_events_uid", "security_events", ["uid"], unique=False)
    op.create_index("ix_security_events_event_type", "security_events", ["event_type"], unique=False)
    op.create_index("ix_security_events_success", "security_events", ["success"], unique=False)
    op.create_index("ix_security_events_occurred_at", "security_events", ["occurred_at"], unique=False)
    op.create_index("ix_security_events_uid_type", "security_events", ["uid", "event_type"], unique=False)
    op.create_index("ix_security_events_company_occurred", "security_events", ["company_id", "occurred_at"], unique=False)

    op.create_table(
        "provisioning_operations",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("company_id", sa.String(length=32), nullable=False),
        sa.Column("actor_uid", sa.String(length=32), nullable=False),
        sa.Column("worker_uid", sa.String(length=32), nullable=True),
        sa.Column("worker_email", sa.String(length=255), nullable=True),
        sa.Column("identity_was_disabled", sa.Boolean(), nullable=True),
        sa.Column("state", sa.String(length=32), nullable=False, server_default="STARTED"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_provisioning_operations_company_id", "provisioning_operations", ["company_id"], unique=False)
    op.create_index("ix_provisioning_operations_worker_uid", "provisioning_operations", ["worker_uid"], unique=False)
    op.create_index("ix_provisioning_operations_state", "provisioning_operations", ["state"], unique=False)


def downgrade():
    op.drop_table("provisioning_operations")
    op.drop_table("security_events")
    op.drop_table("messages")
    op.drop_table("products")
    op.drop_table("session_tokens")
    op.drop_table("profiles")
    op.drop_table("identities")
    op.drop_table("companies")
