"""Create tenants, customdomains and auditlogs

Revision ID: d1_custom_domains
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "d1_custom_domains"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("slug", sa.String(63), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("plan", sa.String(), server_default="trial"),
        sa.Column("status", sa.String(), server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("custom_domain", sa.String(255), nullable=True),
        sa.Column("custom_domain_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("custom_domain_ssl_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.UniqueConstraint("custom_domain", name="uq_tenants_custom_domain"),
    )
    op.create_index("ix_tenants_id", "tenants", ["id"])
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)
    op.create_index("ix_tenants_name", "tenants", ["name"])

    op.create_table(
        "customdomains",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id", UUID(as_uuid=True),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("domain_name", sa.String(253), nullable=False),
        sa.Column("subdomain_label", sa.String(63), nullable=True),
        sa.Column("full_domain", sa.String(253), nullable=False),
        sa.Column("verification_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("verification_token", sa.String(64), nullable=False),
        sa.Column("verification_method", sa.String(16), nullable=False, server_default="dns_txt"),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("ssl_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("ssl_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ssl_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dns_configured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("dns_target", sa.String(255), nullable=False),
        sa.Column("dns_instructions", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("redirect_to_https", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("redirect_www", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("metadata", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_customdomains_id", "customdomains", ["id"])
    op.create_index("ix_customdomains_tenant_id", "customdomains", ["tenant_id"])
    op.create_index("uq_customdomains_full_domain", "customdomains", ["full_domain"], unique=True)
    op.create_index(
        "uq_customdomains_tenant_primary", "customdomains", ["tenant_id"],
        unique=True, postgresql_where=sa.text("is_primary AND is_active"),
    )
    op.create_index("ix_customdomains_verification_status", "customdomains", ["verification_status"])

    op.create_table(
        "auditlogs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id", UUID(as_uuid=True),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("actor", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("target_type", sa.String(), nullable=True),
        sa.Column("target_id", sa.String(), nullable=True),
        sa.Column("detail_json", JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_auditlogs_id", "auditlogs", ["id"])
    op.create_index("ix_auditlogs_tenant_id", "auditlogs", ["tenant_id"])
    op.create_index("ix_auditlogs_action", "auditlogs", ["action"])


def downgrade() -> None:
    op.drop_table("auditlogs")
    op.drop_index("ix_customdomains_verification_status", table_name="customdomains")
    op.drop_index("uq_customdomains_tenant_primary", table_name="customdomains")
    op.drop_index("uq_customdomains_full_domain", table_name="customdomains")
    op.drop_table("customdomains")
    op.drop_table("tenants")
