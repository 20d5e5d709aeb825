"""Create users table.

Revision ID: 001_create_users_table
Revises:
Create Date: 2026-10-18

Local identity records for bulk-provisioned accounts. Email is the
identity key; department and specialization ids reference remote
services and carry no foreign keys.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001_create_users_table"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users table."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "email",
            sa.String(255),
            nullable=False,
            comment="Login email, trimmed and lower-cased",
        ),
        sa.Column("fullname", sa.String(200), nullable=False),
        sa.Column(
            "role",
            sa.String(20),
            nullable=False,
            comment="ADMINISTRATOR, CLINICIAN, NURSE or PATIENT",
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            comment="ACTIVE, INACTIVE or PENDING",
        ),
        sa.Column("credential_digest", sa.String(255), nullable=False),
        sa.Column("department_id", sa.String(64), nullable=True),
        sa.Column("specialization_id", sa.String(64), nullable=True),
        sa.Column("license_number", sa.String(50), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_status", "users", ["status"])
    op.create_index("ix_users_role_status", "users", ["role", "status"])


def downgrade() -> None:
    """Drop users table."""
    op.drop_index("ix_users_role_status", table_name="users")
    op.drop_index("ix_users_status", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
