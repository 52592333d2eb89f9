"""initial_inspection_schema

Revision ID: 3b91c0d47e2a
Revises:
Create Date: 2026-10-19 10:12:41.118305

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3b91c0d47e2a"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "businesses",
        sa.Column("name", sa.String(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "users",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.Enum("ADMIN", "STAFF", name="approle"), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "role", name="uq_user_role"),
    )
    op.create_table(
        "inspectors",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "INACTIVE", name="inspectorstatus"),
            nullable=False,
        ),
        *_base_columns(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_table(
        "inspection_jobs",
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("assigned_to", sa.Uuid(), nullable=False),
        sa.Column("reg", sa.String(), nullable=False),
        sa.Column("make", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("vin", sa.String(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("mileage", sa.Integer(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("fuel_type", sa.String(), nullable=True),
        sa.Column("transmission", sa.String(), nullable=True),
        sa.Column("purchase_price", sa.Float(), nullable=True),
        sa.Column("seller_address", sa.String(), nullable=True),
        sa.Column(
            "priority", sa.Enum("LOW", "MEDIUM", "HIGH", name="priority"), nullable=False
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("deadline", sa.DateTime(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("NOT_STARTED", "IN_PROGRESS", "SUBMITTED", name="jobstatus"),
            nullable=False,
        ),
        sa.Column(
            "review_status",
            sa.Enum("PENDING", "APPROVED", "REJECTED", name="reviewstatus"),
            nullable=True,
        ),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("reviewed_by", sa.Uuid(), nullable=True),
        sa.Column(
            "negotiation_status",
            sa.Enum(
                "NOT_STARTED",
                "PENDING_ADMIN",
                "PENDING_USER",
                "AGREED",
                "DECLINED",
                name="negotiationstatus",
            ),
            nullable=False,
        ),
        sa.Column("final_agreed_price", sa.Float(), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(["assigned_to"], ["inspectors.id"]),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
        sa.ForeignKeyConstraint(["reviewed_by"], ["inspectors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "inspection_steps",
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("section", sa.String(), nullable=False),
        sa.Column("section_order", sa.Integer(), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("photo_url", sa.String(), nullable=True),
        sa.Column("items", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
        sa.ForeignKeyConstraint(["job_id"], ["inspection_jobs.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "inspection_faults",
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("media_url", sa.String(), nullable=True),
        sa.Column("flagged_for_repair", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
        sa.ForeignKeyConstraint(["job_id"], ["inspection_jobs.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "inspection_media",
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("step_id", sa.Uuid(), nullable=True),
        sa.Column("section", sa.String(), nullable=False),
        sa.Column(
            "media_type", sa.Enum("PHOTO", "VIDEO", name="mediatype"), nullable=False
        ),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("caption", sa.String(), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
        sa.ForeignKeyConstraint(["job_id"], ["inspection_jobs.id"]),
        sa.ForeignKeyConstraint(["step_id"], ["inspection_steps.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "negotiation_offers",
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("business_id", sa.Uuid(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column(
            "offered_by", sa.Enum("ADMIN", "INSPECTOR", name="party"), nullable=False
        ),
        sa.Column("offered_by_user_id", sa.Uuid(), nullable=False),
        sa.Column(
            "offer_type",
            sa.Enum("INITIAL", "COUNTER_ADMIN", "COUNTER_USER", name="offertype"),
            nullable=False,
        ),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("PENDING", "ACCEPTED", "DECLINED", "SUPERSEDED", name="offerstatus"),
            nullable=False,
        ),
        *_base_columns(),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"]),
        sa.ForeignKeyConstraint(["job_id"], ["inspection_jobs.id"]),
        sa.ForeignKeyConstraint(["offered_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("job_id", "sequence", name="uq_offer_job_sequence"),
    )
    op.create_table(
        "fcm_tokens",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token"),
    )
    op.create_table(
        "user_push_tokens",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column(
            "platform", sa.Enum("WEB", "ANDROID", "IOS", name="platform"), nullable=False
        ),
        *_base_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("user_push_tokens")
    op.drop_table("fcm_tokens")
    op.drop_table("negotiation_offers")
    op.drop_table("inspection_media")
    op.drop_table("inspection_faults")
    op.drop_table("inspection_steps")
    op.drop_table("inspection_jobs")
    op.drop_table("inspectors")
    op.drop_table("user_roles")
    op.drop_table("users")
    op.drop_table("businesses")
    for enum_name in (
        "platform",
        "offerstatus",
        "offertype",
        "party",
        "mediatype",
        "negotiationstatus",
        "reviewstatus",
        "jobstatus",
        "priority",
        "inspectorstatus",
        "approle",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
