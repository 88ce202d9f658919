"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "businesses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("phone", sa.Text()),
        sa.Column("city", sa.Text()),
        sa.Column("state", sa.Text()),
        sa.Column("service_area", postgresql.JSONB()),
        sa.Column("primary_category", sa.Text()),
        sa.Column("seo_title", sa.Text()),
        sa.Column("seo_description", sa.Text()),
        sa.Column("og_image_url", sa.Text()),
        sa.Column("facebook_url", sa.Text()),
        sa.Column("google_maps_url", sa.Text()),
        sa.Column("brand_color", sa.Text()),
        sa.Column("final_title", sa.Text()),
        sa.Column("final_description", sa.Text()),
        sa.Column("final_canonical_url", sa.Text()),
        sa.Column("final_og_image", sa.Text()),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("businesses_published_idx", "businesses", ["is_published"])

    op.create_table(
        "business_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("business_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default=sa.text("'admin'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "business_id", name="business_members_user_business_uidx"),
    )
    op.create_index("business_members_business_idx", "business_members", ["business_id"])

    op.create_table(
        "small_business_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("business_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("businesses.id", ondelete="CASCADE"), unique=True),
        sa.Column("auth_id", sa.Text()),
        sa.Column("username", sa.Text(), nullable=False, unique=True),
        sa.Column("business_name", sa.Text()),
        sa.Column("seo_business_name", sa.Text()),
        sa.Column("owner_name", sa.Text()),
        sa.Column("email", sa.Text()),
        sa.Column("phone", sa.Text()),
        sa.Column("address", sa.Text()),
        sa.Column("website", sa.Text()),
        sa.Column("google_place_id", sa.Text()),
        sa.Column("primary_category", sa.Text()),
        sa.Column("logo_url", sa.Text()),
        sa.Column("hero_headline", sa.Text()),
        sa.Column("hero_tagline", sa.Text()),
        sa.Column("about", sa.Text()),
        sa.Column("why_choose_us", sa.Text()),
        sa.Column("services_intro", sa.Text()),
        sa.Column("seo_title", sa.Text()),
        sa.Column("seo_description", sa.Text()),
        sa.Column("services", postgresql.JSONB()),
        sa.Column("faqs", postgresql.JSONB()),
        sa.Column("trust_badges", postgresql.JSONB()),
        sa.Column("testimonials", postgresql.JSONB()),
        sa.Column("attachments", postgresql.JSONB()),
        sa.Column("service_area", postgresql.JSONB()),
        sa.Column("town_sections", postgresql.JSONB()),
        sa.Column("images", postgresql.JSONB()),
        sa.Column("primary_cta_label", sa.Text()),
        sa.Column("primary_cta_type", sa.Text()),
        sa.Column("primary_cta_value", sa.Text()),
        sa.Column("is_open_now", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("accepting_clients", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("offers_emergency", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("stripe_customer_id", sa.Text()),
        sa.Column("subscription_status", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("small_business_profiles_email_idx", "small_business_profiles", ["email"])
    op.create_index("small_business_profiles_auth_idx", "small_business_profiles", ["auth_id"])
    op.create_index("small_business_profiles_customer_idx", "small_business_profiles", ["stripe_customer_id"])

    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("username", sa.Text(), nullable=False, unique=True),
        sa.Column("type", sa.Text()),
        sa.Column("profile_image", sa.Text()),
        sa.Column("display_name", sa.Text()),
        sa.Column("headline", sa.Text()),
        sa.Column("summary", sa.Text()),
        sa.Column("expertise", postgresql.JSONB()),
        sa.Column("timeline", postgresql.JSONB()),
        sa.Column("contact", postgresql.JSONB()),
        sa.Column("social", postgresql.JSONB()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )


def downgrade():
    op.drop_table("profiles")
    op.drop_index("small_business_profiles_customer_idx", table_name="small_business_profiles")
    op.drop_index("small_business_profiles_auth_idx", table_name="small_business_profiles")
    op.drop_index("small_business_profiles_email_idx", table_name="small_business_profiles")
    op.drop_table("small_business_profiles")
    op.drop_index("business_members_business_idx", table_name="business_members")
    op.drop_table("business_members")
    op.drop_index("businesses_published_idx", table_name="businesses")
    op.drop_table("businesses")
