# alembic/versions/0001_initial_schema.py
import sqlalchemy as sa

from alembic import op

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

ORDER_STATUS = ("pending", "verifying", "approved", "done", "cancelled")
PRICING_BASIS = ("area", "unit")


def upgrade():
    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("is_whitelisted", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("created_by_admin_id", sa.String(64)),
        sa.PrimaryKeyConstraint("id", name="pk__vendors"),
        sa.UniqueConstraint("name", name="uq__vendors__name"),
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32)),
        sa.Column("vendor_name", sa.String(128)),
        sa.Column("is_approved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("approved_at", sa.DateTime),
        sa.Column("approved_by", sa.String(64)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk__clients"),
        sa.UniqueConstraint("email", name="uq__clients__email"),
    )
    op.create_index("ix__clients__vendor_name", "clients", ["vendor_name"])

    op.create_table(
        "client_orders",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("client_id", sa.Integer, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("product_type", sa.String(64), nullable=False),
        sa.Column("material", sa.String(128), nullable=False),
        sa.Column("width_cm", sa.Numeric(12, 2)),
        sa.Column("height_cm", sa.Numeric(12, 2)),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("design_files", sa.JSON, nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 4), nullable=False, server_default="0"),
        sa.Column("pricing_basis", sa.Enum(*PRICING_BASIS, name="pricing_basis"), nullable=False),
        sa.Column("amount_subtotal", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("tax_rate", sa.Numeric(6, 4), nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("amount_total", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(8), nullable=False, server_default="IDR"),
        sa.Column("vendor_whitelisted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("payment_required", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("payment_deadline", sa.DateTime),
        sa.Column("payment_url", sa.String(512)),
        sa.Column("paid_at", sa.DateTime),
        sa.Column("status", sa.Enum(*ORDER_STATUS, name="order_status"), nullable=False, server_default="pending"),
        sa.Column("approved_at", sa.DateTime),
        sa.Column("approved_by", sa.String(64)),
        sa.Column("completed_at", sa.DateTime),
        sa.Column("completed_by", sa.String(64)),
        sa.Column("cancelled_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk__client_orders"),
        sa.ForeignKeyConstraint(
            ["client_id"],
            ["clients.id"],
            name="fk__client_orders__client_id__clients",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint("quantity >= 1", name="ck__client_orders__quantity_positive"),
    )
    op.create_index("ix__client_orders__client_created", "client_orders", ["client_id", "created_at"])
    op.create_index("ix__client_orders__status", "client_orders", ["status"])
    op.create_index("ix__client_orders__status_deadline", "client_orders", ["status", "payment_deadline"])


def downgrade():
    op.drop_index("ix__client_orders__status_deadline", table_name="client_orders")
    op.drop_index("ix__client_orders__status", table_name="client_orders")
    op.drop_index("ix__client_orders__client_created", table_name="client_orders")
    op.drop_table("client_orders")
    op.drop_index("ix__clients__vendor_name", table_name="clients")
    op.drop_table("clients")
    op.drop_table("vendors")
    sa.Enum(name="order_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="pricing_basis").drop(op.get_bind(), checkfirst=True)
