"""Initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create initial database schema"""

    # Пользователи (владелец данных - провайдер идентификации)
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('telegram_chat_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.CheckConstraint(
            "role IN ('patient', 'pharmacist', 'driver', 'admin')", name='chk_users_role'
        ),
    )
    op.create_index('idx_users_role', 'users', ['role'], unique=False)

    # Аптеки
    op.create_table(
        'pharmacies',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('owner_id', sa.String(36), nullable=True),
        sa.Column('street', sa.String(255), nullable=False),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
    )
    op.create_index('idx_pharmacies_owner_id', 'pharmacies', ['owner_id'], unique=False)

    # Заказы
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('patient_id', sa.String(36), nullable=True),
        sa.Column('pharmacy_id', sa.String(36), nullable=False),
        sa.Column('driver_id', sa.String(36), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('delivery_street', sa.String(255), nullable=False),
        sa.Column('delivery_city', sa.String(100), nullable=False),
        sa.Column('delivery_postal_code', sa.String(20), nullable=False, server_default=''),
        sa.Column('delivery_country', sa.String(100), nullable=False, server_default=''),
        sa.Column('delivery_latitude', sa.Float(), nullable=True),
        sa.Column('delivery_longitude', sa.Float(), nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('delivery_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('estimated_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['patient_id'], ['users.id']),
        sa.ForeignKeyConstraint(['pharmacy_id'], ['pharmacies.id']),
        sa.ForeignKeyConstraint(['driver_id'], ['users.id']),
        sa.CheckConstraint(
            "status IN ('pending', 'validated', 'rejected', 'paid', 'preparing', "
            "'ready', 'in_transit', 'delivered', 'cancelled')",
            name='chk_orders_status',
        ),
        sa.CheckConstraint(
            "driver_id IS NULL OR status IN ('in_transit', 'delivered')",
            name='chk_orders_driver_status',
        ),
        sa.CheckConstraint('total >= 0', name='chk_orders_total'),
    )
    op.create_index('idx_orders_patient_id', 'orders', ['patient_id'], unique=False)
    op.create_index('idx_orders_pharmacy_id', 'orders', ['pharmacy_id'], unique=False)
    op.create_index('idx_orders_driver_id', 'orders', ['driver_id'], unique=False)
    op.create_index('idx_orders_status', 'orders', ['status'], unique=False)
    op.create_index('idx_orders_status_created', 'orders', ['status', 'created_at'], unique=False)

    # Один курьер - одна активная доставка
    op.create_index(
        'uq_orders_active_driver',
        'orders',
        ['driver_id'],
        unique=True,
        sqlite_where=sa.text("status = 'in_transit'"),
        postgresql_where=sa.text("status = 'in_transit'"),
    )

    # Журнал отслеживания
    op.create_table(
        'tracking_updates',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('order_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
    )
    op.create_index(
        'idx_tracking_order_created', 'tracking_updates', ['order_id', 'created_at'], unique=False
    )

    # Позиции курьеров
    op.create_table(
        'driver_locations',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('driver_id', sa.String(36), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('driver_id'),
        sa.ForeignKeyConstraint(['driver_id'], ['users.id']),
        sa.CheckConstraint('latitude BETWEEN -90 AND 90', name='chk_driver_locations_latitude'),
        sa.CheckConstraint(
            'longitude BETWEEN -180 AND 180', name='chk_driver_locations_longitude'
        ),
    )
    op.create_index(
        'idx_driver_locations_available', 'driver_locations', ['is_available'], unique=False
    )

    # Уведомления
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='info'),
        sa.Column('order_id', sa.String(36), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.CheckConstraint(
            "type IN ('info', 'success', 'warning', 'error')", name='chk_notifications_type'
        ),
    )
    op.create_index(
        'idx_notifications_user_id', 'notifications', ['user_id', 'is_read'], unique=False
    )


def downgrade() -> None:
    """Drop all tables"""
    op.drop_table('notifications')
    op.drop_table('driver_locations')
    op.drop_table('tracking_updates')
    op.drop_index('uq_orders_active_driver', table_name='orders')
    op.drop_table('orders')
    op.drop_table('pharmacies')
    op.drop_table('users')
