"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates:
- programs and the company resources (hotels, drivers, boats, guides, restaurants)
- agents, agent_staff, agent_pricing
- bookings
- boat_assignment_locks: one row per (company, date, boat)
- invoices, invoice_items
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _resource_columns():
    return [
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('status', sa.String(20), server_default='active'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # ==================
    # Catalogue and resources
    # ==================
    op.create_table(
        'programs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('nickname', sa.String(50), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('pricing_type', sa.String(20), nullable=False, server_default='flat'),
        sa.Column('base_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('adult_selling_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('child_selling_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('default_pickup_time', sa.String(8), nullable=True),
        sa.Column('status', sa.String(20), server_default='active'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        'hotels',
        *_resource_columns(),
        sa.Column('area', sa.String(100), nullable=True),
    )
    op.create_table(
        'drivers',
        *_resource_columns(),
        sa.Column('nickname', sa.String(50), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
    )
    op.create_table(
        'boats',
        *_resource_columns(),
        sa.Column('captain_name', sa.String(200), nullable=True),
        sa.Column('capacity', sa.Integer, server_default='0'),
    )
    op.create_table(
        'guides',
        *_resource_columns(),
        sa.Column('nickname', sa.String(50), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('languages', sa.String(200), nullable=True),
    )
    op.create_table(
        'restaurants',
        *_resource_columns(),
        sa.Column('location', sa.String(255), nullable=True),
    )

    # ==================
    # Agents
    # ==================
    op.create_table(
        'agents',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('unique_code', sa.String(50), nullable=True),
        sa.Column('agent_type', sa.String(20), nullable=False, server_default='partner'),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), server_default='active'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_table(
        'agent_staff',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('agent_id', sa.String(36), sa.ForeignKey('agents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('full_name', sa.String(200), nullable=False),
        sa.Column('nickname', sa.String(50), nullable=True),
    )
    op.create_table(
        'agent_pricing',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('agent_id', sa.String(36), sa.ForeignKey('agents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('program_id', sa.String(36), sa.ForeignKey('programs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('selling_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('agent_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('adult_agent_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('child_agent_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('agent_id', 'program_id', name='uq_agent_pricing_agent_program'),
    )

    # ==================
    # Bookings
    # ==================
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False, index=True),
        sa.Column('booking_number', sa.String(50), nullable=True),
        sa.Column('voucher_number', sa.String(50), nullable=True),
        sa.Column('program_id', sa.String(36), sa.ForeignKey('programs.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('agent_id', sa.String(36), sa.ForeignKey('agents.id', ondelete='SET NULL'), nullable=True),
        sa.Column('agent_staff_id', sa.String(36), sa.ForeignKey('agent_staff.id', ondelete='SET NULL'), nullable=True),
        sa.Column('hotel_id', sa.String(36), sa.ForeignKey('hotels.id', ondelete='SET NULL'), nullable=True),
        sa.Column('driver_id', sa.String(36), sa.ForeignKey('drivers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('boat_id', sa.String(36), sa.ForeignKey('boats.id', ondelete='SET NULL'), nullable=True),
        sa.Column('guide_id', sa.String(36), sa.ForeignKey('guides.id', ondelete='SET NULL'), nullable=True),
        sa.Column('restaurant_id', sa.String(36), sa.ForeignKey('restaurants.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(30), nullable=True),
        sa.Column('activity_date', sa.Date, nullable=False),
        sa.Column('adults', sa.Integer, nullable=False, server_default='0'),
        sa.Column('children', sa.Integer, nullable=False, server_default='0'),
        sa.Column('infants', sa.Integer, nullable=False, server_default='0'),
        sa.Column('pickup_time', sa.String(8), nullable=True),
        sa.Column('custom_pickup_location', sa.String(255), nullable=True),
        sa.Column('room_number', sa.String(20), nullable=True),
        sa.Column('collect_money', sa.Numeric(10, 2), server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('payment_type', sa.String(20), nullable=False, server_default='regular'),
        sa.Column('is_direct_booking', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime, nullable=True, index=True),
    )
    op.create_index('ix_booking_company_activity_date', 'bookings', ['company_id', 'activity_date'])
    op.create_index('ix_booking_boat_activity_date', 'bookings', ['boat_id', 'activity_date'])

    # ==================
    # Boat locks
    # ==================
    op.create_table(
        'boat_assignment_locks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False),
        sa.Column('activity_date', sa.Date, nullable=False),
        sa.Column('boat_id', sa.String(36), sa.ForeignKey('boats.id', ondelete='CASCADE'), nullable=False),
        sa.Column('program_id', sa.String(36), sa.ForeignKey('programs.id', ondelete='SET NULL'), nullable=True),
        sa.Column('guide_id', sa.String(36), sa.ForeignKey('guides.id', ondelete='SET NULL'), nullable=True),
        sa.Column('restaurant_id', sa.String(36), sa.ForeignKey('restaurants.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_locked', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('locked_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('company_id', 'activity_date', 'boat_id', name='uq_boat_lock_company_date_boat'),
    )
    op.create_index('ix_boat_lock_guide_date', 'boat_assignment_locks', ['guide_id', 'activity_date'])

    # ==================
    # Invoicing
    # ==================
    op.create_table(
        'invoices',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('company_id', sa.String(36), nullable=False, index=True),
        sa.Column('agent_id', sa.String(36), sa.ForeignKey('agents.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('invoice_number', sa.String(30), nullable=False),
        sa.Column('date_from', sa.Date, nullable=True),
        sa.Column('date_to', sa.Date, nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('due_date', sa.Date, nullable=True),
        sa.Column('due_days', sa.Integer, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('sent_at', sa.DateTime, nullable=True),
        sa.Column('paid_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('company_id', 'invoice_number', name='uq_invoice_company_number'),
    )
    op.create_table(
        'invoice_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('invoice_id', sa.String(36), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('booking_id', sa.String(36), sa.ForeignKey('bookings.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), server_default='0'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint('invoice_id', 'booking_id', name='uq_invoice_item_invoice_booking'),
    )
    op.create_index('ix_invoice_item_booking', 'invoice_items', ['booking_id'])


def downgrade() -> None:
    op.drop_index('ix_invoice_item_booking', table_name='invoice_items')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_index('ix_boat_lock_guide_date', table_name='boat_assignment_locks')
    op.drop_table('boat_assignment_locks')
    op.drop_index('ix_booking_boat_activity_date', table_name='bookings')
    op.drop_index('ix_booking_company_activity_date', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('agent_pricing')
    op.drop_table('agent_staff')
    op.drop_table('agents')
    for table in ('restaurants', 'guides', 'boats', 'drivers', 'hotels', 'programs'):
        op.drop_table(table)
