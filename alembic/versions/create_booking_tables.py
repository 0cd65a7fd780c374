"""Create users and bookings tables

Revision ID: create_booking_tables
Revises: 
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'create_booking_tables'
down_revision = None
depends_on = None


def upgrade():
    """Tablas de usuarios y reservas con el índice parcial de una reserva activa por día."""
    user_role = sa.Enum('ADMIN', 'USER', name='user_role')
    booking_status = sa.Enum('CONFIRMED', 'CANCELLED', 'COMPLETED', name='booking_status')

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('weekly_booking_limit', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'weekly_booking_limit >= 1 AND weekly_booking_limit <= 10',
            name='check_weekly_booking_limit_range'
        ),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('status', booking_status, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('end_time > start_time', name='check_booking_end_after_start'),
    )
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'], unique=False)
    op.create_index('ix_bookings_start_time', 'bookings', ['start_time'], unique=False)
    op.create_index('ix_bookings_end_time', 'bookings', ['end_time'], unique=False)
    op.create_index('ix_bookings_status', 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_user_start', 'bookings', ['user_id', 'start_time'], unique=False)

    # Una sola reserva no cancelada por usuario y día
    op.create_index(
        'uq_bookings_user_active_day',
        'bookings',
        ['user_id', 'booking_date'],
        unique=True,
        postgresql_where=sa.text("status <> 'CANCELLED'")
    )


def downgrade():
    op.drop_index('uq_bookings_user_active_day', table_name='bookings')
    op.drop_index('ix_bookings_user_start', table_name='bookings')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_end_time', table_name='bookings')
    op.drop_index('ix_bookings_start_time', table_name='bookings')
    op.drop_index('ix_bookings_user_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    sa.Enum(name='booking_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='user_role').drop(op.get_bind(), checkfirst=True)
