"""initial_schema

Revision ID: 4f1c2a9e7b30
Revises:
Create Date: 2026-10-19 10:12:44.118402

Creates users, artist_profiles, designs, bookings and reviews.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1c2a9e7b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum('CLIENT', 'ARTIST', 'ADMIN', name='user_role')
consultation_type = sa.Enum('VIRTUAL', 'IN_PERSON', 'ON_SITE', name='consultation_type')
booking_status = sa.Enum('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED', name='booking_status')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('avatar', sa.String(length=1024), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'artist_profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('bio', sa.String(length=2000), nullable=True),
        sa.Column('specialties', sa.JSON(), nullable=False),
        sa.Column('experience', sa.Integer(), nullable=False),
        sa.Column('portfolio', sa.JSON(), nullable=False, comment='Ordered image references'),
        sa.Column('available', sa.Boolean(), nullable=False),
        sa.Column('rating', sa.Float(), nullable=False),
        sa.Column('review_count', sa.Integer(), nullable=False),
        sa.CheckConstraint('rating >= 0 AND rating <= 5', name='artist_rating_range'),
        sa.CheckConstraint('review_count >= 0', name='artist_review_count_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_artist_profiles_user_id', 'artist_profiles', ['user_id'], unique=True)
    op.create_index('ix_artist_profiles_available', 'artist_profiles', ['available'])

    op.create_table(
        'designs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('style_name', sa.String(length=255), nullable=True),
        sa.Column('generated_image_url', sa.String(length=1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_designs_user_id', 'designs', ['user_id'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('artist_id', sa.Uuid(), nullable=True),
        sa.Column('design_id', sa.Uuid(), nullable=True),
        sa.Column('consultation_type', consultation_type, nullable=False),
        sa.Column('status', booking_status, nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('scheduled_time', sa.String(length=16), nullable=False),
        sa.Column('event_date', sa.Date(), nullable=True),
        sa.Column('confirmation_code', sa.String(length=16), nullable=False),
        sa.Column('message', sa.String(length=2000), nullable=True),
        sa.Column('notes', sa.String(length=2000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['artist_id'], ['artist_profiles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['design_id'], ['designs.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])
    op.create_index('ix_bookings_artist_id', 'bookings', ['artist_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    op.create_index('ix_bookings_scheduled_date', 'bookings', ['scheduled_date'])
    # Uniqueness here is what catches confirmation code collisions
    op.create_index('ix_bookings_confirmation_code', 'bookings', ['confirmation_code'], unique=True)

    op.create_table(
        'reviews',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('artist_id', sa.Uuid(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.String(length=2000), nullable=True),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='review_rating_range'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['artist_id'], ['artist_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'artist_id', name='review_user_artist_unique'),
    )
    op.create_index('ix_reviews_user_id', 'reviews', ['user_id'])
    op.create_index('ix_reviews_artist_id', 'reviews', ['artist_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('reviews')
    op.drop_table('bookings')
    op.drop_table('designs')
    op.drop_table('artist_profiles')
    op.drop_table('users')

    bind = op.get_bind()
    booking_status.drop(bind, checkfirst=True)
    consultation_type.drop(bind, checkfirst=True)
    user_role.drop(bind, checkfirst=True)
