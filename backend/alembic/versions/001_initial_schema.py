"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum('admin', 'photographer', 'client', name='user_role')
display_mode = sa.Enum('grid', 'filmstrip', name='display_mode')
flag_type = sa.Enum('pick', 'reject', 'none', name='flag_type')


def upgrade() -> None:
    # Users (synced from the identity provider)
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('identity_key', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(255), nullable=True),
        sa.Column('last_name', sa.String(255), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('created_by_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('created_by_id IS NULL OR created_by_id != id', name='creator_not_self'),
    )
    op.create_index('ix_users_identity_key', 'users', ['identity_key'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Albums
    op.create_table(
        'albums',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('display_mode', display_mode, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_albums_owner_id', 'albums', ['owner_id'])
    op.create_index('idx_albums_owner_created', 'albums', ['owner_id', 'created_at'])

    # Membership edges
    op.create_table(
        'album_collaborators',
        sa.Column('album_id', sa.Uuid(), sa.ForeignKey('albums.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('photographer_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_album_collaborators_photographer_id', 'album_collaborators', ['photographer_id'])

    op.create_table(
        'album_clients',
        sa.Column('album_id', sa.Uuid(), sa.ForeignKey('albums.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_album_clients_client_id', 'album_clients', ['client_id'])

    # Images
    op.create_table(
        'images',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('album_id', sa.Uuid(), sa.ForeignKey('albums.id', ondelete='CASCADE'), nullable=False),
        sa.Column('photographer_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('storage_key', sa.String(512), nullable=False, unique=True),
        sa.Column('original_filename', sa.String(255), nullable=False),
        sa.Column('caption', sa.Text(), nullable=True),
        sa.Column('exif_data', sa.JSON(), nullable=True),
        sa.Column('width', sa.Integer(), nullable=False),
        sa.Column('height', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_images_photographer_id', 'images', ['photographer_id'])
    op.create_index('idx_images_album_created', 'images', ['album_id', 'created_at'])

    # Feedback
    op.create_table(
        'ratings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('image_id', sa.Uuid(), sa.ForeignKey('images.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('image_id', 'user_id', name='ratings_image_user_key'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='rating_range'),
    )

    op.create_table(
        'flags',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('image_id', sa.Uuid(), sa.ForeignKey('images.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('flag_type', flag_type, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('image_id', 'user_id', name='flags_image_user_key'),
    )

    op.create_table(
        'comments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('image_id', sa.Uuid(), sa.ForeignKey('images.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parent_id', sa.Uuid(), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_comments_parent_id', 'comments', ['parent_id'])
    op.create_index('idx_comments_image_created', 'comments', ['image_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('comments')
    op.drop_table('flags')
    op.drop_table('ratings')
    op.drop_table('images')
    op.drop_table('album_clients')
    op.drop_table('album_collaborators')
    op.drop_table('albums')
    op.drop_table('users')

    bind = op.get_bind()
    flag_type.drop(bind, checkfirst=True)
    display_mode.drop(bind, checkfirst=True)
    user_role.drop(bind, checkfirst=True)
