"""Initial schema: profiles, resources, bookmarks, processed webhook events

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create catalog and subscription tables."""

    # Profiles (one per auth user, carries the subscription columns)
    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('username', sa.String(50), unique=True),
        sa.Column('full_name', sa.String(100)),

        # Subscription state
        sa.Column('subscription_tier', sa.String(20), server_default='free', nullable=False),
        sa.Column('subscription_status', sa.String(20), server_default='active', nullable=False),
        sa.Column('stripe_customer_id', sa.String(255)),
        sa.Column('stripe_subscription_id', sa.String(255)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),
        sa.Column('cancel_at_period_end', sa.Boolean, server_default='false', nullable=False),

        # Compare-and-set counter
        sa.Column('version', sa.Integer, server_default='1', nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])
    op.create_index('ix_profiles_stripe_customer_id', 'profiles', ['stripe_customer_id'], unique=True)
    op.create_index('ix_profiles_stripe_subscription_id', 'profiles', ['stripe_subscription_id'], unique=True)
    op.create_index(
        'ix_profiles_tier_status',
        'profiles',
        ['subscription_tier', 'subscription_status'],
    )

    # Resource catalog
    op.create_table(
        'resources',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, server_default='', nullable=False),
        sa.Column('resource_type', sa.String(30), server_default='article', nullable=False),
        sa.Column('difficulty_level', sa.String(20), server_default='beginner', nullable=False),
        sa.Column('url', sa.Text),
        sa.Column('estimated_time_minutes', sa.Integer),
        sa.Column('is_premium', sa.Boolean, server_default='false', nullable=False),
        sa.Column('is_featured', sa.Boolean, server_default='false', nullable=False),
        sa.Column('content', sa.Text),
        sa.Column('is_published', sa.Boolean, server_default='false', nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index('ix_resources_slug', 'resources', ['slug'], unique=True)
    op.create_index('ix_resources_is_premium', 'resources', ['is_premium'])
    op.create_index('ix_resources_is_published', 'resources', ['is_published'])

    # Bookmarks
    op.create_table(
        'bookmarks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('resource_id', sa.Uuid(), sa.ForeignKey('resources.id', ondelete='CASCADE'), nullable=False),
        sa.Column('notes', sa.String(2000)),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'resource_id', name='uq_bookmarks_user_resource'),
    )
    op.create_index('ix_bookmarks_user_id', 'bookmarks', ['user_id'])

    # Webhook idempotency ledger
    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column(
            'processed_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
    )
    # Index for cleanup queries (delete events older than X days)
    op.create_index(
        'ix_processed_webhook_events_processed_at',
        'processed_webhook_events',
        ['processed_at'],
    )

    # Enable RLS
    for table in ('profiles', 'resources', 'bookmarks', 'processed_webhook_events'):
        op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')

    # Users read their own profile; tier/status are written by the backend only
    op.execute("""
        CREATE POLICY "Users can view own profile"
        ON profiles FOR SELECT
        TO authenticated
        USING (id = auth.uid())
    """)

    op.execute("""
        CREATE POLICY "Published resources are readable"
        ON resources FOR SELECT
        TO anon, authenticated
        USING (is_published)
    """)

    op.execute("""
        CREATE POLICY "Users can view own bookmarks"
        ON bookmarks FOR SELECT
        TO authenticated
        USING (user_id = auth.uid())
    """)

    # Service role manages everything (backend and webhooks)
    for table in ('profiles', 'resources', 'bookmarks', 'processed_webhook_events'):
        op.execute(f"""
            CREATE POLICY "Service role manages {table}"
            ON {table} FOR ALL
            TO service_role
            USING (true)
            WITH CHECK (true)
        """)


def downgrade() -> None:
    """Drop all tables created by this revision."""

    for table in ('processed_webhook_events', 'bookmarks', 'resources', 'profiles'):
        op.execute(f'DROP POLICY IF EXISTS "Service role manages {table}" ON {table}')
    op.execute('DROP POLICY IF EXISTS "Users can view own bookmarks" ON bookmarks')
    op.execute('DROP POLICY IF EXISTS "Published resources are readable" ON resources')
    op.execute('DROP POLICY IF EXISTS "Users can view own profile" ON profiles')

    op.drop_index('ix_processed_webhook_events_processed_at', table_name='processed_webhook_events')
    op.drop_table('processed_webhook_events')
    op.drop_table('bookmarks')
    op.drop_table('resources')
    op.drop_table('profiles')
