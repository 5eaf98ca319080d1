"""Create agents, agent_links and agent_rewards tables

Revision ID: 001_agent_affiliate
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision = '001_agent_affiliate'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Agents: identity is the wallet address
    op.create_table(
        'agents',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('wallet_address', sa.String(42), nullable=False,
                  comment='Lower-cased 0x address'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_agents_wallet_address', 'agents', ['wallet_address'], unique=True)

    # Tracking links with merchant snapshot and click telemetry
    op.create_table(
        'agent_links',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('agent_id', UUID(as_uuid=True),
                  sa.ForeignKey('agents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('merchant_id', sa.String(100), nullable=False),
        sa.Column('merchant_name', sa.String(255), nullable=False),
        sa.Column('merchant_slug', sa.String(255), nullable=False),
        sa.Column('cashback_rate', sa.Numeric(18, 6), nullable=False, server_default='0',
                  comment='Cashback rate shown to the agent at link creation'),
        sa.Column('sub_id', sa.String(100), nullable=False,
                  comment='Attribution token echoed back by postbacks'),
        sa.Column('tracking_url', sa.Text, nullable=False),
        sa.Column('short_code', sa.String(16), nullable=False),
        sa.Column('click_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('last_click_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('ix_agent_links_agent_id', 'agent_links', ['agent_id'])
    op.create_index('ix_agent_links_sub_id', 'agent_links', ['sub_id'], unique=True)
    op.create_index('ix_agent_links_short_code', 'agent_links', ['short_code'], unique=True)

    # Reward ledger reconciled from postbacks
    op.create_table(
        'agent_rewards',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('agent_id', UUID(as_uuid=True),
                  sa.ForeignKey('agents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('link_id', UUID(as_uuid=True),
                  sa.ForeignKey('agent_links.id', ondelete='CASCADE'), nullable=False),
        sa.Column('order_id', sa.String(255), nullable=True),
        sa.Column('order_amount', sa.Numeric(18, 6), nullable=False, server_default='0'),
        sa.Column('order_currency', sa.String(10), nullable=False, server_default='USD'),
        sa.Column('commission_usdt', sa.Numeric(18, 6), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='NOT_TRACKED',
                  comment='NOT_TRACKED, PENDING, COMMISSIONED, PAID, CANCELLED'),
        sa.Column('status_history', sa.JSON, nullable=False,
                  comment='Append-only [{"at": iso8601, "status": ...}]'),
        sa.Column('postback_source', sa.String(100), nullable=True),
        sa.Column('postback_data', sa.JSON, nullable=True,
                  comment='Raw last-seen postback payload'),
        sa.Column('tx_hash', sa.String(100), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payout_error', sa.Text, nullable=True),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.UniqueConstraint('link_id', 'order_id', name='uq_agent_reward_link_order'),
    )
    op.create_index('ix_agent_rewards_agent_id', 'agent_rewards', ['agent_id'])
    op.create_index('ix_agent_rewards_status', 'agent_rewards', ['status'])


def downgrade() -> None:
    op.drop_index('ix_agent_rewards_status', table_name='agent_rewards')
    op.drop_index('ix_agent_rewards_agent_id', table_name='agent_rewards')
    op.drop_table('agent_rewards')

    op.drop_index('ix_agent_links_short_code', table_name='agent_links')
    op.drop_index('ix_agent_links_sub_id', table_name='agent_links')
    op.drop_index('ix_agent_links_agent_id', table_name='agent_links')
    op.drop_table('agent_links')

    op.drop_index('ix_agents_wallet_address', table_name='agents')
    op.drop_table('agents')
