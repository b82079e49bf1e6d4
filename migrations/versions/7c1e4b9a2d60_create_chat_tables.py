"""Create chat tables

Revision ID: 7c1e4b9a2d60
Revises:
Create Date: 2026-10-19 10:12:41.513208

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7c1e4b9a2d60'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('clerk_user_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('username', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('clerk_user_id'),
    )

    # Threads and messages
    op.create_table(
        'threads',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=300), nullable=True),
        sa.Column('user_set_title', sa.Boolean(), nullable=False),
        sa.Column('pinned', sa.Boolean(), nullable=False),
        sa.Column('generation_status', sa.String(length=20), nullable=False),
        sa.Column('branched_from_thread_id', sa.String(length=255), nullable=True),
        sa.Column('last_message_at', sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_threads_user_id', 'threads', ['user_id'])
    op.create_index('ix_threads_branched_from_thread_id', 'threads', ['branched_from_thread_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('thread_id', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('parts', sa.JSON(), nullable=False),
        sa.Column('usage', sa.JSON(), nullable=True),
        sa.Column('model', sa.String(length=255), nullable=True),
        sa.Column('generation_start_at', sa.DateTime(), nullable=True),
        sa.Column('generation_end_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['thread_id'], ['threads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_messages_thread_id', 'messages', ['thread_id'])
    op.create_index('idx_messages_thread_created', 'messages', ['thread_id', 'created_at'])

    # Attachments
    op.create_table(
        'attachments',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('attachment_type', sa.String(length=20), nullable=False),
        sa.Column('attachment_url', sa.String(length=500), nullable=True),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_attachments_user_id', 'attachments', ['user_id'])

    op.create_table(
        'message_attachments',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('message_id', sa.String(length=255), nullable=False),
        sa.Column('attachment_id', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['attachment_id'], ['attachments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('message_id', 'attachment_id'),
    )
    op.create_index('ix_message_attachments_message_id', 'message_attachments', ['message_id'])

    # Personalization
    op.create_table(
        'user_preferences',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('occupation', sa.String(length=100), nullable=False),
        sa.Column('selected_traits', sa.JSON(), nullable=False),
        sa.Column('additional_info', sa.Text(), nullable=False),
        sa.Column('last_selected_model', sa.String(length=255), nullable=True),
        sa.Column('stats_for_nerds', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )

    op.create_table(
        'favorite_models',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('model_id', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'model_id'),
    )
    op.create_index('ix_favorite_models_user_id', 'favorite_models', ['user_id'])

    # Sharing
    op.create_table(
        'shared_chats',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('share_id', sa.String(length=32), nullable=False),
        sa.Column('thread_id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['thread_id'], ['threads.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shared_chats_share_id', 'shared_chats', ['share_id'], unique=True)
    op.create_index('ix_shared_chats_thread_id', 'shared_chats', ['thread_id'])

    op.create_table(
        'shared_messages',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('shared_chat_id', sa.String(length=255), nullable=False),
        sa.Column('original_message_id', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('parts', sa.JSON(), nullable=False),
        sa.Column('usage', sa.JSON(), nullable=True),
        sa.Column('model', sa.String(length=255), nullable=True),
        sa.Column('generation_start_at', sa.DateTime(), nullable=True),
        sa.Column('generation_end_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shared_chat_id'], ['shared_chats.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shared_messages_shared_chat_id', 'shared_messages', ['shared_chat_id'])

    op.create_table(
        'shared_message_attachments',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('shared_message_id', sa.String(length=255), nullable=False),
        sa.Column('attachment_id', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shared_message_id'], ['shared_messages.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['attachment_id'], ['attachments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_shared_message_attachments_shared_message_id', 'shared_message_attachments', ['shared_message_id']
    )


def downgrade() -> None:
    op.drop_index('ix_shared_message_attachments_shared_message_id', table_name='shared_message_attachments')
    op.drop_table('shared_message_attachments')
    op.drop_index('ix_shared_messages_shared_chat_id', table_name='shared_messages')
    op.drop_table('shared_messages')
    op.drop_index('ix_shared_chats_thread_id', table_name='shared_chats')
    op.drop_index('ix_shared_chats_share_id', table_name='shared_chats')
    op.drop_table('shared_chats')
    op.drop_index('ix_favorite_models_user_id', table_name='favorite_models')
    op.drop_table('favorite_models')
    op.drop_table('user_preferences')
    op.drop_index('ix_message_attachments_message_id', table_name='message_attachments')
    op.drop_table('message_attachments')
    op.drop_index('ix_attachments_user_id', table_name='attachments')
    op.drop_table('attachments')
    op.drop_index('idx_messages_thread_created', table_name='messages')
    op.drop_index('ix_messages_thread_id', table_name='messages')
    op.drop_table('messages')
    op.drop_index('ix_threads_branched_from_thread_id', table_name='threads')
    op.drop_index('ix_threads_user_id', table_name='threads')
    op.drop_table('threads')
    op.drop_table('users')
