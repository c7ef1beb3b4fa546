"""Initial library schema

Audio, Video, Recording, Transcription and PronunciationAssessment tables.

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _asset_columns():
    return [
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('source', sa.String(length=2048)),
        sa.Column('md5', sa.String(length=32), nullable=False, unique=True),
        sa.Column('name', sa.String(length=255)),
        sa.Column('description', sa.Text()),
        sa.Column('metadata', sa.JSON()),
        sa.Column('cover_url', sa.String(length=2048)),
        sa.Column('recordings_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('recordings_duration', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('synced_at', sa.DateTime()),
        sa.Column('uploaded_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('audios', *_asset_columns())
    op.create_table('videos', *_asset_columns())

    op.create_table(
        'recordings',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('target_id', sa.String(length=36), nullable=False),
        sa.Column('target_type', sa.String(length=20), nullable=False),
        sa.Column('md5', sa.String(length=32), nullable=False, unique=True),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reference_id', sa.Integer()),
        sa.Column('reference_text', sa.Text()),
        sa.Column('synced_at', sa.DateTime()),
        sa.Column('uploaded_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('duration >= 0', name='ck_recordings_duration_non_negative'),
    )
    op.create_index('ix_recordings_target_id', 'recordings', ['target_id'])
    op.create_index('ix_recordings_target', 'recordings', ['target_type', 'target_id'])

    op.create_table(
        'transcriptions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('target_id', sa.String(length=36), nullable=False),
        sa.Column('target_type', sa.String(length=20), nullable=False),
        sa.Column('target_md5', sa.String(length=32), nullable=False, unique=True),
        sa.Column('state', sa.Enum('pending', 'processing', 'finished', name='transcription_state'),
                  nullable=False, server_default='pending'),
        sa.Column('engine', sa.String(length=50)),
        sa.Column('model', sa.String(length=100)),
        sa.Column('result', sa.JSON()),
        sa.Column('attempt_id', sa.String(length=36)),
        sa.Column('synced_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('target_id', 'target_type', name='uq_transcriptions_target'),
    )

    op.create_table(
        'pronunciation_assessments',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('target_id', sa.String(length=36), nullable=False),
        sa.Column('target_type', sa.String(length=20), nullable=False),
        sa.Column('accuracy_score', sa.Float(), nullable=False),
        sa.Column('completeness_score', sa.Float(), nullable=False),
        sa.Column('fluency_score', sa.Float(), nullable=False),
        sa.Column('pronunciation_score', sa.Float(), nullable=False),
        sa.Column('prosody_score', sa.Float()),
        sa.Column('grammar_score', sa.Float()),
        sa.Column('vocabulary_score', sa.Float()),
        sa.Column('topic_score', sa.Float()),
        sa.Column('reference_text', sa.Text()),
        sa.Column('result', sa.JSON()),
        sa.Column('synced_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('target_id', 'target_type', name='uq_pronunciation_assessments_target'),
    )


def downgrade() -> None:
    op.drop_table('pronunciation_assessments')
    op.drop_table('transcriptions')
    op.drop_index('ix_recordings_target', table_name='recordings')
    op.drop_index('ix_recordings_target_id', table_name='recordings')
    op.drop_table('recordings')
    op.drop_table('videos')
    op.drop_table('audios')
    sa.Enum(name='transcription_state').drop(op.get_bind(), checkfirst=True)
