"""initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates profiles, users, vendors, evaluations, questions, assignments,
responses and recommendations.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('first_name', sa.String(255)),
        sa.Column('last_name', sa.String(255)),
        sa.Column('contact_email', sa.String(255)),
        sa.Column('department', sa.String(255)),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table('vendors',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('contact_email', sa.String(255)),
        sa.Column('contact_phone', sa.String(50)),
        sa.Column('country', sa.String(100)),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table('users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='supplier'),
        sa.Column('vendor_id', sa.String(36), sa.ForeignKey('vendors.id'), nullable=True),
        sa.Column('profile_id', sa.String(36), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_sign_in_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_vendor_id', 'users', ['vendor_id'])

    op.create_table('evaluations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('evaluator_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('status', sa.String(20), server_default='draft'),
        sa.Column('progress', sa.Integer(), server_default='0'),
        sa.Column('total_score', sa.Float()),
        sa.Column('start_date', sa.DateTime(timezone=True)),
        sa.Column('end_date', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table('questions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('category', sa.String(255), nullable=False, server_default='General'),
        sa.Column('subcategory', sa.String(255)),
        sa.Column('weight', sa.Float(), server_default='1'),
        sa.Column('is_required', sa.Boolean(), server_default=sa.true()),
        sa.Column('order_index', sa.Integer(), server_default='0'),
        sa.Column('options', sa.JSON()),
        sa.Column('recommendation_text', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    op.create_table('evaluation_questions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('evaluation_id', sa.String(36), sa.ForeignKey('evaluations.id'), nullable=False),
        sa.Column('question_id', sa.String(36), sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('evaluation_id', 'question_id', name='uq_evaluation_question'),
    )

    op.create_table('evaluation_vendors',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('evaluation_id', sa.String(36), sa.ForeignKey('evaluations.id'), nullable=False),
        sa.Column('vendor_id', sa.String(36), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('status', sa.String(20), server_default='pending'),
        sa.Column('assigned_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('evaluation_id', 'vendor_id', name='uq_evaluation_vendor'),
    )

    op.create_table('responses',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('evaluation_id', sa.String(36), sa.ForeignKey('evaluations.id'), nullable=False),
        sa.Column('vendor_id', sa.String(36), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('question_id', sa.String(36), sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('answer', sa.String(10)),
        sa.Column('response_value', sa.Text(), nullable=False, server_default=''),
        sa.Column('notes', sa.Text()),
        sa.Column('evidence_urls', sa.JSON()),
        sa.Column('score', sa.Float()),
        sa.Column('reviewed_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('review_date', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('evaluation_id', 'vendor_id', 'question_id', name='uq_response_eval_vendor_question'),
    )
    op.create_index('ix_responses_eval_vendor', 'responses', ['evaluation_id', 'vendor_id'])

    op.create_table('recommendations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('response_id', sa.String(36), sa.ForeignKey('responses.id'), nullable=False),
        sa.Column('question_id', sa.String(36), sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('recommendation_text', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('priority', sa.Integer()),
        sa.Column('assigned_to', sa.String(36), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True)),
        sa.Column('action_plan', sa.Text()),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('response_id', name='uq_recommendation_response'),
    )
    op.create_index('ix_recommendations_status', 'recommendations', ['status'])


def downgrade() -> None:
    op.drop_index('ix_recommendations_status', table_name='recommendations')
    op.drop_table('recommendations')
    op.drop_index('ix_responses_eval_vendor', table_name='responses')
    op.drop_table('responses')
    op.drop_table('evaluation_vendors')
    op.drop_table('evaluation_questions')
    op.drop_table('questions')
    op.drop_table('evaluations')
    op.drop_index('ix_users_vendor_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('vendors')
    op.drop_table('profiles')
