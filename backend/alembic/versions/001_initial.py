"""Initial migration - create all tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, index=True, nullable=True),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='member'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    # Create athlete_links table
    op.create_table(
        'athlete_links',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), unique=True, nullable=False),
        sa.Column('strava_athlete_id', sa.String(20), unique=True, nullable=False),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('tokens_encrypted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('token_expires_at', sa.Integer(), nullable=True),
        sa.Column('scope', sa.String(255), nullable=True),
        sa.Column('firstname', sa.String(100), nullable=True),
        sa.Column('lastname', sa.String(100), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('weight_kg', sa.Float(), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('last_webhook_at', sa.DateTime(), nullable=True),
        sa.Column('total_distance', sa.Float(), nullable=True),
        sa.Column('total_runs', sa.Integer(), nullable=True),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_athlete_links_strava_athlete_id', 'athlete_links', ['strava_athlete_id'])
    op.create_index('ix_athlete_links_last_synced_at', 'athlete_links', ['last_synced_at'])

    # Create activities table
    op.create_table(
        'activities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('strava_id', sa.BigInteger(), unique=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('activity_type', sa.String(50), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('workout_type', sa.Integer(), nullable=True),
        sa.Column('gear_id', sa.String(50), nullable=True),
        sa.Column('distance_m', sa.Float(), nullable=False, server_default='0'),
        sa.Column('moving_time_s', sa.Integer(), nullable=True),
        sa.Column('elapsed_time_s', sa.Integer(), nullable=True),
        sa.Column('elevation_gain_m', sa.Float(), nullable=True),
        sa.Column('average_pace_s_per_km', sa.Float(), nullable=True),
        sa.Column('avg_speed_mps', sa.Float(), nullable=True),
        sa.Column('max_speed_mps', sa.Float(), nullable=True),
        sa.Column('avg_heartrate', sa.Integer(), nullable=True),
        sa.Column('max_heartrate', sa.Integer(), nullable=True),
        sa.Column('calories', sa.Integer(), nullable=True),
        sa.Column('calories_estimated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('suffer_score', sa.Integer(), nullable=True),
        sa.Column('kudos_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('achievement_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('synced_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_activities_user_id', 'activities', ['user_id'])
    op.create_index('ix_activities_start_date', 'activities', ['start_date'])

    # Create achievements table
    op.create_table(
        'achievements',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('requirement_type', sa.String(50), nullable=False),
        sa.Column('requirement_value', sa.Float(), nullable=False),
    )

    # Create user_achievements table
    op.create_table(
        'user_achievements',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('achievement_id', sa.String(36), sa.ForeignKey('achievements.id'), nullable=False),
        sa.Column('unlocked_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'achievement_id', name='uq_user_achievement'),
    )
    op.create_index('ix_user_achievements_user_id', 'user_achievements', ['user_id'])


def downgrade() -> None:
    op.drop_table('user_achievements')
    op.drop_table('achievements')
    op.drop_table('activities')
    op.drop_table('athlete_links')
    op.drop_table('users')
