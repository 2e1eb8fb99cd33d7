"""
SQLAlchemy models backing the local backend.

The tables mirror the hosted schema in supabase/migrations/; the `accounts`
table stands in for the hosted service's own user store.
"""

import uuid
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _uuid():
    return str(uuid.uuid4())


class Account(db.Model):
    __tablename__ = 'accounts'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    user_metadata = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Profile(db.Model):
    __tablename__ = 'profiles'
    __table_args__ = (
        db.CheckConstraint('farm_area > 0', name='profiles_farm_area_check'),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('accounts.id', ondelete='CASCADE'),
                        unique=True, nullable=False)
    name = db.Column(db.Text, nullable=False)
    mobile_number = db.Column(db.String(10), unique=True, nullable=False)
    survey_number = db.Column(db.Text, nullable=True)
    farm_area = db.Column(db.Float, nullable=False)  # acres
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)


class YieldPrediction(db.Model):
    __tablename__ = 'yield_predictions'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('accounts.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    soil_data = db.Column(db.JSON, nullable=False)
    predicted_yield = db.Column(db.Float, nullable=False)
    file_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class CropRecommendation(db.Model):
    __tablename__ = 'crop_recommendations'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('accounts.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    recommended_crops = db.Column(db.JSON, nullable=False)
    fertilizer_info = db.Column(db.JSON, nullable=False)
    pest_disease_info = db.Column(db.JSON, nullable=False)
    weather_data = db.Column(db.JSON, nullable=False)
    farm_area = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


# Tables reachable through the backend interface, keyed by their hosted name.
TABLES = {
    'profiles': Profile,
    'yield_predictions': YieldPrediction,
    'crop_recommendations': CropRecommendation,
}


def row_to_dict(row):
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}
