from datetime import datetime
from models.db import db

class Field(db.Model):
    __tablename__ = "fields"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    city_id = db.Column(db.Integer, db.ForeignKey("cities.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    image_url = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    owner = db.relationship("User", back_populates="fields")
    city = db.relationship("City")
    slots = db.relationship(
        "Availability",
        back_populates="field",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    schedule = db.relationship(
        "WeeklyScheduleEntry",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="WeeklyScheduleEntry.day_of_week",
    )
