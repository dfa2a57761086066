from datetime import datetime
from models.db import db

class Availability(db.Model):
    __tablename__ = "availabilities"

    id = db.Column(db.Integer, primary_key=True)

    field_id = db.Column(db.Integer, db.ForeignKey("fields.id", ondelete="CASCADE"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    price = db.Column(db.Integer, nullable=False)  # whole currency units
    deposit_amount = db.Column(db.Integer, nullable=False)
    is_reserved = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    field = db.relationship("Field", back_populates="slots")

    __table_args__ = (
        db.UniqueConstraint("field_id", "date", "start_time", name="uq_field_date_start"),
        db.CheckConstraint("deposit_amount >= 0 AND deposit_amount < price", name="ck_deposit_below_price"),
        db.CheckConstraint("end_time > start_time", name="ck_end_after_start"),
    )
