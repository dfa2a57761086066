from datetime import datetime
from models.db import db

class Reservation(db.Model):
    __tablename__ = "reservations"

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    availability_id = db.Column(db.Integer, db.ForeignKey("availabilities.id"), nullable=False, index=True)

    deposit_paid = db.Column(db.Boolean, default=False, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="CONFIRMED")
    # status values: CONFIRMED, CANCELLED

    reservation_time = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(120), nullable=True)

    idempotency_key = db.Column(db.String(80), nullable=True)

    slot = db.relationship("Availability")
    customer = db.relationship("User", back_populates="reservations")

    __table_args__ = (
        # Only one live reservation per slot; cancelled rows are kept as history
        db.Index(
            "uq_reservation_live_slot",
            "availability_id",
            unique=True,
            sqlite_where=db.text("status = 'CONFIRMED'"),
            postgresql_where=db.text("status = 'CONFIRMED'"),
        ),
        db.UniqueConstraint("customer_id", "idempotency_key", name="uq_reservation_idempotency"),
    )
