from models.db import db

class WeeklyScheduleEntry(db.Model):
    __tablename__ = "weekly_schedule_entries"

    id = db.Column(db.Integer, primary_key=True)
    field_id = db.Column(db.Integer, db.ForeignKey("fields.id", ondelete="CASCADE"), nullable=False, index=True)

    # 0 = Sunday ... 6 = Saturday
    day_of_week = db.Column(db.Integer, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    price = db.Column(db.Integer, nullable=False)
    deposit_amount = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("field_id", "day_of_week", "start_time", name="uq_schedule_day_start"),
    )
