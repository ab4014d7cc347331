from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone
import json

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


class SavedSchedule(db.Model):
    __tablename__ = 'saved_schedule'

    schedule_id = db.Column(db.String(36), primary_key=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    term = db.Column(db.String(50), nullable=False)
    total_credits = db.Column(db.Float, default=0.0)
    payload = db.Column(db.Text, nullable=False)  # JSON of the full schedule
    created_at = db.Column(db.DateTime, default=_utcnow)

    @classmethod
    def from_schedule(cls, schedule):
        return cls(
            schedule_id=schedule.schedule_id,
            student_id=schedule.student_id,
            term=schedule.term,
            total_credits=schedule.total_credits,
            payload=json.dumps(schedule.to_dict()),
        )

    def get_payload(self):
        try:
            return json.loads(self.payload)
        except (TypeError, ValueError):
            return None
