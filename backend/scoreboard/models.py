from scoreboard import db
import time


class StoreEntry(db.Model):
    """One named value in the key-value store (a JSON array of game records)."""
    __tablename__ = 'store_entry'
    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False, default='[]')
    updated_at = db.Column(db.Float, nullable=False, default=time.time, onupdate=time.time)
