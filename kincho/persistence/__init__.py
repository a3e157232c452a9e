"""Kincho decision persistence layer.

Provides SQLite-backed storage for decision records and the one-way
channel the consensus engine publishes them through.
"""

from kincho.persistence.channel import DecisionRecordChannel, open_decision_channel
from kincho.persistence.database import close_db, init_db
from kincho.persistence.decisions import DecisionStore

__all__ = [
    "DecisionRecordChannel",
    "DecisionStore",
    "close_db",
    "init_db",
    "open_decision_channel",
]
