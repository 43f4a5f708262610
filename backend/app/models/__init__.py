"""
DLE Backend - ORM Models Package
==================================

Importing this package registers every table with `Base.metadata`, which
Alembic autogenerate and the test suite's create_all() rely on.

Tables:
    people, tags, notes, note_people, note_tags, note_photos,
    habits, habit_logs, default_habits,
    events, event_data, telegram_debug_logs
"""

from app.models.person import Person
from app.models.tag import Tag
from app.models.note import Note, NotePerson, NoteTag, NotePhoto
from app.models.habit import Habit, HabitLog, DefaultHabit
from app.models.event import Event, EventData, TelegramDebugLog

__all__ = [
    "Person",
    "Tag",
    "Note",
    "NotePerson",
    "NoteTag",
    "NotePhoto",
    "Habit",
    "HabitLog",
    "DefaultHabit",
    "Event",
    "EventData",
    "TelegramDebugLog",
]
