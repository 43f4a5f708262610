"""
DLE Backend - Services Layer
==============================

What:  Business logic between the routes (HTTP) and the database, object
       store and hosted APIs.
How:   Each service is a class with a module-level singleton; routes call
       the singleton and pass the request's AsyncSession in.

Service Inventory:
    - PersonService, TagService, NoteService: diary CRUD and explicit cascades
    - SearchService: substring search and category counts
    - HabitService: habits, check-ins, streaks and summaries
    - EventService: read views over ingested voice events
    - IngestionService: Telegram voice pipeline (download → store →
      transcribe → extract → persist → reply)
    - LLMService (abstract) / GeminiService: transcription and completion
    - extraction: parsing of the model's JSON into event_data rows
    - TelegramService: Bot API client
    - StorageService: local object store for photos and audio
"""
