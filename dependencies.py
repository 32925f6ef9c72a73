"""FastAPI dependency providers for repositories and upstream services."""

from functools import lru_cache

from fastapi import Depends

from config import Settings, get_settings
from database import Database, get_db
from news import NewsService
from repositories import (
    GoalRepository,
    HabitRepository,
    NoteRepository,
    RoleRepository,
    TimeEntryRepository,
    UserRepository,
    WidgetRepository,
)
from time_tracker import SessionRegistry
from translation import TranslationService
from weather import WeatherService


def get_role_repo(db: Database = Depends(get_db)) -> RoleRepository:
    return RoleRepository(db)


def get_user_repo(db: Database = Depends(get_db)) -> UserRepository:
    return UserRepository(db, RoleRepository(db))


def get_widget_repo(db: Database = Depends(get_db)) -> WidgetRepository:
    return WidgetRepository(db)


def get_goal_repo(db: Database = Depends(get_db)) -> GoalRepository:
    return GoalRepository(db)


def get_time_entry_repo(db: Database = Depends(get_db)) -> TimeEntryRepository:
    return TimeEntryRepository(db)


def get_note_repo(db: Database = Depends(get_db)) -> NoteRepository:
    return NoteRepository(db)


def get_habit_repo(db: Database = Depends(get_db)) -> HabitRepository:
    return HabitRepository(db)


def get_weather_service(settings: Settings = Depends(get_settings)) -> WeatherService:
    return WeatherService(api_key=settings.openweather_api_key, timeout=settings.http_timeout)


def get_news_service(settings: Settings = Depends(get_settings)) -> NewsService:
    return NewsService(api_key=settings.news_api_key, timeout=settings.http_timeout)


@lru_cache
def get_translation_service() -> TranslationService:
    settings = get_settings()
    return TranslationService(
        api_url=settings.translate_api_url,
        api_key=settings.translate_api_key,
        timeout=settings.http_timeout,
    )


@lru_cache
def get_session_registry() -> SessionRegistry:
    return SessionRegistry(get_settings().data_dir / "sessions")
