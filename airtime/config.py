from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/airtime.db"
    debug: bool = False

    # Remote catalog; the local content/episodes tables are used when empty
    catalog_url: str = ""
    catalog_api_key: str = ""

    default_timezone_offset: str = "+00:00"
    generation_timeout_seconds: float = 30.0

    # Nightly regeneration of standing requests
    refresh_hour: int = 3
    refresh_minute: int = 0

    class Config:
        env_prefix = "AIRTIME_"


settings = Settings()


async def load_settings_from_db():
    """Load settings from database on startup."""
    from airtime.database import async_session
    from airtime.models import AppSettings
    from sqlalchemy import select

    async with async_session() as session:
        result = await session.execute(select(AppSettings))
        app_settings = result.scalar_one_or_none()

        if app_settings:
            settings.refresh_hour = app_settings.refresh_hour
            settings.refresh_minute = app_settings.refresh_minute
            settings.generation_timeout_seconds = app_settings.generation_timeout_seconds


async def save_settings(refresh_hour: int, refresh_minute: int, generation_timeout_seconds: float):
    """Save settings to database."""
    from airtime.database import async_session
    from airtime.models import AppSettings
    from sqlalchemy import select

    async with async_session() as session:
        result = await session.execute(select(AppSettings))
        app_settings = result.scalar_one_or_none()

        if app_settings:
            app_settings.refresh_hour = refresh_hour
            app_settings.refresh_minute = refresh_minute
            app_settings.generation_timeout_seconds = generation_timeout_seconds
        else:
            app_settings = AppSettings(
                refresh_hour=refresh_hour,
                refresh_minute=refresh_minute,
                generation_timeout_seconds=generation_timeout_seconds
            )
            session.add(app_settings)

        await session.commit()

    settings.refresh_hour = refresh_hour
    settings.refresh_minute = refresh_minute
    settings.generation_timeout_seconds = generation_timeout_seconds
