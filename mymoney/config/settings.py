"""
Configuration Management for MyMoney

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every external backend (tables, blobs) is declared in one place and
validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CATEGORIES = (
    "expense:Food",
    "expense:Transport",
    "expense:Shopping",
    "expense:Bills",
    "expense:Entertainment",
    "expense:Health",
    "income:Salary",
    "income:Freelance",
    "income:Gifts",
)


class CloudinarySettings(BaseSettings):
    """Cloudinary blob storage configuration (receipts)."""
    
    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )
    
    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    root_folder: str = Field(
        default="mymoney",
        description="Folder under which every bucket is created"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets table storage configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )
    
    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet holding one worksheet per table"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )
    default_rows: int = Field(
        default=1000,
        ge=10,
        description="Row count used when a table worksheet is created"
    )
    
    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.
    
    Loads configuration from environment variables and .env file.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    
    currency_code: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="ISO currency code used for display"
    )
    
    # Password rules
    min_password_length: int = Field(
        default=6,
        ge=1,
        description="Minimum password length accepted at sign-up"
    )
    min_password_strength: int = Field(
        default=4,
        ge=0,
        le=5,
        description="Criteria a new password must meet on password change"
    )
    
    # Receipts
    receipts_bucket: str = Field(
        default="receipts",
        description="Object storage bucket for receipt images"
    )
    
    default_categories: str = Field(
        default=",".join(DEFAULT_CATEGORIES),
        description="Comma-separated type:name pairs seeded for new users"
    )
    
    @property
    def default_categories_list(self) -> list[tuple[str, str]]:
        """Default categories as (type, name) pairs."""
        pairs = []
        for item in self.default_categories.split(","):
            item = item.strip()
            if not item:
                continue
            kind, _, name = item.partition(":")
            pairs.append((kind.strip().lower(), name.strip()))
        return pairs


class Settings(BaseSettings):
    """
    Root settings container.
    
    Aggregates all sub-settings for easy access.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Note: These are loaded lazily to allow partial configuration
    
    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()
    
    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()
    
    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).
    
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.
    
    Returns a dict of {setting_name: is_valid}, plus an
    "<name>_error" entry for each failing section.
    """
    results = {}
    settings = get_settings()
    
    for name in ("cloudinary", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    return results
