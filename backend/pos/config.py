"""
pos/config.py - Application configuration and Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and lazily initializes the Firebase Admin SDK (Firestore) using the provided credentials.
Other modules call `get_settings()` and `get_db()` instead of importing module-level clients,
so nothing needs credentials at import time (tests and scripts included).
"""
from decimal import Decimal
from functools import lru_cache
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    firebase_cred_file: str = Field('firebase_service_account.json', validation_alias='FIREBASE_CRED_FILE')
    firebase_project_id: Optional[str] = Field(None, validation_alias='FIREBASE_PROJECT_ID')

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = Field(None, validation_alias='FIREBASE_PRIVATE_KEY_ID')
    firebase_private_key: Optional[str] = Field(None, validation_alias='FIREBASE_PRIVATE_KEY')
    firebase_client_email: Optional[str] = Field(None, validation_alias='FIREBASE_CLIENT_EMAIL')
    firebase_client_id: Optional[str] = Field(None, validation_alias='FIREBASE_CLIENT_ID')
    firebase_auth_uri: Optional[str] = Field(None, validation_alias='FIREBASE_AUTH_URI')
    firebase_token_uri: Optional[str] = Field(None, validation_alias='FIREBASE_TOKEN_URI')
    firebase_auth_provider_x509_cert_url: Optional[str] = Field(None, validation_alias='FIREBASE_AUTH_PROVIDER_X509_CERT_URL')
    firebase_client_x509_cert_url: Optional[str] = Field(None, validation_alias='FIREBASE_CLIENT_X509_CERT_URL')

    # Collections are prefixed per environment, e.g. "staging_" -> "staging_items"
    firebase_collection_prefix: str = Field('', validation_alias='FIREBASE_COLLECTION_PREFIX')

    # Pricing
    tax_rate: Decimal = Field(Decimal("0.085"), ge=0, validation_alias='TAX_RATE', description="Flat sales tax (0.085 = 8.5%)")
    payment_tolerance: Decimal = Field(Decimal("0.01"), ge=0, validation_alias='PAYMENT_TOLERANCE')
    currency: str = Field('USD', validation_alias='CURRENCY')
    low_stock_threshold: int = Field(10, ge=0, validation_alias='LOW_STOCK_THRESHOLD')

    # Sales nobody touched for this long are dropped by the scheduler
    session_idle_minutes: int = Field(120, ge=1, validation_alias='SESSION_IDLE_MINUTES')

    debug: bool = Field(False, validation_alias='DEBUG')
    log_level: str = Field('INFO', validation_alias='LOG_LEVEL')
    allowed_origins: str = Field('*', validation_alias='ALLOWED_ORIGINS')  # Comma-separated list or '*' for all

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def has_env_credentials(self) -> bool:
        return all([
            self.firebase_private_key_id,
            self.firebase_private_key,
            self.firebase_client_email,
            self.firebase_client_id,
            self.firebase_auth_uri,
            self.firebase_token_uri,
            self.firebase_auth_provider_x509_cert_url,
            self.firebase_client_x509_cert_url,
        ])


@lru_cache
def get_settings() -> Settings:
    return Settings()


def collection_name(name: str) -> str:
    """Prefix-aware collection name (FIREBASE_COLLECTION_PREFIX)."""
    prefix = get_settings().firebase_collection_prefix.strip()
    return f"{prefix}{name}" if prefix else name


def init_firebase() -> firebase_admin.App:
    """Initialize the default Firebase app once and return it."""
    settings = get_settings()
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if settings.has_env_credentials():
        # Use environment variables for Firebase credentials (Cloud Run)
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "private_key_id": settings.firebase_private_key_id,
            "private_key": settings.firebase_private_key.replace("\\n", "\n"),
            "client_email": settings.firebase_client_email,
            "client_id": settings.firebase_client_id,
            "auth_uri": settings.firebase_auth_uri,
            "token_uri": settings.firebase_token_uri,
            "auth_provider_x509_cert_url": settings.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": settings.firebase_client_x509_cert_url,
        })
    else:
        # Use service account file (local development)
        cred = credentials.Certificate(settings.firebase_cred_file)

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    try:
        return firebase_admin.initialize_app(cred, options)
    except ValueError as e:
        if "already exists" in str(e):
            return firebase_admin.get_app()
        raise


@lru_cache
def get_db():
    """Firestore client bound to the default Firebase app."""
    init_firebase()
    return firestore.client()
