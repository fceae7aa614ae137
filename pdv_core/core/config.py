from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator


class Settings(BaseSettings):
    # Database settings
    DATABASE_URL: str = 'sqlite:///./pdv.db'

    # Terminal settings
    PDV_NUMBER: str = '001'
    DEFAULT_OPERATOR: Optional[str] = None
    DEFAULT_OPENING_FLOAT: Decimal = Decimal('0.00')

    # Payments
    MAX_CREDIT_INSTALLMENTS: int = 12
    PAYMENT_TOLERANCE: Decimal = Decimal('0.01')

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("DEFAULT_OPENING_FLOAT", mode="before")
    @classmethod
    def parse_opening_float(cls, v):
        # Acepta "150,00" además de "150.00"
        if isinstance(v, str):
            return v.strip().replace(",", ".")
        return v


settings = Settings()
