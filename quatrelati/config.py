import os
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List, Optional


class Settings(BaseSettings):
    # Database settings
    # MySQL Configuration
    MYSQL_HOST: str = os.getenv("MYSQL_HOST", "localhost")
    MYSQL_USER: str = os.getenv("MYSQL_USER", "root")
    MYSQL_PASSWORD: str = os.getenv("MYSQL_PASSWORD", "")
    MYSQL_DATABASE: str = os.getenv("MYSQL_DATABASE", "quatrelati")
    MYSQL_PORT: int = int(os.getenv("MYSQL_PORT", "3306"))
    DATABASE_URL: Optional[str] = Field(default=os.getenv("DATABASE_URL"), validate_default=True)

    @field_validator("DATABASE_URL", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info) -> str:
        if isinstance(v, str) and v:
            return v
        values = info.data
        return f"mysql+pymysql://{values.get('MYSQL_USER')}:{values.get('MYSQL_PASSWORD')}@{values.get('MYSQL_HOST')}:{values.get('MYSQL_PORT')}/{values.get('MYSQL_DATABASE')}"

    # JWT settings
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "super_secret_key_change_this_in_production")
    JWT_REFRESH_SECRET_KEY: str = os.getenv("JWT_REFRESH_SECRET_KEY", "super_refresh_secret_change_this_in_production")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_HOURS: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))
    REFRESH_TOKEN_EXPIRE_DAYS: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

    # Magic links
    MAGIC_LINK_EXPIRE_MINUTES: int = 15
    WHATSAPP_CODE_EXPIRE_MINUTES: int = 15
    RESET_TOKEN_EXPIRE_MINUTES: int = 10
    INVITE_EXPIRE_HOURS: int = 48

    # Inter-service API key used by the landing page
    SITE_API_KEY: str = os.getenv("SITE_API_KEY", "")

    # AWS settings (SES + S3)
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")
    AWS_ACCESS_KEY_ID: str = os.getenv("AWS_ACCESS_KEY_ID", "")
    AWS_SECRET_ACCESS_KEY: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    SES_FROM_EMAIL: str = os.getenv("SES_FROM_EMAIL", "noreply@quatrelati.com.br")
    SES_FROM_NAME: str = "Quatrelati"
    S3_BUCKET: str = os.getenv("S3_BUCKET", "bureau-it.com")
    CONTACT_EMAIL_TO: str = os.getenv("CONTACT_EMAIL_TO", "contato@quatrelati.com.br")

    # Twilio settings (WhatsApp recovery)
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_WHATSAPP_FROM: str = os.getenv("TWILIO_WHATSAPP_FROM", "")

    # Landing page -> ERP forwarding
    ERP_API_URL: str = os.getenv("ERP_API_URL", "http://localhost:8000")
    ERP_API_KEY: str = os.getenv("ERP_API_KEY", "")

    # Frontend URL
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3002")
    CORS_ORIGIN: str = os.getenv("CORS_ORIGIN", "http://localhost:3002")

    # Seed
    DEFAULT_PASSWORD: str = os.getenv("DEFAULT_PASSWORD", "Quatrelati@2026")
    SUPERADMIN_EMAIL: str = os.getenv("SUPERADMIN_EMAIL", "admin@quatrelati.com.br")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "detailed")

    # App settings
    APP_VERSION: str = "1.2.0"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", "True") == "True"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
