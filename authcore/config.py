import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv(override=True)


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _database_url() -> str:
    raw_url = os.getenv("DATABASE_URL", "") or "sqlite:///./authcore.db"
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


@dataclass(frozen=True)
class Settings:
    database_url: str = _database_url()
    otp_length: int = int(os.getenv("OTP_LENGTH", "6"))
    otp_ttl_seconds: int = int(os.getenv("OTP_TTL_SECONDS", "300"))
    otp_delivery: str = os.getenv("OTP_DELIVERY", "returned").strip().lower()
    password_hasher: str = os.getenv("PASSWORD_HASHER", "argon2").strip().lower()
    password_salt_bytes: int = int(os.getenv("PASSWORD_SALT_BYTES", "16"))
    argon2_time_cost: int = int(os.getenv("ARGON2_TIME_COST", "3"))
    argon2_memory_cost: int = int(os.getenv("ARGON2_MEMORY_COST", "65536"))
    argon2_parallelism: int = int(os.getenv("ARGON2_PARALLELISM", "4"))
    argon2_hash_len: int = int(os.getenv("ARGON2_HASH_LEN", "32"))
    disclose_unknown_email: bool = _env_bool("DISCLOSE_UNKNOWN_EMAIL", True)
    seed_admin_email: str = os.getenv("SEED_ADMIN_EMAIL", "").strip()


settings = Settings()
