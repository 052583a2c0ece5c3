import os
from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load settings from .env
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./proxy_manager.db")

SECRET_KEY = os.getenv("SECRET_KEY", "default-secret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))
AUTHORIZED_DOMAIN = os.getenv("AUTHORIZED_DOMAIN", "school.edu")

EMAIL_HOST = os.getenv("EMAIL_HOST", "smtp.school.dev")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", 587))
EMAIL_USER = os.getenv("EMAIL_USER", "user")
EMAIL_PASSWORD = os.getenv("EMAIL_PASSWORD", "password")
EMAIL_FROM = os.getenv("EMAIL_FROM", "no-reply@school.edu")
EMAIL_NOTIFICATIONS = os.getenv("EMAIL_NOTIFICATIONS", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class ProxyPolicy(BaseModel):
    """Scoring and overload rules used when ranking substitute teachers.

    A candidate whose load (regular lessons plus proxies on the date) reaches
    ``overload_threshold`` is never offered. Lower scores rank first.
    """
    overload_threshold: int = Field(6, ge=1)
    subject_match_bonus: int = Field(2, ge=0)
    adjacent_free_bonus: int = Field(1, ge=0)

    model_config = {
        "frozen": True
    }


def load_proxy_policy() -> ProxyPolicy:
    return ProxyPolicy(
        overload_threshold=int(os.getenv("PROXY_OVERLOAD_THRESHOLD", 6)),
        subject_match_bonus=int(os.getenv("PROXY_SUBJECT_MATCH_BONUS", 2)),
        adjacent_free_bonus=int(os.getenv("PROXY_ADJACENT_FREE_BONUS", 1)),
    )


# Dependency function to get the active proxy policy
def get_proxy_policy() -> ProxyPolicy:
    return load_proxy_policy()
