"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    DATABASE_URL: str
    TAX_RATE: float
    CAMPUS_EMAIL_DOMAIN: str
    MIN_RFID_LENGTH: int
    GROUP_ORDER_TTL_HOURS: int
    OTP_TTL_SECONDS: int
    OTP_MAX_ATTEMPTS: int
    OTP_RATE_LIMIT_PER_MIN: int
    OTP_RATE_LIMIT_WINDOW_SECONDS: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'campuseats.db'}")
        self.TAX_RATE = float(os.getenv("TAX_RATE", "0.05"))  # 5% GST on food orders
        self.CAMPUS_EMAIL_DOMAIN = os.getenv("CAMPUS_EMAIL_DOMAIN", "mec.edu").lower()
        self.MIN_RFID_LENGTH = int(os.getenv("MIN_RFID_LENGTH", "8"))
        self.GROUP_ORDER_TTL_HOURS = int(os.getenv("GROUP_ORDER_TTL_HOURS", "24"))
        self.OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", "300"))
        self.OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))
        self.OTP_RATE_LIMIT_PER_MIN = int(os.getenv("OTP_RATE_LIMIT_PER_MIN", "3"))
        self.OTP_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("OTP_RATE_LIMIT_WINDOW_SECONDS", "60"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if not 0 <= self.TAX_RATE < 1:
            raise RuntimeError("TAX_RATE must be a fraction between 0 and 1")

    @property
    def is_dev(self) -> bool:
        return self.ENV == "dev"


settings = Settings()
