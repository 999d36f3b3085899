# app/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "boardinghub-app")
    FIREBASE_SERVICE_ACCOUNT_PATH: str = os.getenv(
        "FIREBASE_SERVICE_ACCOUNT_PATH",
        "firebase-service-account.json",
    )

    # Billing
    BILL_DUE_DAYS: int = int(os.getenv("BILL_DUE_DAYS", "15"))
    INVOICE_PREFIX: str = os.getenv("INVOICE_PREFIX", "INV")
    RECEIPT_PREFIX: str = os.getenv("RECEIPT_PREFIX", "RCP")
    # Per-tenant utilities are billed against a default consumption until meters are read
    DEFAULT_ELECTRICITY_CONSUMPTION: float = float(os.getenv("DEFAULT_ELECTRICITY_CONSUMPTION", "100"))
    DEFAULT_UTILITY_CONSUMPTION: float = float(os.getenv("DEFAULT_UTILITY_CONSUMPTION", "50"))

    # Tenancy
    LEASE_DURATION_DAYS: int = int(os.getenv("LEASE_DURATION_DAYS", "365"))

    # Overdue bill sweep
    ENABLE_OVERDUE_JOB: bool = os.getenv("ENABLE_OVERDUE_JOB", "true").lower() == "true"
    OVERDUE_CHECK_INTERVAL_HOURS: int = int(os.getenv("OVERDUE_CHECK_INTERVAL_HOURS", "24"))

    CORS_ORIGINS: list = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]


settings = Settings()
