from enum import Enum

from sqlmodel import Field

from .base import SyncModel, enum_column

SYSTEM_SETTINGS_ID = "system"


class PasswordPolicy(str, Enum):
    STRONG = "strong"
    MEDIUM = "medium"
    BASIC = "basic"


class BackupFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SmtpEncryption(str, Enum):
    TLS = "TLS"
    SSL = "SSL"
    NONE = "None"


class SystemSettings(SyncModel, table=True):
    __tablename__ = "settings"

    # Single row in practice
    id: str = Field(default=SYSTEM_SETTINGS_ID, primary_key=True)

    system_name: str = Field(default="BTS Property Inventory Management System")
    company_name: str = Field(default="")
    time_zone: str = Field(default="UTC")
    date_format: str = Field(default="YYYY-MM-DD")
    maintenance_mode: bool = Field(default=False)

    notifications_low_stock: bool = Field(default=False)
    notifications_new_return: bool = Field(default=False)
    notifications_return_approved: bool = Field(default=False)
    notifications_employee_added: bool = Field(default=False)
    notifications_system_updates: bool = Field(default=False)

    password_policy: PasswordPolicy = Field(default=PasswordPolicy.MEDIUM, sa_type=enum_column(PasswordPolicy))
    session_timeout_minutes: int = Field(default=30)
    max_login_attempts: int = Field(default=5)
    require_two_factor: bool = Field(default=False)
    ip_whitelist_enabled: bool = Field(default=False)
    backup_frequency: BackupFrequency = Field(default=BackupFrequency.MONTHLY, sa_type=enum_column(BackupFrequency))
    last_backup_at: str = Field(default="")

    smtp_server: str = Field(default="")
    smtp_port: str = Field(default="")
    smtp_encryption: SmtpEncryption = Field(default=SmtpEncryption.TLS, sa_type=enum_column(SmtpEncryption))
    smtp_from_email: str = Field(default="")

    api_key: str = Field(default="")
    api_rate_limit: int = Field(default=100)
    api_enabled: bool = Field(default=False)


class SettingsField(str, Enum):
    ID = "id"
