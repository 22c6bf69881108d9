"""Configuration data models."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator
from sqlalchemy.engine import URL


class GatewaySettings(BaseModel):
    name: str = "whitelist-gateway"
    log_level: Literal["debug", "info", "warning", "error"] = "info"


class DatabaseConfig(BaseModel):
    url: Optional[str] = None  # Overrides the individual fields below
    driver: str = "mysql+pymysql"
    host: str = "127.0.0.1"
    port: int = 3306
    database: str = "minecraft"
    username: str = "root"
    password: str = "root"
    pool_size: int = 10

    def sqlalchemy_url(self) -> str:
        """Build the connection URL handed to SQLAlchemy."""
        if self.url:
            return self.url

        return URL.create(
            self.driver,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        ).render_as_string(hide_password=False)


class TimeoutConfig(BaseModel):
    request_timeout: float = Field(60, gt=0)  # seconds
    sweep_interval: float = Field(30, gt=0)
    sweep_max_age: float = Field(90, gt=0)

    @model_validator(mode="after")
    def _sweep_outlives_requests(self) -> "TimeoutConfig":
        # Timed-out rows must survive long enough to be reclaimed by a returning user
        if self.sweep_max_age <= self.request_timeout:
            raise ValueError(
                "sweep_max_age must be greater than request_timeout "
                f"({self.sweep_max_age} <= {self.request_timeout})"
            )
        return self


class MessagesConfig(BaseModel):
    request_created: str = (
        "You are not on the whitelist, but an administrator can approve your "
        "temporary login request.\nThe request stays open for {timeout} seconds, "
        "reconnect later to see the result."
    )
    pending: str = "Your temporary login request is awaiting review, please try again later."
    rejected: str = "Your temporary login request was rejected by an administrator."
    internal_error: str = "Server error, please contact an administrator."


class GatewayConfig(BaseModel):
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    messages: MessagesConfig = Field(default_factory=MessagesConfig)
