"""
Data models for the LibreLinkUp API and the exporter itself.

Wire models mirror the JSON returned by the service and use field aliases
for its camel/Pascal case names. Timestamps are converted to timezone-aware
UTC datetimes during validation; a malformed timestamp fails validation of
the enclosing payload.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import TIMESTAMP_PATTERN, GlucoseUnits, TrendArrow


def parse_timestamp(value: str) -> datetime:
    """
    Parse a LibreLinkUp timestamp such as ``"9/7/2025 6:01:03 PM"``.

    The service sends no timezone information; the value is taken as UTC.

    Raises:
        ValueError: If the string does not match the expected format
    """
    match = TIMESTAMP_PATTERN.fullmatch(value)
    if match is None:
        raise ValueError(f"Invalid timestamp '{value}'")

    month, day, year, hour, minute, second = (int(g) for g in match.groups()[:6])
    if not 1 <= hour <= 12:
        raise ValueError(f"Invalid hour in timestamp '{value}'")

    # 12 AM is midnight, 12 PM is noon
    hour %= 12
    if match.group(7) == "PM":
        hour += 12
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


def hash_user_id(user_id: str) -> str:
    """Return the SHA-256 hex digest sent as the ``account-id`` header."""
    return hashlib.sha256(user_id.encode("utf-8")).hexdigest()


# =============================================================================
# Authentication
# =============================================================================

class AuthTicket(BaseModel):
    """Bearer token issued by the service."""

    token: str
    expires: Optional[datetime] = None
    duration: timedelta = timedelta(0)

    @field_validator("expires", mode="before")
    @classmethod
    def convert_expires(cls, v: Any) -> Any:
        """Expiry arrives as integer seconds since the epoch."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            try:
                return datetime.fromtimestamp(v, tz=timezone.utc)
            except (OverflowError, OSError) as e:
                raise ValueError(f"expires out of range: {v}") from e
        return v

    @field_validator("duration", mode="before")
    @classmethod
    def convert_duration(cls, v: Any) -> Any:
        """Duration arrives as integer milliseconds."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            try:
                return timedelta(milliseconds=v)
            except OverflowError as e:
                raise ValueError(f"duration out of range: {v}") from e
        return v


class User(BaseModel):
    """Account owner as returned by the login call."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    country: Optional[str] = None


class AuthResponse(BaseModel):
    """Payload of a successful login."""

    model_config = ConfigDict(populate_by_name=True)

    user: User
    auth_ticket: AuthTicket = Field(..., alias="authTicket")


@dataclass(frozen=True)
class SessionCredentials:
    """Credentials held in memory for the lifetime of the process."""

    token: str
    account_id: str
    expires: Optional[datetime] = None

    @classmethod
    def from_user(
        cls,
        user_id: str,
        token: str,
        expires: Optional[datetime] = None,
    ) -> "SessionCredentials":
        """Build credentials from the remote user id and its token."""
        return cls(token=token, account_id=hash_user_id(user_id), expires=expires)


# =============================================================================
# Envelope
# =============================================================================

class ErrorDetail(BaseModel):
    """Error block of a rejected response."""

    message: str = ""


class Envelope(BaseModel):
    """Outer wrapper of every LibreLinkUp response."""

    status: int
    data: Any = None
    ticket: Optional[AuthTicket] = None
    error: Optional[ErrorDetail] = None


class RedirectPayload(BaseModel):
    """Payload sent instead of the expected one when the account lives in another region."""

    redirect: bool = False
    region: str = ""


# =============================================================================
# Glucose Data
# =============================================================================

class GlucoseMeasurement(BaseModel):
    """A single glucose reading."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(..., alias="FactoryTimestamp")
    value: float = Field(..., alias="Value")
    value_in_mg_per_dl: Optional[float] = Field(None, alias="ValueInMgPerDl")
    glucose_units: Optional[GlucoseUnits] = Field(None, alias="GlucoseUnits")
    measurement_color: Optional[int] = Field(None, alias="MeasurementColor")
    trend_arrow: int = Field(TrendArrow.NONE, alias="TrendArrow")
    trend_message: Optional[str] = Field(None, alias="TrendMessage")
    is_high: bool = Field(False, alias="isHigh")
    is_low: bool = Field(False, alias="isLow")
    type: Optional[int] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_factory_timestamp(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_timestamp(v)
        return v

    @property
    def trend(self) -> Optional[TrendArrow]:
        """Trend code as an enum, None for codes the service has not documented."""
        try:
            return TrendArrow(self.trend_arrow)
        except ValueError:
            return None


class Connection(BaseModel):
    """A person whose glucose data the account follows."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    patient_id: str = Field(..., alias="patientId")
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: Optional[str] = None
    glucose_measurement: Optional[GlucoseMeasurement] = Field(None, alias="glucoseMeasurement")
    glucose_item: Optional[GlucoseMeasurement] = Field(None, alias="glucoseItem")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class GraphData(BaseModel):
    """Current reading plus the recent historic series for one connection."""

    model_config = ConfigDict(populate_by_name=True)

    connection: Connection
    graph_data: List[GlucoseMeasurement] = Field(default_factory=list, alias="graphData")

    @property
    def current(self) -> Optional[GlucoseMeasurement]:
        return self.connection.glucose_measurement


# =============================================================================
# Service Responses
# =============================================================================

class HealthResponse(BaseModel):
    """Response body of the root endpoint."""

    status: str
    service: str
    version: str
