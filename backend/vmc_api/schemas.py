from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal
from datetime import datetime

class LoginIn(BaseModel):
    login: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6)

    @field_validator("login", mode="before")
    @classmethod
    def strip_login(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def bcrypt_limit(cls, v: str):
        # bcrypt refuses secrets longer than 72 bytes
        if len(v.encode()) > 72:
            raise ValueError("password longer than 72 bytes")
        return v

class RegisterIn(LoginIn):
    role: Literal["user", "admin"] | None = None

class RegisterOut(BaseModel):
    message: str
    token: str

class TokenData(BaseModel):
    token: str

class LoginOut(BaseModel):
    message: str
    data: TokenData

class MessageOut(BaseModel):
    message: str

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    login: str
    role: str

class CheckAuthOut(BaseModel):
    authenticated: bool = True
    user: UserOut

class SensorConfigOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    capteur_id: int
    address: int
    name: str
    unit: str
    min: float
    max: float
    kind: str

class SensorReadingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    capteur_id: int
    name: str
    unit: str
    raw: int
    value: float
    timestamp: datetime

class SessionIn(BaseModel):
    """Body of POST /api/session.

    Example:
    {
        "nom": "Morning run",
        "description": "office, fans at 40%",
        "date_debut": "2025-03-12 08:30:00",
        "intervalle": 30
    }
    """
    nom: str = Field(min_length=1, max_length=128)
    description: str = Field(min_length=1)
    date_debut: datetime | None = None
    intervalle: int = Field(30, ge=1)

class MeasurementIn(BaseModel):
    capteur_id: int
    timestamp: datetime
    value: float

class MeasurementBatchIn(BaseModel):
    data: List[MeasurementIn]

class MeasurementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    capteur_id: int
    timestamp: datetime
    value: float

class SessionOut(BaseModel):
    id: int
    nom: str
    description: str
    date_debut: datetime
    date_fin: datetime | None = None
    intervalle: int
    user_id: int

class SessionDetailOut(SessionOut):
    mesures: List[MeasurementOut] = []

class CreatedOut(BaseModel):
    message: str
    data: Dict[str, Any]
