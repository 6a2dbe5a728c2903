from sqlalchemy import Column, BigInteger, Integer, String, Text, Float, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .db import Base

class User(Base):
    __tablename__ = "Utilisateur"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    login = Column(String(64), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(String(32), default="user", nullable=False)
    # last issued JWT; cleared on logout
    token = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sessions = relationship("MeasurementSession", back_populates="user")

class MeasurementSession(Base):
    __tablename__ = "SessionMesure"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True))
    interval = Column(Integer, nullable=False, default=30)  # seconds
    user_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("Utilisateur.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="sessions")
    measurements = relationship(
        "Measurement", back_populates="session",
        cascade="all, delete-orphan", order_by="Measurement.id",
    )

class Measurement(Base):
    __tablename__ = "Mesure"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    session_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("SessionMesure.id"), nullable=False, index=True)
    capteur_id = Column(Integer, nullable=False)
    value = Column(Float, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    session = relationship("MeasurementSession", back_populates="measurements")
