"""VMC sensor monitor API.

Run it with uvicorn from the repository root:

    uvicorn vmc_api.main:app --app-dir backend --host 0.0.0.0 --port 8000

or `python -m vmc_api.main` from inside `backend/`.
"""
from fastapi import FastAPI, Depends, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from .db import engine, get_db, init_models
from .models import User, MeasurementSession, Measurement
from .schemas import (
    RegisterIn, RegisterOut, LoginIn, LoginOut, MessageOut, TokenData, CheckAuthOut, UserOut,
    SensorConfigOut, SensorReadingOut, SessionIn, SessionOut, SessionDetailOut,
    MeasurementBatchIn, CreatedOut,
)
from .auth import (
    require_user, hash_password, verify_password, user_token,
    REGISTER_TOKEN_MINUTES, LOGIN_TOKEN_MINUTES,
)
from .conversion import SENSOR_CONFIG, CAPTEUR_IDS, convert_registers
from .modbus_client import read_holding_registers, ModbusReadError, MODBUS_HOST, MODBUS_PORT
from dataclasses import asdict
from datetime import datetime, timezone
from typing import List
import os, time, logging

from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS__ORIGINS", "*").split(",") if o.strip()]
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "0") == "1"

app = FastAPI(title="VMC sensor monitor")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d (%.1f ms)",
        request.method, request.url.path, response.status_code,
        (time.perf_counter() - start) * 1000,
    )
    return response

@app.on_event("startup")
async def on_startup():
    await init_models()
    logger.info("database ready, modbus target %s:%s", MODBUS_HOST, MODBUS_PORT)

@app.on_event("shutdown")
async def on_shutdown():
    await engine.dispose()

@app.get("/api/health")
async def health():
    return {
        "status": "ok",
        "modbus": f"{MODBUS_HOST}:{MODBUS_PORT}",
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }

# --- auth ---

@app.post("/api/register", response_model=RegisterOut, status_code=201)
async def register(body: RegisterIn, db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(User).where(User.login == body.login))
    if res.scalar_one_or_none():
        logger.info("register refused, %s already exists", body.login)
        raise HTTPException(status_code=409, detail="User already exists")
    password_hash = await run_in_threadpool(hash_password, body.password)
    user = User(login=body.login, password_hash=password_hash, role=body.role or "user")
    db.add(user)
    try:
        await db.flush()  # need the id for the token claims
        user.token = user_token(user, minutes=REGISTER_TOKEN_MINUTES)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="User already exists")
    logger.info("user %s created (id=%s, role=%s)", user.login, user.id, user.role)
    return RegisterOut(message="User created", token=user.token)

@app.post("/api/login", response_model=LoginOut)
async def login(body: LoginIn, response: Response, db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(User).where(User.login == body.login))
    user = res.scalar_one_or_none()
    if not user:
        logger.warning("login failed, unknown user %s", body.login)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not await run_in_threadpool(verify_password, body.password, user.password_hash):
        logger.warning("login failed, wrong password for %s", body.login)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = user_token(user, minutes=LOGIN_TOKEN_MINUTES)
    user.token = token
    await db.commit()
    response.set_cookie(
        "token", token,
        max_age=LOGIN_TOKEN_MINUTES * 60,
        samesite="lax",
        secure=COOKIE_SECURE,
    )
    logger.info("user %s logged in", user.login)
    return LoginOut(message="Login successful", data=TokenData(token=token))

@app.post("/api/logout", response_model=MessageOut)
async def logout(response: Response, user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    # same request-scoped session as require_user
    user.token = None
    await db.commit()
    response.delete_cookie("token")
    logger.info("user %s logged out", user.login)
    return MessageOut(message="Logged out")

@app.get("/api/check-auth", response_model=CheckAuthOut)
async def check_auth(user: User = Depends(require_user)):
    return CheckAuthOut(user=UserOut.model_validate(user))

@app.get("/api/get-token/{user_id}", response_model=TokenData)
async def get_token(user_id: int, user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    if user.id != user_id and user.role != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")
    target = await db.get(User, user_id)
    if not target or not target.token:
        raise HTTPException(status_code=404, detail="Token not found")
    return TokenData(token=target.token)

# --- sensors ---

async def get_register_reader():
    return read_holding_registers

@app.get("/api/capteurs/config", response_model=List[SensorConfigOut], dependencies=[Depends(require_user)])
async def sensor_config():
    return [{"capteur_id": c.capteur_id, **asdict(c)} for c in SENSOR_CONFIG]

@app.get("/api/capteurs", response_model=List[SensorReadingOut], dependencies=[Depends(require_user)])
@app.get("/api/capteur", response_model=List[SensorReadingOut], dependencies=[Depends(require_user)], include_in_schema=False)
async def read_sensors(read=Depends(get_register_reader)):
    """Read every configured register and return converted values.

    One Modbus round trip per call; clients poll this every 5-30 s.
    """
    try:
        values = await read(len(SENSOR_CONFIG))
    except ModbusReadError as e:
        logger.error("modbus read failed: %s", e)
        raise HTTPException(status_code=503, detail="Modbus read failed")
    try:
        readings = convert_registers(values)
    except ValueError as e:
        logger.error("bad register block: %s", e)
        raise HTTPException(status_code=502, detail="Unexpected register count from device")
    logger.debug("raw registers %s", values)
    return readings

# --- recording sessions ---

def _session_out(s: MeasurementSession) -> dict:
    return {
        "id": s.id,
        "nom": s.name,
        "description": s.description,
        "date_debut": s.started_at,
        "date_fin": s.ended_at,
        "intervalle": s.interval,
        "user_id": s.user_id,
    }

async def _owned_session(db: AsyncSession, session_id: int, user: User, with_measurements: bool = False) -> MeasurementSession:
    q = select(MeasurementSession).where(
        MeasurementSession.id == session_id, MeasurementSession.user_id == user.id
    )
    if with_measurements:
        q = q.options(selectinload(MeasurementSession.measurements))
    res = await db.execute(q)
    s = res.scalar_one_or_none()
    if not s:
        raise HTTPException(status_code=404, detail="Session not found")
    return s

@app.post("/api/session", response_model=CreatedOut, status_code=201)
async def create_session(body: SessionIn, user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    s = MeasurementSession(
        name=body.nom,
        description=body.description,
        started_at=body.date_debut or datetime.now(timezone.utc),
        interval=body.intervalle,
        user_id=user.id,
    )
    db.add(s)
    await db.commit()
    logger.info("session %s '%s' started by %s", s.id, s.name, user.login)
    return CreatedOut(message="Session created", data={"session_id": s.id})

@app.post("/api/session/{session_id}/data", response_model=CreatedOut, status_code=201)
async def add_session_data(session_id: int, body: MeasurementBatchIn, user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    s = await _owned_session(db, session_id, user)
    if s.ended_at is not None:
        raise HTTPException(status_code=409, detail="Session already ended")
    unknown = sorted({m.capteur_id for m in body.data} - CAPTEUR_IDS)
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown capteur_id: {unknown}")
    db.add_all([
        Measurement(session_id=s.id, capteur_id=m.capteur_id, value=m.value, timestamp=m.timestamp)
        for m in body.data
    ])
    await db.commit()
    logger.info("session %s: %d measurements stored", s.id, len(body.data))
    return CreatedOut(message="Measurements saved", data={"count": len(body.data)})

@app.put("/api/session/fin/{session_id}", response_model=SessionOut)
async def end_session(session_id: int, user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    s = await _owned_session(db, session_id, user)
    if s.ended_at is not None:
        raise HTTPException(status_code=409, detail="Session already ended")
    s.ended_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("session %s ended", s.id)
    return _session_out(s)

@app.get("/api/session", response_model=List[SessionOut])
async def list_sessions(user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    res = await db.execute(
        select(MeasurementSession)
        .where(MeasurementSession.user_id == user.id)
        .order_by(MeasurementSession.id.desc())
    )
    return [_session_out(s) for s in res.scalars().all()]

@app.get("/api/session/{session_id}", response_model=SessionDetailOut)
async def get_session(session_id: int, user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    s = await _owned_session(db, session_id, user, with_measurements=True)
    return {**_session_out(s), "mesures": s.measurements}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("vmc_api.main:app", host=os.getenv("API__HOST", "0.0.0.0"), port=int(os.getenv("API__PORT", "8000")))
