"""Headless session recorder.

Polls the VMC controller over Modbus on a fixed interval and stores every
converted reading into a recording session owned by an existing user.

    python -m recorder.run --login alice --name "night" --description "fans off" --interval 30
"""
import argparse, asyncio, logging
from asyncio import sleep
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from vmc_api.db import SessionLocal, init_models
from vmc_api.models import User, MeasurementSession, Measurement
from vmc_api.conversion import SENSOR_CONFIG, convert_registers
from vmc_api.modbus_client import read_holding_registers, ModbusReadError

RECONNECT_DELAY = 3

logger = logging.getLogger("recorder")

async def start_session(db: AsyncSession, login: str, name: str, description: str, interval: int) -> MeasurementSession:
    res = await db.execute(select(User).where(User.login == login))
    user = res.scalar_one_or_none()
    if not user:
        raise LookupError(f"unknown user {login!r}")
    s = MeasurementSession(
        name=name, description=description, interval=interval,
        started_at=datetime.now(timezone.utc), user_id=user.id,
    )
    db.add(s)
    await db.commit()
    return s

async def record_once(db: AsyncSession, session: MeasurementSession, read=read_holding_registers) -> int:
    values = await read(len(SENSOR_CONFIG))
    readings = convert_registers(values)
    db.add_all([
        Measurement(session_id=session.id, capteur_id=r.capteur_id, value=r.value, timestamp=r.timestamp)
        for r in readings
    ])
    await db.commit()
    return len(readings)

async def end_session(db: AsyncSession, session: MeasurementSession):
    session.ended_at = datetime.now(timezone.utc)
    await db.commit()

async def record(login: str, name: str, description: str, interval: int, samples: int = 0, read=read_holding_registers):
    """Record until `samples` polls succeeded (0 = forever), then end the session."""
    await init_models()

    async with SessionLocal() as db:
        session = await start_session(db, login, name, description, interval)
        session_id = session.id
        logger.info("recording session %s '%s' every %ss", session_id, name, interval)
        done = 0
        try:
            while not samples or done < samples:
                try:
                    n = await record_once(db, session, read)
                except (ModbusReadError, ValueError) as e:
                    logger.warning("poll failed (%s), retrying in %ss", e, RECONNECT_DELAY)
                    await sleep(RECONNECT_DELAY)
                    continue
                done += 1
                logger.info("sample %d: %d readings stored", done, n)
                if not samples or done < samples:
                    await sleep(interval)
        finally:
            # drop whatever a failed commit left pending before closing the session
            await db.rollback()
            await end_session(db, session)
            logger.info("session %s ended after %d samples", session_id, done)
    return session_id

def main():
    parser = argparse.ArgumentParser(description="Record VMC sensor readings into a session.")
    parser.add_argument("--login", required=True, help="Owner of the session")
    parser.add_argument("--name", required=True)
    parser.add_argument("--description", default="recorded by recorder")
    parser.add_argument("--interval", type=int, default=30, help="Seconds between polls")
    parser.add_argument("--samples", type=int, default=0, help="Stop after N polls (0 = until Ctrl+C)")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    if args.interval < 1:
        parser.error("--interval must be at least 1 second")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        asyncio.run(record(args.login, args.name, args.description, args.interval, args.samples))
    except KeyboardInterrupt:
        logger.info("stopped")
    except LookupError as e:
        raise SystemExit(str(e))

if __name__ == "__main__":
    main()
