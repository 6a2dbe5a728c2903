import os, logging
from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException

MODBUS_HOST = os.getenv("MODBUS__HOST", "127.0.0.1")
MODBUS_PORT = int(os.getenv("MODBUS__PORT", "502"))
MODBUS_DEVICE_ID = int(os.getenv("MODBUS__DEVICE_ID", "1"))
MODBUS_TIMEOUT = float(os.getenv("MODBUS__TIMEOUT", "3"))

logger = logging.getLogger(__name__)

class ModbusReadError(Exception):
    pass

async def read_holding_registers(count: int, address: int = 0) -> list[int]:
    """Read `count` holding registers from the VMC controller.

    Opens a fresh TCP connection per call and always closes it.
    Raises ModbusReadError when the device is unreachable, answers with an error
    or returns fewer registers than asked.
    """
    client = AsyncModbusTcpClient(MODBUS_HOST, port=MODBUS_PORT, timeout=MODBUS_TIMEOUT)
    try:
        await client.connect()
        if not client.connected:
            raise ModbusReadError(f"Modbus device {MODBUS_HOST}:{MODBUS_PORT} unreachable")
        try:
            rr = await client.read_holding_registers(address, count=count, device_id=MODBUS_DEVICE_ID)
        except ModbusException as e:
            raise ModbusReadError(str(e)) from e
        if rr.isError():
            raise ModbusReadError(f"Modbus error response: {rr}")
        if len(rr.registers) != count:
            raise ModbusReadError(f"short register block: asked {count}, got {len(rr.registers)}")
        logger.debug("registers %d..%d: %s", address, address + count - 1, rr.registers)
        return list(rr.registers)
    finally:
        client.close()
