import asyncio, socket

import pytest
from pymodbus.datastore import ModbusDeviceContext, ModbusSequentialDataBlock, ModbusServerContext
from pymodbus.server import ModbusTcpServer

import sim_device
from vmc_api import modbus_client
from vmc_api.conversion import SENSOR_CONFIG, convert_registers
from vmc_api.modbus_client import ModbusReadError, read_holding_registers


def free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def target(monkeypatch):
    port = free_port()
    monkeypatch.setattr(modbus_client, "MODBUS_HOST", "127.0.0.1")
    monkeypatch.setattr(modbus_client, "MODBUS_PORT", port)
    monkeypatch.setattr(modbus_client, "MODBUS_TIMEOUT", 1.0)
    return port


def read_from(context, port, count, address=0):
    async def go():
        server = ModbusTcpServer(context, address=("127.0.0.1", port))
        await server.serve_forever(background=True)
        try:
            return await read_holding_registers(count, address)
        finally:
            await server.shutdown()
    return asyncio.run(go())


def test_unreachable_device(target):
    # nothing listens on the port
    with pytest.raises(ModbusReadError, match="unreachable"):
        asyncio.run(read_holding_registers(len(SENSOR_CONFIG)))


def test_simulator_roundtrip(target):
    values = read_from(sim_device.build_context(), target, len(SENSOR_CONFIG))

    assert values == sim_device.INITIAL
    readings = {r.name: r.value for r in convert_registers(values)}
    assert readings["Temperature 1"] == pytest.approx(21.01, abs=0.01)
    assert readings["Humidity 1"] == pytest.approx(44.89, abs=0.01)


def test_read_past_block(target):
    # 100-register block: a 15-register read at 90 comes back short
    with pytest.raises(ModbusReadError, match="short register block"):
        read_from(sim_device.build_context(), target, 15, address=90)


def test_error_response(target, monkeypatch):
    device = ModbusDeviceContext(hr=ModbusSequentialDataBlock(0, [0] * 100))
    context = ModbusServerContext(devices={1: device}, single=False)
    monkeypatch.setattr(modbus_client, "MODBUS_DEVICE_ID", 7)

    with pytest.raises(ModbusReadError, match="error response"):
        read_from(context, target, len(SENSOR_CONFIG))
