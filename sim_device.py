"""VMC controller simulator.

Serves the 15 sensor holding registers over Modbus TCP so the API and the
recorder can run without the real controller:
1. Registers start from plausible raw values (about 21 °C, 45 %RH, 800 ppm...).
2. Every UPDATE_INTERVAL seconds each register random-walks a little.
3. Point the backend at it with MODBUS__HOST=127.0.0.1 MODBUS__PORT=5020.

Requires: pip install pymodbus
"""

import asyncio, random, logging, sys
from pymodbus.datastore import ModbusSequentialDataBlock, ModbusDeviceContext, ModbusServerContext
from pymodbus.server import StartAsyncTcpServer

# --- CONFIG ---
LISTEN_HOST = '0.0.0.0'
LISTEN_PORT = 5020
UPDATE_INTERVAL = 2     # seconds
HOLDING = 3             # function code used for holding registers
STEP = 40               # max raw change per update

# raw counts, full scale 16709 (see vmc_api.conversion)
INITIAL = [
    4000,                       # VOC
    6000, 6200, 5800, 6100,     # airflow 1-4
    13370, 7500,                # temperature / humidity 1
    13400, 7600,
    13300, 7400,
    13450, 7700,
    13370,                      # ambient
    13400,                      # CO2 (~80 % of full scale)
]

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')
log = logging.getLogger('sim_device')

def build_context():
    block = ModbusSequentialDataBlock(0, [0] * 100)
    device = ModbusDeviceContext(hr=block)
    context = ModbusServerContext(devices=device, single=True)
    context[0].setValues(HOLDING, 0, INITIAL)
    return context

def drift(values):
    out = []
    for v in values:
        v += random.randint(-STEP, STEP)
        out.append(max(0, min(16709, v)))
    return out

async def update_loop(context):
    while True:
        await asyncio.sleep(UPDATE_INTERVAL)
        current = context[0].getValues(HOLDING, 0, count=len(INITIAL))
        new = drift(current)
        context[0].setValues(HOLDING, 0, new)
        log.info('[SIM] registers %s', new)

async def main():
    context = build_context()
    log.info('[SIM] Modbus TCP on %s:%d', LISTEN_HOST, LISTEN_PORT)
    await asyncio.gather(
        StartAsyncTcpServer(context=context, address=(LISTEN_HOST, LISTEN_PORT)),
        update_loop(context),
    )

if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print('[MAIN] stopping...')
        sys.exit(0)
