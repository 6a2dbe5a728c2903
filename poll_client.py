"""Headless dashboard client.

Does what the dashboard does, from a terminal:
1. Log in (POST /api/login) to get a JWT.
2. Poll GET /api/capteurs every POLL_INTERVAL seconds and print readings.
3. With --record N: keep the N polls, then save them as a session
   (POST /api/session, POST /api/session/{id}/data, PUT /api/session/fin/{id}).

Requires: pip install requests
"""

import argparse, sys, time, requests

API_BASE = 'http://localhost:8000'
POLL_INTERVAL = 30      # seconds, same as the dashboard

TOKEN = None

# --- HTTP helper ---
def auth_headers():
    return {'Authorization': f'Bearer {TOKEN}'} if TOKEN else {}

def http_post(path, json_body):
    url = API_BASE + path
    try:
        r = requests.post(url, json=json_body, headers=auth_headers(), timeout=5)
        r.raise_for_status()
        return r.json()
    except Exception as e:
        print('[HTTP] POST error', path, e)
        return None

def http_put(path, json_body=None):
    url = API_BASE + path
    try:
        r = requests.put(url, json=json_body, headers=auth_headers(), timeout=5)
        r.raise_for_status()
        return r.json()
    except Exception as e:
        print('[HTTP] PUT error', path, e)
        return None

def http_get(path, params=None):
    url = API_BASE + path
    try:
        r = requests.get(url, headers=auth_headers(), params=params, timeout=10)
        r.raise_for_status()
        return r.json()
    except Exception as e:
        print('[HTTP] GET error', path, e)
        return None

def login(user, password):
    global TOKEN
    resp = http_post('/api/login', {'login': user, 'password': password})
    if not resp:
        print('[AUTH] login failed')
        return False
    TOKEN = resp['data']['token']
    print('[AUTH] logged in as', user)
    return True

def print_readings(rows):
    print(f'--- {time.strftime("%H:%M:%S")} ---')
    for r in rows:
        print(f"  #{r['capteur_id']:>2} {r['name']:<20} {r['value']:>10.4f} {r['unit']}")

def save_session(name, description, recorded):
    resp = http_post('/api/session', {
        'nom': name,
        'description': description,
        'intervalle': POLL_INTERVAL,
    })
    if not resp:
        return None
    session_id = resp['data']['session_id']
    data = [
        {'capteur_id': r['capteur_id'], 'timestamp': r['timestamp'], 'value': r['value']}
        for r in recorded
    ]
    if not http_post(f'/api/session/{session_id}/data', {'data': data}):
        return None
    http_put(f'/api/session/fin/{session_id}')
    print(f'[REC] session {session_id} saved with {len(data)} measurements')
    return session_id

def main():
    global API_BASE, POLL_INTERVAL
    parser = argparse.ArgumentParser(description='Poll the VMC backend like the dashboard does.')
    parser.add_argument('--api', default=API_BASE)
    parser.add_argument('--login', required=True)
    parser.add_argument('--password', required=True)
    parser.add_argument('--interval', type=int, default=POLL_INTERVAL)
    parser.add_argument('--record', type=int, default=0, help='Record N polls into a session, then exit')
    parser.add_argument('--name', default='poll_client')
    parser.add_argument('--description', default='recorded from poll_client.py')
    args = parser.parse_args()
    API_BASE = args.api.rstrip('/')
    POLL_INTERVAL = args.interval

    if not login(args.login, args.password):
        sys.exit(1)

    recorded = []
    polls = 0
    try:
        while True:
            rows = http_get('/api/capteurs')
            if rows:
                print_readings(rows)
                polls += 1
                if args.record:
                    recorded.extend(rows)
                    if polls >= args.record:
                        save_session(args.name, args.description, recorded)
                        break
            time.sleep(POLL_INTERVAL)
    except KeyboardInterrupt:
        print('[MAIN] stopping...')

if __name__ == '__main__':
    main()
