from conftest import register, login, bearer


def new_session(client, token, **extra):
    body = {"nom": "morning", "description": "office, fans at 40%", **extra}
    r = client.post("/api/session", json=body, headers=bearer(token))
    assert r.status_code == 201, r.text
    return r.json()["data"]["session_id"]


def measurements(*ids):
    return {"data": [
        {"capteur_id": cid, "timestamp": "2025-03-12T08:30:00Z", "value": 21.5 + cid}
        for cid in ids
    ]}


def test_create_session(client, token):
    sid = new_session(client, token, date_debut="2025-03-12 08:30:00", intervalle=10)
    r = client.get(f"/api/session/{sid}", headers=bearer(token))
    assert r.status_code == 200
    body = r.json()
    assert body["nom"] == "morning"
    assert body["intervalle"] == 10
    assert body["date_debut"].startswith("2025-03-12T08:30:00")
    assert body["date_fin"] is None
    assert body["mesures"] == []


def test_create_session_validation(client, token):
    r = client.post("/api/session", json={"nom": "", "description": "x"}, headers=bearer(token))
    assert r.status_code == 422
    r = client.post("/api/session", json={"nom": "a", "description": "x", "intervalle": 0}, headers=bearer(token))
    assert r.status_code == 422


def test_add_data_and_read_back(client, token):
    sid = new_session(client, token)
    r = client.post(f"/api/session/{sid}/data", json=measurements(1, 6, 15), headers=bearer(token))
    assert r.status_code == 201
    assert r.json()["data"]["count"] == 3

    body = client.get(f"/api/session/{sid}", headers=bearer(token)).json()
    assert [m["capteur_id"] for m in body["mesures"]] == [1, 6, 15]
    assert body["mesures"][1]["value"] == 27.5


def test_unknown_capteur_rejected(client, token):
    sid = new_session(client, token)
    r = client.post(f"/api/session/{sid}/data", json=measurements(1, 99), headers=bearer(token))
    assert r.status_code == 400
    body = client.get(f"/api/session/{sid}", headers=bearer(token)).json()
    assert body["mesures"] == []


def test_end_session_is_final(client, token):
    sid = new_session(client, token)
    r = client.put(f"/api/session/fin/{sid}", headers=bearer(token))
    assert r.status_code == 200
    assert r.json()["date_fin"] is not None

    assert client.put(f"/api/session/fin/{sid}", headers=bearer(token)).status_code == 409
    r = client.post(f"/api/session/{sid}/data", json=measurements(1), headers=bearer(token))
    assert r.status_code == 409


def test_sessions_are_private(client, token):
    sid = new_session(client, token)
    register(client, login="mallory")
    other = login(client, login="mallory")
    client.cookies.clear()

    assert client.get(f"/api/session/{sid}", headers=bearer(other)).status_code == 404
    assert client.put(f"/api/session/fin/{sid}", headers=bearer(other)).status_code == 404
    assert client.post(f"/api/session/{sid}/data", json=measurements(1), headers=bearer(other)).status_code == 404
    assert client.get("/api/session", headers=bearer(other)).json() == []


def test_list_sessions_newest_first(client, token):
    first = new_session(client, token, nom="first")
    second = new_session(client, token, nom="second")
    rows = client.get("/api/session", headers=bearer(token)).json()
    assert [row["id"] for row in rows] == [second, first]


def test_missing_session(client, token):
    assert client.get("/api/session/12345", headers=bearer(token)).status_code == 404
