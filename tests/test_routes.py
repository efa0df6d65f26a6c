PASSWORD = "Password123"


def _error_kind(response):
    body = response.get_json()
    assert body["success"] is False
    return body["error"]["kind"]


def test_register_login_and_me(client):
    payload = {
        "username": "kimi",
        "email": "kimi@f1fans.org",
        "password": PASSWORD,
        "display_name": "Iceman",
    }
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201
    assert response.get_json()["data"]["user"]["display_name"] == "Iceman"

    duplicate = client.post("/api/auth/register", json=payload)
    assert duplicate.status_code == 400
    assert "username" in duplicate.get_json()["error"]["details"]

    wrong = client.post(
        "/api/auth/login", json={"username": "kimi", "password": "Nope12345"}
    )
    assert wrong.status_code == 401

    login = client.post(
        "/api/auth/login", json={"username": "kimi@f1fans.org", "password": PASSWORD}
    )
    assert login.status_code == 200
    token = login.get_json()["data"]["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["data"]["email"] == "kimi@f1fans.org"


def test_protected_routes_require_a_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/dashboard", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert _error_kind(response) == "unauthorized"


def test_weak_password_is_rejected(client):
    response = client.post(
        "/api/auth/register",
        json={"username": "rookie", "email": "rookie@f1fans.org", "password": "short"},
    )
    assert response.status_code == 400
    assert _error_kind(response) == "validation"


def test_race_admin_endpoints(client, make):
    admin = make.headers(make.user("admin", is_admin=True))
    fan = make.headers(make.user("fan"))
    body = {
        "name": "Italian Grand Prix",
        "circuit": "Monza",
        "country": "Italy",
        "round": 16,
        "race_date": "2027-09-05T13:00:00Z",
        "is_sprint": False,
    }

    assert client.post("/api/races", json=body, headers=fan).status_code == 403

    created = client.post("/api/races", json=body, headers=admin)
    assert created.status_code == 201
    race = created.get_json()["data"]
    assert race["season"] == 2027

    missing_round = client.post(
        "/api/races", json={k: v for k, v in body.items() if k != "round"}, headers=admin
    )
    assert missing_round.status_code == 400
    assert "round" in missing_round.get_json()["error"]["details"]

    assert (
        client.post("/api/races", json=body, headers=admin).status_code == 409
    )

    bad_transition = client.patch(
        f"/api/races/{race['id']}/status", json={"status": "completed"}, headers=admin
    )
    assert bad_transition.status_code == 400
    assert _error_kind(bad_transition) == "state"

    renamed = client.put(
        f"/api/races/{race['id']}", json={"city": "Monza"}, headers=admin
    )
    assert renamed.status_code == 200
    assert renamed.get_json()["data"]["name"] == "Italian Grand Prix"
    assert renamed.get_json()["data"]["city"] == "Monza"


def test_missing_race_is_404(client):
    response = client.get("/api/races/999")
    assert response.status_code == 404
    assert _error_kind(response) == "not_found"


def test_results_and_predictions_over_http(client, make, pilots):
    admin = make.headers(make.user("admin", is_admin=True))
    fan = make.headers(make.user("fan"))
    race_id = make.race()

    submitted = client.post(
        f"/api/predictions/races/{race_id}",
        json={"items": [{"pilot_id": pilots[0], "position": 1}]},
        headers=fan,
    )
    assert submitted.status_code == 201

    mine = client.get(f"/api/predictions/races/{race_id}/me", headers=fan)
    assert mine.get_json()["data"]["id"] == submitted.get_json()["data"]["id"]

    duplicate_positions = client.post(
        f"/api/races/{race_id}/results",
        json={
            "results": [
                {"pilot_id": pilots[0], "position": 1},
                {"pilot_id": pilots[1], "position": 1},
            ]
        },
        headers=admin,
    )
    assert duplicate_positions.status_code == 400

    saved = client.post(
        f"/api/races/{race_id}/results",
        json={"results": [{"pilot_id": pilots[0], "position": 1, "fastest_lap": True}]},
        headers=admin,
    )
    assert saved.status_code == 200
    assert saved.get_json()["data"]["status"] == "completed"

    late = client.post(
        f"/api/predictions/races/{race_id}",
        json={"items": [{"pilot_id": pilots[1], "position": 1}]},
        headers=fan,
    )
    assert late.status_code == 400
    assert _error_kind(late) == "state"

    results = client.get(f"/api/races/{race_id}/results").get_json()["data"]
    assert results["results"][0]["pilot"]["id"] == pilots[0]

    recent = client.get("/api/dashboard/predictions?limit=3", headers=fan)
    assert recent.get_json()["data"][0]["points_earned"] == 35


def test_league_flow_over_http(client, make):
    owner = make.headers(make.user("owner"))
    guest = make.headers(make.user("guest"))

    created = client.post(
        "/api/leagues", json={"name": "Pit Wall", "is_public": False}, headers=owner
    )
    assert created.status_code == 201
    league = created.get_json()["data"]

    joined = client.post(
        "/api/leagues/join", json={"invite_code": league["invite_code"]}, headers=guest
    )
    assert joined.status_code == 201

    again = client.post(
        "/api/leagues/join", json={"invite_code": league["invite_code"]}, headers=guest
    )
    assert again.status_code == 409
    assert _error_kind(again) == "conflict"

    leave = client.post(f"/api/leagues/{league['id']}/leave", headers=owner)
    assert leave.status_code == 400

    forbidden = client.put(
        f"/api/leagues/{league['id']}", json={"name": "Hijacked"}, headers=guest
    )
    assert forbidden.status_code == 403

    ranking = client.get(f"/api/leagues/{league['id']}/ranking").get_json()["data"]
    assert [m["rank"] for m in ranking["ranking"]] == [1, 2]

    by_slug = client.get("/api/leagues/slug/pit-wall", headers=guest).get_json()["data"]
    assert by_slug["is_member"] is True
    assert "invite_code" not in by_slug

    mine = client.get("/api/leagues/user", headers=guest).get_json()["data"]
    assert [item["slug"] for item in mine] == ["pit-wall"]


def test_pilots_and_unknown_urls(client, pilots):
    response = client.get("/api/pilots")
    assert response.status_code == 200
    assert len(response.get_json()["data"]) == 22

    missing = client.get("/api/nowhere")
    assert missing.status_code == 404
    assert _error_kind(missing) == "http"


def test_json_fields_must_have_json_types(client, make, pilots):
    fan = make.headers(make.user("fan"))
    race_id = make.race()

    league = client.post(
        "/api/leagues", json={"name": "Quoted Bools", "is_public": "false"}, headers=fan
    )
    assert league.status_code == 400
    assert "is_public" in league.get_json()["error"]["details"]

    prediction = client.post(
        f"/api/predictions/races/{race_id}",
        json={"items": [{"pilot_id": pilots[0], "position": 1}], "league_id": 1.9},
        headers=fan,
    )
    assert prediction.status_code == 400
    assert "league_id" in prediction.get_json()["error"]["details"]

    draft = client.post(
        f"/api/predictions/races/{race_id}",
        json={"items": [{"pilot_id": pilots[0], "position": 1}], "draft": True},
        headers=fan,
    )
    assert draft.status_code == 201
    assert draft.get_json()["data"]["status"] == "draft"
