"""End-to-end tests through the Flask test client."""

from app import CONFIG_ERROR_BODY, create_app
from identity import SessionIdentity
from store import document_path


def declare_times(client, day, times):
    for _ in range(times):
        response = client.post(f"/days/{day}/declare")
        assert response.status_code == 200
    return response


class TestConfigurationError:
    def test_every_route_refuses(self, tmp_path):
        app = create_app(environ={"DATABASE_URL": f"sqlite:///{tmp_path / 'x.db'}"})
        client = app.test_client()
        for method, url in [("get", "/"), ("post", "/register"), ("get", "/days/1"), ("get", "/nope")]:
            response = getattr(client, method)(url)
            assert response.status_code == 503
            assert response.get_json() == CONFIG_ERROR_BODY
        assert not (tmp_path / "x.db").exists()

    def test_host_globals_supply_credentials(self, tmp_path):
        app = create_app(
            host_globals={"__challenge_config": '{"apiKey": "host-key"}', "__app_id": "hosted"},
            environ={"DATABASE_URL": f"sqlite:///{tmp_path / 'x.db'}"},
        )
        response = app.test_client().get("/")
        assert response.status_code == 200
        assert app.extensions["challenge"].config.app_id == "hosted"


class TestRegistration:
    def test_unregistered_index(self, client):
        data = client.get("/").get_json()
        assert data == {"registered": False, "groupSuffix": "셀"}

    def test_blank_group_is_rejected(self, client):
        response = client.post("/register", json={"display_name": "Hana", "group_name": "  "})
        assert response.status_code == 400
        assert client.get("/").get_json()["registered"] is False

    def test_non_text_field_is_rejected(self, client):
        response = client.post("/register", json={"display_name": 5, "group_name": "Abraham"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "validation"

    def test_non_object_body_is_rejected(self, client):
        response = client.post("/register", json=["Hana", "Abraham"])
        assert response.status_code == 400
        assert client.get("/").get_json()["registered"] is False

    def test_suffix_is_appended(self, client):
        response = client.post("/register", data={"display_name": " Hana ", "group_name": "Abraham"})
        assert response.get_json()["profile"] == {"displayName": "Hana", "groupName": "Abraham셀"}

    def test_reregistration_overwrites(self, registered_client):
        registered_client.post("/register", json={"display_name": "Mina", "group_name": "Isaac셀"})
        profile = registered_client.get("/").get_json()["profile"]
        assert profile == {"displayName": "Mina", "groupName": "Isaac셀"}

    def test_day_routes_need_a_profile(self, client):
        assert client.get("/days/1").status_code == 401
        assert client.post("/days/1/declare").status_code == 401


class TestCalendar:
    def test_index_signs_in_and_lists_days(self, registered_client):
        data = registered_client.get("/").get_json()
        assert data["registered"] is True
        assert data["userId"]
        assert data["leadingBlankDays"] == 3
        assert len(data["days"]) == 31
        assert data["days"][0]["unlocked"] is True
        assert data["days"][1]["unlocked"] is False
        assert data["finished"] is False

    def test_identity_is_stable_across_requests(self, registered_client):
        first = registered_client.get("/").get_json()["userId"]
        second = registered_client.get("/").get_json()["userId"]
        assert first == second

    def test_select_day(self, registered_client):
        data = registered_client.get("/days/1").get_json()
        assert data["declaration"] == "나는 하나님의 사랑받는 자녀입니다"
        assert data["prayerTopic"] == "담임목사님을 위해"
        assert data["date"] == "2025-10-01"
        assert data["count"] == 0
        assert data["maxCount"] == 5

    def test_locked_day(self, registered_client):
        response = registered_client.get("/days/2")
        assert response.status_code == 409
        assert response.get_json()["error"] == "previous_incomplete"

    def test_out_of_range_day(self, registered_client):
        response = registered_client.get("/days/32")
        assert response.status_code == 404
        assert response.get_json()["error"] == "out_of_range"


class TestProgress:
    def test_declare_and_pray_unlock_next_day(self, registered_client):
        data = declare_times(registered_client, 1, 5).get_json()
        assert data["count"] == 5
        assert data["completed"] is True
        assert data["fullyCompleted"] is False
        assert registered_client.get("/days/2").status_code == 409

        data = registered_client.post("/days/1/pray").get_json()
        assert data["fullyCompleted"] is True
        assert registered_client.get("/days/2").status_code == 200

    def test_extra_declarations_do_not_count(self, registered_client):
        data = declare_times(registered_client, 1, 7).get_json()
        assert data["count"] == 5

    def test_progress_is_persisted(self, app, registered_client):
        declare_times(registered_client, 1, 2)
        uid = registered_client.get("/").get_json()["userId"]
        with app.app_context():
            doc = app.extensions["challenge"].store.get(document_path("doodeurim-challenge-app", uid, "october2025"))
        assert doc == {"1": {"count": 2, "completed": False, "prayerCompleted": False}}

    def test_finishing_the_challenge(self, app, registered_client):
        uid = registered_client.get("/").get_json()["userId"]
        path = document_path("doodeurim-challenge-app", uid, "october2025")
        with app.app_context():
            app.extensions["challenge"].store.upsert(path, {
                str(d): {"count": 5, "completed": True, "prayerCompleted": True} for d in range(1, 31)
            })
        declare_times(registered_client, 31, 5)
        data = registered_client.post("/days/31/pray").get_json()
        assert data["challengeComplete"] is True
        assert registered_client.get("/").get_json()["finished"] is True


class TestAuth:
    def test_token_sign_in(self, app, client):
        with app.app_context():
            token = SessionIdentity({}, "test-api-key").issue_token("member-7")
        response = client.post("/auth/token", json={"token": token})
        assert response.status_code == 200
        assert response.get_json() == {"userId": "member-7"}
        client.post("/register", json={"display_name": "Hana", "group_name": "Abraham"})
        assert client.get("/").get_json()["userId"] == "member-7"

    def test_bad_token(self, client):
        response = client.post("/auth/token", json={"token": "forged"})
        assert response.status_code == 401

    def test_non_text_token(self, client):
        response = client.post("/auth/token", json={"token": 123})
        assert response.status_code == 401

    def test_non_object_body(self, client):
        assert client.post("/auth/token", json=["token"]).status_code == 400

    def test_logout_forgets_profile_and_identity(self, registered_client):
        first = registered_client.get("/").get_json()["userId"]
        response = registered_client.post("/logout")
        assert response.status_code == 302
        assert registered_client.get("/").get_json()["registered"] is False
        registered_client.post("/register", json={"display_name": "Hana", "group_name": "Abraham"})
        assert registered_client.get("/").get_json()["userId"] != first

    def test_host_token_is_used_for_sign_in(self, tmp_path):
        environ = {
            "CHALLENGE_API_KEY": "host-key",
            "DATABASE_URL": f"sqlite:///{tmp_path / 'x.db'}",
        }
        app = create_app(environ=environ)
        with app.app_context():
            token = SessionIdentity({}, "host-key").issue_token("hosted-user")
        app = create_app(
            host_globals={"__challenge_config": {"apiKey": "host-key"}, "__initial_auth_token": token},
            environ=environ,
        )
        client = app.test_client()
        client.post("/register", json={"display_name": "Hana", "group_name": "Abraham"})
        assert client.get("/").get_json()["userId"] == "hosted-user"


class TestNoPrayerVariant:
    def test_declaration_alone_unlocks(self, environ):
        app = create_app(environ={**environ, "REQUIRE_PRAYER": "false", "GROUP_SUFFIX": ""})
        client = app.test_client()
        data = client.post("/register", json={"display_name": "Hana", "group_name": "Abraham"}).get_json()
        assert data["profile"]["groupName"] == "Abraham"
        declare_times(client, 1, 5)
        assert client.get("/days/2").status_code == 200
        assert client.post("/days/1/pray").status_code == 404
