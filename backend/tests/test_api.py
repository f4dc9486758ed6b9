"""
End-to-end tests of the HTTP and WebSocket API.
"""

import uuid
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from flightbot.main import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    """Register a fresh user and return its bearer header."""
    email = f"user_{uuid.uuid4().hex[:8]}@example.com"
    response = client.post("/api/auth/register", json={
        "name": "Test Traveller",
        "email": email,
        "password": "secret123",
    })
    assert response.status_code == 201
    token = response.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def searched_flight(client):
    """Run a search and return the cheapest flight it found."""
    departure = (date.today() + timedelta(days=14)).isoformat()
    response = client.get(
        "/api/flights/search",
        params={"origin": "JFK", "destination": "LAX", "departure_date": departure},
    )
    assert response.status_code == 200
    return response.json()["data"]["flights"][0]


class TestApp:

    def test_root_and_health(self, client):
        assert client.get("/").json()["status"] == "running"
        assert client.get("/health").json()["status"] == "healthy"

    def test_unknown_route(self, client):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route not found"}


class TestAuth:

    def test_register_login_profile(self, client):
        email = f"jane_{uuid.uuid4().hex[:8]}@example.com"
        registered = client.post("/api/auth/register", json={
            "name": "Jane Doe", "email": email, "password": "secret123",
        })
        assert registered.status_code == 201
        user = registered.json()["data"]["user"]
        assert user["email"] == email
        assert "hashed_password" not in user

        duplicate = client.post("/api/auth/register", json={
            "name": "Jane Doe", "email": email, "password": "secret123",
        })
        assert duplicate.status_code == 400
        assert duplicate.json()["message"] == "User already exists with this email"

        login = client.post("/api/auth/login", json={"email": email.upper(), "password": "secret123"})
        assert login.status_code == 200
        headers = {"Authorization": f"Bearer {login.json()['data']['access_token']}"}

        profile = client.get("/api/auth/profile", headers=headers)
        assert profile.json()["data"]["user"]["name"] == "Jane Doe"
        assert profile.json()["data"]["user"]["last_login"] is not None

    def test_bad_login(self, client):
        response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_register_validation(self, client):
        response = client.post("/api/auth/register", json={"name": "J", "email": "not-an-email", "password": "1"})
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert {e["field"] for e in body["errors"]} >= {"name", "email", "password"}

    def test_update_profile(self, client, auth_headers):
        response = client.put("/api/auth/profile", headers=auth_headers, json={"name": "Renamed"})
        assert response.status_code == 200
        assert response.json()["data"]["user"]["name"] == "Renamed"

    def test_change_password(self, client, auth_headers):
        wrong = client.put("/api/auth/change-password", headers=auth_headers, json={
            "current_password": "wrong", "new_password": "another123",
        })
        assert wrong.status_code == 400
        assert wrong.json()["message"] == "Current password is incorrect"

        ok = client.put("/api/auth/change-password", headers=auth_headers, json={
            "current_password": "secret123", "new_password": "another123",
        })
        assert ok.status_code == 200

    def test_invalid_token(self, client):
        response = client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["message"] == "Could not validate credentials"

    def test_logout(self, client, auth_headers):
        assert client.post("/api/auth/logout", headers=auth_headers).json()["success"] is True


class TestFlights:

    def test_search(self, client):
        departure = (date.today() + timedelta(days=10)).isoformat()
        response = client.get("/api/flights/search", params={
            "origin": "sfo", "destination": "sea", "departure_date": departure, "passengers": 2,
        })
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == len(data["flights"]) > 0
        assert data["search_params"]["origin"] == "SFO"
        assert data["message"].startswith("Found")

        flight_id = data["flights"][0]["flight_id"]
        detail = client.get(f"/api/flights/{flight_id}")
        assert detail.json()["data"]["flight"]["flight_id"] == flight_id

    def test_search_validation(self, client):
        past = (date.today() - timedelta(days=1)).isoformat()
        response = client.get("/api/flights/search", params={
            "origin": "JFK", "destination": "LAX", "departure_date": past,
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

        missing = client.get("/api/flights/search", params={"origin": "JFK"})
        assert missing.status_code == 400

    def test_reference_data(self, client):
        airports = client.get("/api/flights/airports", params={"search": "paris"}).json()["data"]["airports"]
        assert "CDG" in [a["code"] for a in airports]
        assert client.get("/api/flights/airlines").json()["data"]["airlines"]
        assert client.get("/api/flights/popular").json()["data"]["destinations"]

    def test_status_and_price_alerts(self, client):
        status = client.get("/api/flights/status/ua100").json()["data"]["status"]
        assert status["flight_number"] == "UA100"

        alerts = client.get("/api/flights/price-alerts", params={"origin": "jfk", "destination": "mia"})
        assert alerts.json()["data"]["route"] == "JFK-MIA"

        missing = client.get("/api/flights/price-alerts", params={"origin": "JFK"})
        assert missing.status_code == 400
        assert missing.json()["message"] == "Origin and destination are required"

    def test_unknown_flight(self, client):
        response = client.get("/api/flights/does-not-exist")
        assert response.status_code == 404
        assert response.json()["message"] == "Flight not found"


class TestBookings:

    def test_lifecycle(self, client, auth_headers, searched_flight, booking_payload):
        email = f"guest_{uuid.uuid4().hex[:6]}@example.com"
        created = client.post(
            "/api/bookings", headers=auth_headers,
            json=booking_payload(searched_flight["flight_id"], passengers=2, email=email),
        )
        assert created.status_code == 201
        booking = created.json()["data"]["booking"]
        assert booking["booking_status"] == "confirmed"
        booking_id, reference = booking["booking_id"], booking["booking_reference"]

        listed = client.get("/api/bookings", headers=auth_headers).json()["data"]
        assert [b["booking_id"] for b in listed["bookings"]] == [booking_id]

        detail = client.get(f"/api/bookings/{booking_id}", headers=auth_headers).json()["data"]["booking"]
        assert detail["flights"][0]["flight"]["flight_id"] == searched_flight["flight_id"]

        guest = client.get(f"/api/bookings/reference/{reference.lower()}", params={"email": email})
        assert guest.status_code == 200

        view = client.post("/api/bookings/view", json={"booking_reference": reference, "email": email})
        assert view.json()["data"]["booking"] == {
            "reference": reference,
            "email": email,
            "flight_number": searched_flight["flight_number"],
            "status": "confirmed",
        }

        too_early = client.post(f"/api/bookings/{booking_id}/checkin", headers=auth_headers)
        assert too_early.status_code == 400

        cancelled = client.request(
            "DELETE", f"/api/bookings/{booking_id}", headers=auth_headers, json={"reason": "Plans changed"},
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["booking"]["booking_status"] == "cancelled"
        assert cancelled.json()["data"]["refund_amount"] > 0

        stats = client.get("/api/bookings/stats", headers=auth_headers).json()["data"]["stats"]
        assert stats["cancelled_bookings"] == 1

    def test_requires_token(self, client, searched_flight, booking_payload):
        response = client.post("/api/bookings", json=booking_payload(searched_flight["flight_id"]))
        assert response.status_code in (401, 403)
        assert response.json()["success"] is False

    def test_unknown_flight(self, client, auth_headers, booking_payload):
        response = client.post("/api/bookings", headers=auth_headers, json=booking_payload("missing-flight"))
        assert response.status_code == 404

    def test_other_users_booking(self, client, auth_headers, searched_flight, booking_payload):
        created = client.post("/api/bookings", headers=auth_headers, json=booking_payload(searched_flight["flight_id"]))
        booking_id = created.json()["data"]["booking"]["booking_id"]

        other = client.post("/api/auth/register", json={
            "name": "Someone Else", "email": f"other_{uuid.uuid4().hex[:8]}@example.com", "password": "secret123",
        })
        other_headers = {"Authorization": f"Bearer {other.json()['data']['access_token']}"}

        response = client.get(f"/api/bookings/{booking_id}", headers=other_headers)
        assert response.status_code == 404

    def test_reference_lookup_errors(self, client):
        assert client.get("/api/bookings/reference/abc", params={"email": "a@example.com"}).status_code == 400
        assert client.get("/api/bookings/reference/ABC123").status_code == 400

        missing = client.get("/api/bookings/reference/ZZZ999", params={"email": "a@example.com"})
        assert missing.status_code == 404
        assert missing.json()["message"] == "Booking not found with the provided reference and email"


class TestChat:

    def test_conversation_over_http(self, client):
        session_id = f"http-{uuid.uuid4().hex[:8]}"

        greeting = client.post("/api/chat/message", json={"message": "hello", "session_id": session_id})
        assert greeting.status_code == 200
        assert greeting.json()["data"]["intent"] == "greeting"

        search = client.post("/api/chat/message", json={
            "message": "find flights from JFK to LAX tomorrow", "session_id": session_id,
        }).json()["data"]
        assert search["intent"] == "search_flights"
        assert search["state"] == "showing_results"
        assert search["quick_replies"][0] == "Book flight 1"

        history = client.get("/api/chat/history", params={"session_id": session_id}).json()["data"]
        assert history["total"] == 4
        assert [m["sender"] for m in history["messages"]] == ["user", "bot", "user", "bot"]

        summary = client.get(f"/api/chat/summary/{session_id}").json()["data"]["summary"]
        assert summary["total_messages"] == 4
        assert summary["user_messages"] == 2
        assert "search_flights" in summary["intents"]

        cleared = client.delete(f"/api/chat/session/{session_id}").json()["data"]
        assert cleared == {"session_id": session_id, "cleared": True}

        deleted = client.delete("/api/chat/history", params={"session_id": session_id}).json()["data"]
        assert deleted["deleted_count"] == 1
        assert client.get(f"/api/chat/summary/{session_id}").status_code == 404

    def test_guest_history_needs_session(self, client):
        response = client.get("/api/chat/history")
        assert response.status_code == 400
        assert response.json()["message"] == "Session ID is required for guest users"

    def test_signed_in_history(self, client, auth_headers):
        client.post("/api/chat/message", headers=auth_headers, json={"message": "help"})
        history = client.get("/api/chat/history", headers=auth_headers).json()["data"]
        assert history["total"] == 2
        assert history["messages"][1]["intent"] == "help"

    def test_empty_message_rejected(self, client):
        response = client.post("/api/chat/message", json={"message": "   "})
        assert response.status_code == 400

    def test_analytics(self, client, auth_headers):
        client.post("/api/chat/message", headers=auth_headers, json={"message": "hi there"})
        data = client.get("/api/chat/analytics", headers=auth_headers, params={"time_range": "1d"}).json()["data"]

        assert sum(row["count"] for row in data["messages_by_day"]) == 2
        assert {row["sender"] for row in data["messages_by_day"]} == {"user", "bot"}
        assert data["intent_distribution"] == [{"intent": "greeting", "count": 2}]


class TestWebSocket:

    def test_chat_message(self, client):
        with client.websocket_connect("/ws/chat") as websocket:
            websocket.send_json({"event": "chat message", "data": {"message": "hello", "sessionId": "ws-test"}})
            frame = websocket.receive_json()

        assert frame["event"] == "bot response"
        assert frame["data"]["intent"] == "greeting"
        assert frame["data"]["message"]
        assert "timestamp" in frame["data"]

    def test_empty_message_gets_error_reply(self, client):
        with client.websocket_connect("/ws/chat") as websocket:
            websocket.send_json({"event": "chat message", "data": {"message": ""}})
            frame = websocket.receive_json()

        assert frame["data"]["message"] == "Sorry, I encountered an error. Please try again."

    def test_typing_is_broadcast_to_others(self, client):
        with client.websocket_connect("/ws/chat") as first, client.websocket_connect("/ws/chat") as second:
            first.send_json({"event": "typing", "data": {"user": "first"}})
            assert second.receive_json() == {"event": "user typing", "data": {"user": "first"}}

            first.send_json({"event": "stop typing"})
            assert second.receive_json() == {"event": "user stop typing", "data": None}

    def test_user_id_in_frame_is_ignored(self, client, auth_headers):
        user_id = client.get("/api/auth/profile", headers=auth_headers).json()["data"]["user"]["user_id"]

        with client.websocket_connect("/ws/chat") as websocket:
            websocket.send_json({"event": "chat message", "data": {"message": "written by someone else", "userId": user_id}})
            websocket.receive_json()

        history = client.get("/api/chat/history", headers=auth_headers).json()["data"]
        assert history["total"] == 0

    def test_token_signs_the_socket_in(self, client, auth_headers):
        token = auth_headers["Authorization"].split(" ", 1)[1]

        with client.websocket_connect(f"/ws/chat?token={token}") as websocket:
            websocket.send_json({"event": "chat message", "data": {"message": "hello"}})
            frame = websocket.receive_json()
        assert frame["data"]["intent"] == "greeting"

        history = client.get("/api/chat/history", headers=auth_headers).json()["data"]
        assert history["total"] == 2
        assert {m["sender"] for m in history["messages"]} == {"user", "bot"}
        assert "hello" in [m["message"] for m in history["messages"]]

    def test_bad_token_connects_as_guest(self, client):
        with client.websocket_connect("/ws/chat?token=garbage") as websocket:
            websocket.send_json({"event": "chat message", "data": {"message": "hello", "sessionId": "ws-guest"}})
            assert websocket.receive_json()["data"]["intent"] == "greeting"

        history = client.get("/api/chat/history", params={"session_id": "ws-guest"}).json()["data"]
        assert history["total"] == 2
        assert all(m["user_id"] is None for m in history["messages"])
