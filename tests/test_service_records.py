"""
Tests for service record endpoints.
"""
import pytest


@pytest.fixture
def setup(client_factory, db_session, owner, login_session, make_generator, clock):
    generator = make_generator(owner, total_hours=125.5, installed_at=clock())
    client = client_factory(db_session, session_id=login_session(owner, clock=clock), clock=clock)
    return client, generator


def records_url(generator_id):
    return f"/api/generators/{generator_id}/service-records"


class TestServiceRecords:
    """Tests for /api/generators/{id}/service-records"""

    def test_record_service_now(self, setup):
        client, generator = setup

        response = client.post(records_url(generator.id), json={"notes": "Oil change, 10W-30"})

        assert response.status_code == 201
        data = response.json()
        assert data["performedAt"] == "2026-02-13T16:00:00Z"
        assert data["hoursAtService"] == 125.5
        assert data["notes"] == "Oil change, 10W-30"

        generator_data = client.get(f"/api/generators/{generator.id}").json()
        assert generator_data["lastServiceDate"] == "2026-02-13T16:00:00Z"
        assert generator_data["lastServiceHours"] == 125.5
        assert generator_data["maintenance"]["hoursSinceService"] == 0.0

    def test_notes_are_sanitized(self, setup):
        client, generator = setup

        data = client.post(records_url(generator.id), json={"notes": "<b>Spark plug</b>"}).json()

        assert data["notes"] == "Spark plug"

    def test_notes_length_limited(self, setup):
        client, generator = setup

        assert client.post(records_url(generator.id), json={"notes": "x" * 501}).status_code == 400

    def test_list_newest_first(self, setup):
        client, generator = setup
        client.post(records_url(generator.id), json={"performedAt": "2025-09-01T10:00:00Z"})
        client.post(records_url(generator.id), json={"performedAt": "2026-01-15T10:00:00Z"})

        dates = [r["performedAt"] for r in client.get(records_url(generator.id)).json()]

        assert dates == ["2026-01-15T10:00:00Z", "2025-09-01T10:00:00Z"]

    def test_delete_latest_falls_back_to_previous(self, setup):
        client, generator = setup
        client.post(records_url(generator.id), json={"performedAt": "2025-09-01T10:00:00Z"})
        latest = client.post(records_url(generator.id), json={"performedAt": "2026-01-15T10:00:00Z"}).json()

        assert client.delete(f"{records_url(generator.id)}/{latest['id']}").status_code == 204

        generator_data = client.get(f"/api/generators/{generator.id}").json()
        assert generator_data["lastServiceDate"] == "2025-09-01T10:00:00Z"

    def test_delete_only_record_clears_service(self, setup):
        client, generator = setup
        record = client.post(records_url(generator.id), json={}).json()

        client.delete(f"{records_url(generator.id)}/{record['id']}")

        generator_data = client.get(f"/api/generators/{generator.id}").json()
        assert generator_data["lastServiceDate"] is None
        assert generator_data["lastServiceHours"] is None

    def test_unknown_record(self, setup):
        client, generator = setup

        response = client.delete(f"{records_url(generator.id)}/999")

        assert response.status_code == 404
        assert response.json() == {"error": "Service record not found"}

    def test_foreign_generator(self, client_factory, db_session, owner, other_user, login_session, make_generator):
        foreign = make_generator(other_user)
        client = client_factory(db_session, session_id=login_session(owner))

        assert client.post(records_url(foreign.id), json={}).status_code == 404
