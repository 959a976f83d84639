"""
Tests for the HTTP trigger view.

The orchestrator is replaced by a mock; these tests cover request parsing,
status mapping and CORS handling only.
"""

import json
import os
from unittest.mock import MagicMock, patch

import pytest

# Set Django settings before importing Django components
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bunq_sync.web.settings")

import django

django.setup()

from django.test import RequestFactory  # noqa: E402
from django.urls import resolve  # noqa: E402

from bunq_sync.bunq_client import BunqAPIError  # noqa: E402
from bunq_sync.services import (  # noqa: E402
    BankSyncService,
    CategoryResolutionError,
    ConnectionNotFoundError,
    InvalidRequestError,
    SessionRenewalError,
)
from bunq_sync.web import views  # noqa: E402


@pytest.fixture
def rf():
    return RequestFactory()


@pytest.fixture
def service():
    service = MagicMock()
    service.run.return_value = {"ok": True, "imported": 2}
    with patch.object(views, "build_service", return_value=service):
        yield service


def post(rf, body):
    return rf.post("/poll-bunq/", data=json.dumps(body), content_type="application/json")


class TestRouting:
    @pytest.mark.parametrize("path", ["/", "/poll-bunq/", "/poll-bunq"])
    def test_paths_resolve_to_view(self, path):
        assert resolve(path).func is views.poll_bunq


class TestPollBunq:
    """Request parsing and response shape."""

    def test_options_preflight(self, rf):
        response = views.poll_bunq(rf.options("/poll-bunq/"))

        assert response.status_code == 200
        assert response.content == b""
        assert response["Access-Control-Allow-Origin"] == "*"

    def test_method_not_allowed(self, rf, service):
        response = views.poll_bunq(rf.delete("/poll-bunq/"))

        assert response.status_code == 405
        service.run.assert_not_called()

    def test_post_body_parameters(self, rf, service):
        response = views.poll_bunq(post(rf, {"mode": "auto", "household_id": "hh-1", "date_from": "2024-03-01"}))

        assert response.status_code == 200
        assert json.loads(response.content) == {"ok": True, "imported": 2}
        assert response["Access-Control-Allow-Origin"] == "*"
        service.run.assert_called_once_with("auto", household_id="hh-1", date_from="2024-03-01")

    def test_query_parameters(self, rf, service):
        views.poll_bunq(rf.get("/poll-bunq/", {"mode": "list-accounts", "household_id": "hh-1"}))

        service.run.assert_called_once_with("list-accounts", household_id="hh-1", date_from=None)

    def test_empty_or_broken_body_means_cron(self, rf, service):
        views.poll_bunq(rf.post("/poll-bunq/", data="not json", content_type="application/json"))

        service.run.assert_called_once_with(None, household_id=None, date_from=None)

    @pytest.mark.parametrize(
        "error,status",
        [
            (InvalidRequestError("household_id required for setup"), 400),
            (ConnectionNotFoundError("hh-9"), 404),
            (CategoryResolutionError("hh-1", "income", ("Inkomsten", "Overig")), 422),
            (SessionRenewalError("hh-1", "bunq /session-server failed: 500"), 502),
            (BunqAPIError(503, "/user/7001/monetary-account"), 502),
            (RuntimeError("boom"), 500),
        ],
    )
    def test_error_status(self, rf, service, error, status):
        service.run.side_effect = error

        response = views.poll_bunq(post(rf, {"mode": "setup"}))

        assert response.status_code == status
        body = json.loads(response.content)
        assert body == {"ok": False, "error": str(error)}
        assert response["Access-Control-Allow-Origin"] == "*"

    def test_missing_api_key_is_a_client_error(self, rf):
        with patch.object(views, "build_service", side_effect=InvalidRequestError("BUNQ_API_KEY not configured")):
            response = views.poll_bunq(post(rf, {}))

        assert response.status_code == 400
        assert json.loads(response.content)["error"] == "BUNQ_API_KEY not configured"

    @pytest.mark.parametrize("body", [{"mode": ["auto"]}, {"mode": "setup", "household_id": {"id": "hh-1"}}])
    def test_malformed_json_types_are_a_client_error(self, rf, store, body):
        """Wrongly typed parameters reach the real service and come back as 400."""
        real = BankSyncService(store, "api-key", MagicMock())
        with patch.object(views, "build_service", return_value=real):
            response = views.poll_bunq(post(rf, body))

        assert response.status_code == 400
        assert "must be a string" in json.loads(response.content)["error"]


def test_wsgi_application_uses_given_config(monkeypatch, tmp_path):
    from bunq_sync.web.app import get_wsgi_application

    monkeypatch.setenv("BUNQ_SYNC_CONFIG", "config.yaml")
    config_path = tmp_path / "worker.yaml"

    application = get_wsgi_application(str(config_path))

    assert callable(application)
    assert os.environ["BUNQ_SYNC_CONFIG"] == str(config_path)
