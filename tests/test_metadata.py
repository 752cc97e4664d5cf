"""Tests for the GitHub metadata generator."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from requests.exceptions import ConnectionError, HTTPError

from build_action.context import BuildContext
from build_action.errors import MetadataError
from build_action.metadata import GitHubMetadataGenerator, tag_of

NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

REPOSITORY_INFO = {
    "name": "widget",
    "description": "The widget service",
    "html_url": "https://github.com/acme/widget",
    "homepage": "https://widget.acme.dev",
    "license": {"spdx_id": "Apache-2.0"},
}


def make_response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = HTTPError(response=response)
    return response


@pytest.fixture
def session():
    return MagicMock()


class TestTagOf:
    def test_tag_of(self):
        assert tag_of("ghcr.io/acme/widget:v1") == "v1"
        assert tag_of("localhost:5000/widget") == ""


class TestGitHubMetadataGenerator:
    """Tests for label generation from repository metadata."""

    def test_generates_oci_labels(self, main_context, session):
        """Repository metadata maps onto OCI labels."""
        session.get.return_value = make_response(REPOSITORY_INFO)
        generator = GitHubMetadataGenerator(main_context, token="t0ken", session=session, now=NOW)

        output = generator.generate(["ghcr.io/acme/widget"], ["ghcr.io/acme/widget:v1.0.0"], ["team=platform"])

        assert output.tags == ["ghcr.io/acme/widget:v1.0.0"]
        assert output.labels == [
            "org.opencontainers.image.title=widget",
            "org.opencontainers.image.description=The widget service",
            "org.opencontainers.image.url=https://widget.acme.dev",
            "org.opencontainers.image.source=https://github.com/acme/widget",
            "org.opencontainers.image.version=v1.0.0",
            "org.opencontainers.image.created=2026-01-02T03:04:05Z",
            f"org.opencontainers.image.revision={main_context.sha}",
            "org.opencontainers.image.licenses=Apache-2.0",
            "team=platform",
        ]

    def test_request_headers(self, main_context, session):
        """The token is sent as a bearer token to the repository endpoint."""
        session.get.return_value = make_response(REPOSITORY_INFO)
        generator = GitHubMetadataGenerator(main_context, token="t0ken", session=session, now=NOW)

        generator.generate(["a"], ["a:1"], [])

        args, kwargs = session.get.call_args
        assert args[0] == "https://api.github.com/repos/acme/widget"
        assert kwargs["headers"]["Authorization"] == "Bearer t0ken"

    def test_no_token_no_authorization(self, main_context, session):
        session.get.return_value = make_response(REPOSITORY_INFO)
        generator = GitHubMetadataGenerator(main_context, session=session, now=NOW)

        generator.generate(["a"], ["a:1"], [])

        assert "Authorization" not in session.get.call_args.kwargs["headers"]

    def test_noassertion_license_omitted(self, main_context, session):
        info = dict(REPOSITORY_INFO, license={"spdx_id": "NOASSERTION"})
        session.get.return_value = make_response(info)
        generator = GitHubMetadataGenerator(main_context, session=session, now=NOW)

        output = generator.generate(["a"], ["a:1"], [])

        assert not any(label.startswith("org.opencontainers.image.licenses=") for label in output.labels)

    def test_without_repository(self, session):
        """No repository means no lookup and labels from context only."""
        generator = GitHubMetadataGenerator(BuildContext(sha="abc1234"), session=session, now=NOW)

        output = generator.generate(["a"], ["a:1"], [])

        session.get.assert_not_called()
        assert output.labels == [
            "org.opencontainers.image.version=1",
            "org.opencontainers.image.created=2026-01-02T03:04:05Z",
            "org.opencontainers.image.revision=abc1234",
        ]

    @patch("time.sleep")
    def test_retries_transient_failure(self, mock_sleep, main_context, session):
        """A connection error is retried."""
        session.get.side_effect = [ConnectionError("reset"), make_response(REPOSITORY_INFO)]
        generator = GitHubMetadataGenerator(main_context, session=session, now=NOW)

        output = generator.generate(["a"], ["a:1"], [])

        assert session.get.call_count == 2
        assert "org.opencontainers.image.title=widget" in output.labels

    def test_client_error_raises_metadata_error(self, main_context, session):
        """A 404 is not retried and surfaces as MetadataError."""
        session.get.return_value = make_response(status_code=404)
        generator = GitHubMetadataGenerator(main_context, session=session, now=NOW)

        with pytest.raises(MetadataError, match="Failed to fetch metadata for repository acme/widget"):
            generator.generate(["a"], ["a:1"], [])

        assert session.get.call_count == 1

    @patch("time.sleep")
    def test_exhausted_retries_raise_metadata_error(self, mock_sleep, main_context, session):
        session.get.side_effect = ConnectionError("down")
        generator = GitHubMetadataGenerator(main_context, session=session, now=NOW)

        with pytest.raises(MetadataError):
            generator.generate(["a"], ["a:1"], [])

        assert session.get.call_count == 3
