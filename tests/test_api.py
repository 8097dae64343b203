"""
Test suite for AstroVision API endpoints.

Tests:
- Health check
- Discovery request/response contract
- Error bodies and status codes
"""

import base64

import pytest

from tests.conftest import FakeAstrometry, FakeSkyView, make_image_bytes

# Mark all tests in this module
pytestmark = pytest.mark.api


class StubPipeline:
    """Returns a canned report, or raises a canned error."""

    def __init__(self, report=None, error=None):
        self.report = report
        self.error = error
        self.images = []

    def run(self, image_bytes, deadline=None):
        self.images.append(image_bytes)
        if self.error is not None:
            raise self.error
        return self.report


def make_report(label="SUPERNOVA"):
    from discovery.models import DiscoveryReport, DiscoveryType

    return DiscoveryReport(
        ra="150.0000",
        dec="2.0000",
        historical_image="https://skyview.test/runquery.pl?Position=150.0,2.0",
        discovery="Potential transient detected: 2000 pixels differ from the historical survey image",
        type=DiscoveryType(label),
        diff_count=2000,
    )


@pytest.fixture
def client_factory():
    """Build a TestClient whose pipeline and settings are replaced."""
    from fastapi.testclient import TestClient

    from api.main import app, get_pipeline, get_settings
    from settings import Settings

    def factory(pipeline=None, settings=None, raise_server_exceptions=True):
        app.dependency_overrides[get_settings] = lambda: settings or Settings()
        if pipeline is not None:
            app.dependency_overrides[get_pipeline] = lambda: pipeline
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    yield factory
    app.dependency_overrides.clear()


def encode(data: bytes) -> str:
    return base64.b64encode(data).decode()


class TestHealthEndpoint:
    """Test API health endpoint."""

    def test_health_check(self, client_factory):
        from settings import Settings

        client = client_factory(settings=Settings(astrometry_api_key="k"))

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data
        assert data["plate_solver_configured"] is True
        assert data["inference_configured"] is False


class TestDiscoverEndpoint:
    """Test the discovery endpoint."""

    def test_success_shape(self, client_factory):
        pipeline = StubPipeline(report=make_report())
        client = client_factory(pipeline=pipeline)
        image = make_image_bytes()

        response = client.post("/discover", json={"imageBase64": encode(image)})

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"coords", "historicalImage", "discovery", "type"}
        assert data["coords"] == {"ra": "150.0000", "dec": "2.0000"}
        assert data["type"] == "SUPERNOVA"
        assert pipeline.images == [image]

    def test_data_url_prefix_stripped(self, client_factory):
        pipeline = StubPipeline(report=make_report("GALAXY"))
        client = client_factory(pipeline=pipeline)
        image = make_image_bytes(fmt="JPEG")

        response = client.post(
            "/discover",
            json={"imageBase64": f"data:image/jpeg;base64,{encode(image)}", "question": "What is this?"},
        )

        assert response.status_code == 200
        assert response.json()["type"] == "GALAXY"
        assert pipeline.images == [image]

    def test_invalid_base64(self, client_factory):
        pipeline = StubPipeline(report=make_report())
        client = client_factory(pipeline=pipeline)

        response = client.post("/discover", json={"imageBase64": "not base64 !!"})

        assert response.status_code == 400
        assert "base64" in response.json()["error"]
        assert pipeline.images == []

    def test_missing_image(self, client_factory):
        client = client_factory(pipeline=StubPipeline(report=make_report()))

        response = client.post("/discover", json={"question": "anything new?"})

        assert response.status_code == 400
        assert "imageBase64" in response.json()["error"]


class TestErrorMapping:
    """Test status codes for pipeline failures."""

    @pytest.mark.parametrize("error_name,status", [
        ("InvalidImageError", 400),
        ("AuthenticationError", 502),
        ("SolvingServiceError", 502),
        ("TransportError", 502),
        ("ComparisonUnavailable", 502),
        ("SolvingTimeout", 504),
        ("DeadlineExceeded", 504),
        ("DiscoveryError", 500),
    ])
    def test_status_codes(self, client_factory, error_name, status):
        import discovery.errors as errors

        error = getattr(errors, error_name)(f"{error_name} raised")
        client = client_factory(pipeline=StubPipeline(error=error))

        response = client.post("/discover", json={"imageBase64": encode(make_image_bytes())})

        assert response.status_code == status
        assert response.json() == {"error": f"{error_name} raised"}

    def test_timeout_message(self, client_factory):
        from discovery.errors import SolvingTimeout

        error = SolvingTimeout("Plate solving timed out after 20 attempts")
        client = client_factory(pipeline=StubPipeline(error=error))

        response = client.post("/discover", json={"imageBase64": encode(make_image_bytes())})

        assert response.status_code == 504
        assert "timed out" in response.json()["error"]

    def test_malformed_solver_response_is_json_error(self, client_factory, sleep):
        from discovery.pipeline import DiscoveryPipeline
        from discovery.plate_solver import PlateSolvingClient, RetryPolicy
        from discovery.reference import ReferenceImageFetcher

        solver = PlateSolvingClient(
            api_key="test-key",
            base_url="http://solver.test/api",
            retry_policy=RetryPolicy(sleep=sleep),
            transport=FakeAstrometry(subid=None).transport,
        )
        pipeline = DiscoveryPipeline(
            solver=solver,
            fetcher=ReferenceImageFetcher(transport=FakeSkyView(image=make_image_bytes()).transport),
        )
        client = client_factory(pipeline=pipeline)

        response = client.post("/discover", json={"imageBase64": encode(make_image_bytes())})

        assert response.status_code == 502
        assert response.headers["content-type"].startswith("application/json")
        assert "invalid submission id" in response.json()["error"]

    def test_unexpected_error_is_json_error(self, client_factory):
        client = client_factory(
            pipeline=StubPipeline(error=RuntimeError("disk full")),
            raise_server_exceptions=False,
        )

        response = client.post("/discover", json={"imageBase64": encode(make_image_bytes())})

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {"error": "disk full"}
