"""
HTTP API Tests

Drives the FastAPI app through TestClient with in-memory stores, a scripted
provider and a mocked Gemini client.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from core.rate_limiter import InMemoryRateLimiter
from services.accounts import PENDING_APPROVAL_MESSAGE, AccountService, TokenService
from services.api import AppServices, create_app
from services.generation import MediaGenerator
from services.jobs import JobQueue, VariationService
from services.prompts import PromptEnhancer

from tests.fakes import (
    FakeCatalogStore,
    FakeJobStore,
    FakeObjectStore,
    FakeProvider,
    FakeUserStore,
)

PASSWORD = "Sunset#2024"


@pytest.fixture
def services(config):
    jobs = FakeJobStore()
    users = FakeUserStore(jobs)
    storage = FakeObjectStore()
    media = MediaGenerator(FakeProvider(config), storage=storage, config=config)
    tokens = TokenService(config.auth)

    gemini = MagicMock()
    gemini.aio.models.generate_content = AsyncMock(
        return_value=MagicMock(text="A vivid neon portrait, cinematic lighting")
    )

    return AppServices(
        config=config,
        users=users,
        jobs=jobs,
        catalog=FakeCatalogStore(),
        storage=storage,
        media=media,
        tokens=tokens,
        accounts=AccountService(users, tokens),
        variations=VariationService(jobs, media, config),
        enhancer=PromptEnhancer(config.api, client=gemini),
        rate_limiter=InMemoryRateLimiter(),
        queue=MagicMock(spec=JobQueue),
        worker=None,
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services=services)) as client:
        yield client


def auth_headers(services, user):
    return {"Authorization": f"Bearer {services.tokens.issue(user)}"}


@pytest.fixture
def ana(services):
    return services.users.add("ana@example.com", PASSWORD, name="Ana")


@pytest.fixture
def ana_headers(services, ana):
    return auth_headers(services, ana)


@pytest.fixture
def admin(services):
    return services.users.add("root@example.com", PASSWORD, role="ADMIN")


@pytest.fixture
def admin_headers(services, admin):
    return auth_headers(services, admin)


def completed_job(services, user, **fields):
    values = dict(
        status="COMPLETED",
        current_stage="COMPLETED",
        progress=100,
        transformed_image_url="https://cdn.test/t.png",
        animated_video_url="https://cdn.test/a.mp4",
        final_video_url="https://cdn.test/a.mp4",
        cost=0.075,
    )
    values.update(fields)
    return services.jobs.add(user["id"], **values)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuth:
    def test_signup_then_pending_login(self, client):
        """Test that a new account cannot log in until approved."""
        response = client.post(
            "/api/signup",
            json={"email": "new@example.com", "password": PASSWORD, "name": "New"},
        )
        assert response.status_code == 201
        assert response.json()["user"]["isApproved"] is False

        response = client.post(
            "/api/auth/login", json={"email": "new@example.com", "password": PASSWORD}
        )
        assert response.status_code == 403
        assert response.json() == {"error": PENDING_APPROVAL_MESSAGE}
        assert "set-cookie" not in response.headers

    def test_signup_validation(self, client):
        response = client.post("/api/signup", json={"email": "new@example.com", "password": "weak"})
        assert response.status_code == 400
        assert "at least 8 characters" in response.json()["error"]

    def test_duplicate_signup(self, client, ana):
        response = client.post("/api/signup", json={"email": "ana@example.com", "password": PASSWORD})
        assert response.status_code == 400

    def test_login_sets_cookie_session(self, client, ana, services):
        response = client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD}
        )
        assert response.status_code == 200
        assert services.config.auth.cookie_name in response.cookies
        assert "httponly" in response.headers["set-cookie"].lower()

        session = client.get("/api/auth/session")
        assert session.status_code == 200
        assert session.json()["user"]["email"] == "ana@example.com"

        client.post("/api/auth/logout")
        assert client.get("/api/auth/session").status_code == 401

    def test_bad_credentials(self, client, ana):
        response = client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": "Wrong#2024"}
        )
        assert response.status_code == 401

    def test_requires_session(self, client):
        response = client.get("/api/jobs")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_revoked_approval_applies_to_existing_session(self, client, services, ana, ana_headers):
        services.users.users[ana["id"]]["is_approved"] = False

        response = client.get("/api/jobs", headers=ana_headers)
        assert response.status_code == 403

    def test_garbage_token(self, client):
        response = client.get("/api/jobs", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestUpload:
    def _upload(self, client, headers, content=b"\xff\xd8jpeg", content_type="image/jpeg", **form):
        data = {"imagePrompt": "Studio Ghibli", "videoPrompt": "gentle wind"}
        data.update(form)
        return client.post(
            "/api/upload",
            files={"file": ("selfie.jpg", content, content_type)},
            data=data,
            headers=headers,
        )

    def test_upload_creates_pending_job(self, client, services, ana, ana_headers):
        response = self._upload(client, ana_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Upload successful, processing started"

        job = next(iter(services.jobs.jobs.values()))
        assert str(job["id"]) == body["jobId"]
        assert job["status"] == "PENDING"
        assert job["user_id"] == ana["id"]
        assert services.storage.objects[job["original_image_url"]] == b"\xff\xd8jpeg"
        services.queue.submit.assert_called_once_with(job["id"])

    def test_missing_file(self, client, ana_headers):
        response = client.post(
            "/api/upload",
            data={"imagePrompt": "a", "videoPrompt": "b"},
            headers=ana_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "No file provided"

    def test_missing_prompts(self, client, ana_headers):
        response = self._upload(client, ana_headers, videoPrompt="  ")
        assert response.status_code == 400
        assert response.json()["error"] == "Image and video prompts are required"

    def test_not_an_image(self, client, ana_headers):
        response = self._upload(client, ana_headers, content=b"%PDF", content_type="application/pdf")
        assert response.json() == {"error": "File must be an image"}

    def test_too_large(self, client, services, ana_headers):
        services.config.storage.max_upload_bytes = 1024 * 1024
        response = self._upload(client, ana_headers, content=b"x" * (1024 * 1024 + 1))

        assert response.status_code == 400
        assert response.json()["error"] == "File too large. Maximum size is 1MB"
        assert services.jobs.jobs == {}

    def test_empty_file(self, client, ana_headers):
        response = self._upload(client, ana_headers, content=b"")
        assert response.json()["error"] == "File is empty"


class TestJobs:
    def test_list_only_own_jobs(self, client, services, ana, ana_headers, admin):
        mine = completed_job(services, ana)
        completed_job(services, admin)

        jobs = client.get("/api/jobs", headers=ana_headers).json()["jobs"]

        assert [j["id"] for j in jobs] == [str(mine["id"])]
        assert jobs[0]["finalVideoUrl"] == "https://cdn.test/a.mp4"
        assert jobs[0]["currentStage"] == "COMPLETED"

    def test_other_users_job_is_not_found(self, client, services, ana_headers, admin):
        """Test that GET and DELETE on someone else's job answer 404 and change nothing."""
        theirs = completed_job(services, admin)

        assert client.get(f"/api/jobs/{theirs['id']}", headers=ana_headers).status_code == 404
        assert client.delete(f"/api/jobs/{theirs['id']}", headers=ana_headers).status_code == 404
        assert theirs["id"] in services.jobs.jobs
        assert services.storage.deleted == []

    def test_get_is_idempotent(self, client, services, ana, ana_headers):
        job = completed_job(services, ana)

        first = client.get(f"/api/jobs/{job['id']}", headers=ana_headers)
        second = client.get(f"/api/jobs/{job['id']}", headers=ana_headers)

        assert first.status_code == 200
        assert first.json() == second.json()

    def test_malformed_job_id(self, client, ana_headers):
        assert client.get("/api/jobs/not-a-uuid", headers=ana_headers).status_code == 400

    def test_delete_removes_job_variations_and_media(self, client, services, ana, ana_headers):
        job = completed_job(services, ana, original_image_url="uploads/1-selfie.jpg")
        services.storage.objects["uploads/1-selfie.jpg"] = b"jpeg"
        services.jobs.add_variation(job["id"], "https://cdn.test/v1.mp4", "https://cdn.test/t.png")
        services.jobs.add_variation(job["id"], "https://cdn.test/v2.mp4", "https://cdn.test/t.png")

        response = client.delete(f"/api/jobs/{job['id']}", headers=ana_headers)

        assert response.json() == {"success": True, "message": "Job deleted"}
        assert job["id"] not in services.jobs.jobs
        assert services.jobs.variations == {}
        assert sorted(services.storage.deleted) == sorted([
            "uploads/1-selfie.jpg",
            "https://cdn.test/t.png",
            "https://cdn.test/a.mp4",
            "https://cdn.test/v1.mp4",
            "https://cdn.test/v2.mp4",
        ])
        assert client.get(f"/api/jobs/{job['id']}", headers=ana_headers).status_code == 404

    def test_delete_survives_storage_errors(self, client, services, ana, ana_headers):
        services.storage.fail_deletes = True
        job = completed_job(services, ana)

        response = client.delete(f"/api/jobs/{job['id']}", headers=ana_headers)

        assert response.status_code == 200
        assert job["id"] not in services.jobs.jobs

    def test_download_redirects(self, client, services, ana, ana_headers):
        job = completed_job(services, ana)

        response = client.get(
            f"/api/download/{job['id']}", headers=ana_headers, follow_redirects=False
        )

        assert response.status_code == 307
        assert response.headers["location"] == "https://cdn.test/a.mp4"

    def test_download_unfinished_job(self, client, services, ana, ana_headers):
        job = services.jobs.add(ana["id"])
        response = client.get(f"/api/download/{job['id']}", headers=ana_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Video not found"}

    def test_events_stream_ends_on_completion(self, client, services, ana, ana_headers):
        job = completed_job(services, ana)

        response = client.get(f"/api/jobs/{job['id']}/events", headers=ana_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text.startswith("data: ")
        assert '"type": "complete"' in response.text

    def test_events_for_failed_job(self, client, services, ana, ana_headers):
        job = services.jobs.add(ana["id"], status="FAILED", error_message="quota exceeded")

        response = client.get(f"/api/jobs/{job['id']}/events", headers=ana_headers)

        assert '"type": "failed"' in response.text
        assert "quota exceeded" in response.text


class TestVariations:
    def test_generate_variations(self, client, services, ana, ana_headers):
        job = completed_job(services, ana)

        response = client.post(
            f"/api/jobs/{job['id']}/generate-variations", json={"count": 3}, headers=ana_headers
        )

        body = response.json()
        assert response.status_code == 200
        assert len(body["variations"]) == 3
        assert body["totalCost"] == pytest.approx(0.105)
        assert body["variations"][0]["thumbnailUrl"] == "https://cdn.test/t.png"

    def test_default_count_without_body(self, client, services, ana, ana_headers):
        job = completed_job(services, ana)

        response = client.post(f"/api/jobs/{job['id']}/generate-variations", headers=ana_headers)

        assert len(response.json()["variations"]) == 2

    def test_incomplete_job(self, client, services, ana, ana_headers):
        job = services.jobs.add(ana["id"])

        response = client.post(f"/api/jobs/{job['id']}/regenerate", headers=ana_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Cannot regenerate: Original job incomplete"}

    def test_render_failure(self, client, services, ana, ana_headers):
        services.media.provider.fail_videos = {1}
        job = completed_job(services, ana)

        response = client.post(f"/api/jobs/{job['id']}/regenerate", headers=ana_headers)

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to generate video variation",
            "details": "video model exploded",
        }
        assert services.jobs.variations == {}

    def test_list_and_favorite(self, client, services, ana, ana_headers):
        job = completed_job(services, ana)
        variation = services.jobs.add_variation(job["id"], "https://cdn.test/v1.mp4")

        response = client.post(
            f"/api/jobs/{job['id']}/variations/{variation['id']}/favorite",
            json={"isFavorite": True},
            headers=ana_headers,
        )
        assert response.json()["variation"]["isFavorite"] is True

        listed = client.get(f"/api/jobs/{job['id']}/variations", headers=ana_headers).json()
        assert listed["variations"][0]["isFavorite"] is True

    def test_favorite_unknown_variation(self, client, services, ana, ana_headers):
        job = completed_job(services, ana)
        other = services.jobs.add_variation(completed_job(services, ana)["id"], "https://v")

        response = client.post(
            f"/api/jobs/{job['id']}/variations/{other['id']}/favorite",
            json={"isFavorite": True},
            headers=ana_headers,
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Variation not found"}


class TestBudget:
    def test_spent_against_default_ceiling(self, client, services, ana, ana_headers):
        for cost in (0.03, 0.075, 0.05):
            completed_job(services, ana, cost=cost)

        budget = client.get("/api/budget", headers=ana_headers).json()

        assert budget["budget"] == 20.0
        assert budget["spent"] == 0.155
        assert budget["remaining"] == 19.845
        assert budget["hasManualBudget"] is False

    def test_manual_budget(self, client, ana_headers):
        budget = client.post("/api/budget", json={"budget": 5}, headers=ana_headers).json()
        assert budget["budget"] == 5.0
        assert budget["hasManualBudget"] is True

        cleared = client.post("/api/budget", json={"budget": None}, headers=ana_headers).json()
        assert cleared["budget"] == 20.0
        assert cleared["hasManualBudget"] is False

    def test_invalid_budget(self, client, ana_headers):
        response = client.post("/api/budget", json={"budget": -3}, headers=ana_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid budget amount"}


class TestEnhancePrompt:
    def test_enhance(self, client, ana_headers):
        response = client.post(
            "/api/enhance-prompt", json={"prompt": "neon portrait", "type": "image"}, headers=ana_headers
        )
        assert response.json() == {"enhancedPrompt": "A vivid neon portrait, cinematic lighting"}

    def test_bad_type(self, client, ana_headers):
        response = client.post(
            "/api/enhance-prompt", json={"prompt": "neon", "type": "music"}, headers=ana_headers
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Missing prompt or type"}


class TestModels:
    def test_list_by_category(self, client, ana_headers):
        models = client.get("/api/models?category=video", headers=ana_headers).json()["models"]

        assert models
        assert {m["category"] for m in models} == {"video"}
        ratings = [m["qualityRating"] for m in models]
        assert ratings == sorted(ratings, reverse=True)

    def test_invalid_category(self, client, ana_headers):
        response = client.get("/api/models?category=audio", headers=ana_headers)
        assert response.status_code == 400

    def test_preferences(self, client, ana_headers):
        prefs = client.get("/api/models/preferences", headers=ana_headers).json()["preferences"]
        assert prefs["imageModel"] == "fal-ai/flux/dev/image-to-image"
        assert prefs["prioritizeQuality"] is True

        updated = client.put(
            "/api/models/preferences",
            json={"imageToVideoModel": "fal-ai/wan/v2.5/image-to-video", "prioritizeCost": True},
            headers=ana_headers,
        ).json()["preferences"]
        assert updated["imageToVideoModel"] == "fal-ai/wan/v2.5/image-to-video"
        assert updated["imageModel"] == "fal-ai/flux/dev/image-to-image"
        assert updated["prioritizeCost"] is True

    def test_unknown_preference_model(self, client, ana_headers):
        response = client.put(
            "/api/models/preferences", json={"imageModel": "fal-ai/nope"}, headers=ana_headers
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Unknown model: fal-ai/nope"}

    def test_preference_model_must_match_category(self, client, ana_headers):
        """Test that a video endpoint cannot be saved as the image model."""
        response = client.put(
            "/api/models/preferences",
            json={"imageModel": "fal-ai/luma-dream-machine/image-to-video"},
            headers=ana_headers,
        )
        assert response.status_code == 400

        swapped = client.put(
            "/api/models/preferences",
            json={"imageToVideoModel": "fal-ai/flux/dev/image-to-image"},
            headers=ana_headers,
        )
        assert swapped.status_code == 400

        prefs = client.get("/api/models/preferences", headers=ana_headers).json()["preferences"]
        assert prefs["imageModel"] == "fal-ai/flux/dev/image-to-image"

    def test_estimate_rejects_swapped_models(self, client, ana_headers):
        response = client.post(
            "/api/models/estimate",
            json={
                "imageModel": "fal-ai/luma-dream-machine/image-to-video",
                "videoModel": "fal-ai/flux/dev/image-to-image",
            },
            headers=ana_headers,
        )
        assert response.status_code == 400

    def test_estimate(self, client, ana_headers):
        response = client.post(
            "/api/models/estimate",
            json={
                "imageModel": "fal-ai/flux/dev/image-to-image",
                "videoModel": "fal-ai/luma-dream-machine/image-to-video",
                "variations": 3,
            },
            headers=ana_headers,
        )
        assert response.json()["totalCost"] == pytest.approx(1.53)

    def test_estimate_unknown_model(self, client, ana_headers):
        response = client.post(
            "/api/models/estimate",
            json={"imageModel": "fal-ai/nope", "videoModel": "fal-ai/nope"},
            headers=ana_headers,
        )
        assert response.status_code == 404

    def test_estimate_validation(self, client, ana_headers):
        response = client.post("/api/models/estimate", json={"variations": 50}, headers=ana_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"


class TestAdmin:
    def test_requires_admin(self, client, ana_headers):
        response = client.get("/api/admin/users", headers=ana_headers)
        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    def test_list_users_with_job_counts(self, client, services, ana, admin_headers):
        completed_job(services, ana)
        completed_job(services, ana)

        users = client.get("/api/admin/users", headers=admin_headers).json()["users"]

        counts = {u["email"]: u["jobCount"] for u in users}
        assert counts == {"ana@example.com": 2, "root@example.com": 0}

    def test_approve_user(self, client, services, admin, admin_headers):
        pending = services.users.add("new@example.com", PASSWORD, is_approved=False)

        response = client.post(
            f"/api/admin/users/{pending['id']}/approve", json={"approve": True}, headers=admin_headers
        )

        assert response.json()["user"]["isApproved"] is True
        assert services.users.users[pending["id"]]["approved_by"] == admin["id"]

        login = client.post(
            "/api/auth/login", json={"email": "new@example.com", "password": PASSWORD}
        )
        assert login.status_code == 200

    def test_cannot_delete_self(self, client, admin, admin_headers):
        response = client.delete(f"/api/admin/users/{admin['id']}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "You cannot delete your own account"}

    def test_delete_user_cascades(self, client, services, ana, admin_headers):
        job = completed_job(services, ana)

        response = client.delete(f"/api/admin/users/{ana['id']}", headers=admin_headers)

        assert response.json() == {"success": True}
        assert ana["id"] not in services.users.users
        assert job["id"] not in services.jobs.jobs

    def test_delete_missing_user(self, client, services, admin_headers):
        response = client.delete(
            "/api/admin/users/00000000-0000-0000-0000-000000000000", headers=admin_headers
        )
        assert response.status_code == 404


class TestRateLimits:
    def test_signup_rate_limit(self, client, services):
        """Test that the bucket answers 429 with Retry-After once it is empty."""
        services.config.rate_limit.signup = (2, 900)

        for _ in range(2):
            response = client.post("/api/signup", json={"email": "bad", "password": "x"})
            assert response.status_code == 400

        response = client.post("/api/signup", json={"email": "bad", "password": "x"})
        assert response.status_code == 429
        assert response.json() == {"error": "Too many requests. Please try again later."}
        assert int(response.headers["retry-after"]) > 0

    def test_limits_are_per_client(self, client, services):
        services.config.rate_limit.signup = (1, 900)

        first = client.post(
            "/api/signup", json={"email": "bad", "password": "x"},
            headers={"X-Forwarded-For": "198.51.100.1"},
        )
        other = client.post(
            "/api/signup", json={"email": "bad", "password": "x"},
            headers={"X-Forwarded-For": "198.51.100.2"},
        )
        assert first.status_code == other.status_code == 400

    def test_disabled(self, client, services):
        services.config.rate_limit.enabled = False
        services.config.rate_limit.signup = (1, 900)

        for _ in range(3):
            response = client.post("/api/signup", json={"email": "bad", "password": "x"})
            assert response.status_code == 400
