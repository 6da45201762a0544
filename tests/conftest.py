"""Pytest configuration and fixtures."""

import asyncio
import io
import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest
from PIL import Image, ImageDraw

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_BROKER_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_RESULT_BACKEND"] = "redis://localhost:6379/1"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.setdefault("COLUMNS", "200")  # keep rich tables untruncated under CliRunner
os.environ["STORAGE_PATH"] = tempfile.mkdtemp(prefix="media_engine_test_")
for _provider in ("LLM", "VIDEO_GEN", "IMAGE_GEN", "CUTOUT", "VISION", "CATALOG"):
    os.environ[f"{_provider}_PROVIDER"] = "stub"

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from media_engine.adapters.catalog.stub import StubCatalogAdapter  # noqa: E402
from media_engine.adapters.cutout.stub import StubCutoutProvider  # noqa: E402
from media_engine.adapters.image_gen.stub import StubImageGenProvider  # noqa: E402
from media_engine.adapters.llm.stub import StubLLMProvider  # noqa: E402
from media_engine.adapters.video_gen.base import (  # noqa: E402
    VideoGenProvider,
    VideoGenRequest,
    VideoGenResult,
)
from media_engine.adapters.vision.stub import StubVisionQAProvider  # noqa: E402
from media_engine.config import Settings  # noqa: E402
from media_engine.db.models import Base, MediaVideoJobModel  # noqa: E402
from media_engine.domain.models import AxisScores  # noqa: E402
from media_engine.services.prompt_rewriter import HARD_FIDELITY_CLAUSE  # noqa: E402
from media_engine.services.prompt_rewriter import VARIATION_MODIFIERS  # noqa: E402
from media_engine.services.providers import ProviderSet  # noqa: E402
from media_engine.services.storage import StorageService  # noqa: E402


class ScriptedVideoGenProvider(VideoGenProvider):
    """Video provider whose output URL identifies the round and framing slot.

    The slot is the index of the request's variation modifier, so candidate
    ``i`` of either round maps to slot ``i % 4``. Requests carrying the
    hard-fidelity clause belong to the retry round.

    Args:
        delays: Seconds to wait per slot before answering
        fail_slots: Slots that raise instead of answering
        fail_all: Every request raises
        on_generate: Called with each request before answering
    """

    def __init__(
        self,
        delays: dict[int, float] | None = None,
        fail_slots: tuple[int, ...] = (),
        fail_all: bool = False,
        on_generate: Callable[[VideoGenRequest], Any] | None = None,
    ) -> None:
        self.delays = delays or {}
        self.fail_slots = fail_slots
        self.fail_all = fail_all
        self.on_generate = on_generate
        self.requests: list[VideoGenRequest] = []

    @property
    def name(self) -> str:
        return "scripted"

    @staticmethod
    def url_for(round_name: str, slot: int) -> str:
        return f"https://videos.test/{round_name}/{slot}.mp4"

    @staticmethod
    def slot_of(prompt: str) -> int:
        return VARIATION_MODIFIERS.index(prompt.rsplit("Variation: ", 1)[-1])

    async def generate(self, request: VideoGenRequest) -> VideoGenResult:
        self.requests.append(request)
        if self.on_generate is not None:
            self.on_generate(request)

        slot = self.slot_of(request.prompt)
        await asyncio.sleep(self.delays.get(slot, 0.0))

        if self.fail_all or slot in self.fail_slots:
            raise RuntimeError(f"render farm unavailable for slot {slot}")

        round_name = "retry" if HARD_FIDELITY_CLAUSE.rstrip(".") in request.prompt else "first"
        return VideoGenResult(
            success=True,
            video_url=self.url_for(round_name, slot),
            thumbnail_url=f"https://videos.test/{round_name}/{slot}.jpg",
            duration_seconds=float(request.duration_seconds),
            metadata={"slot": slot, "round": round_name},
        )


def axis_scores(
    similarity: float,
    label_ocr: float = 0.9,
    quality: float = 0.9,
    temporal_stability: float = 0.0,
) -> AxisScores:
    return AxisScores(
        similarity=similarity,
        label_ocr=label_ocr,
        quality=quality,
        temporal_stability=temporal_stability,
    )


@pytest.fixture
def engine() -> Generator[Any, None, None]:
    """In-memory SQLite engine shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(tmp_path: Path) -> StorageService:
    return StorageService(base_path=tmp_path / "storage", public_url="http://assets.test")


@pytest.fixture
def product_image(storage: StorageService) -> str:
    """Packshot on white: a red box with a dark label band. Returns its storage URL."""
    image = Image.new("RGB", (64, 96), (255, 255, 255))
    draw = ImageDraw.Draw(image)
    draw.rectangle([16, 16, 47, 79], fill=(200, 30, 30))
    draw.rectangle([16, 40, 47, 52], fill=(20, 20, 20))
    path = storage.path_for("uploads/product.png")
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format="PNG")
    return storage.url_for("uploads/product.png")


@pytest.fixture
def product_png(storage: StorageService, product_image: str) -> bytes:
    return storage.path_for("uploads/product.png").read_bytes()


@pytest.fixture
def cutout_png(product_png: bytes) -> bytes:
    """Cutout of ``product_image`` with a transparent background."""
    image = Image.open(io.BytesIO(product_png)).convert("RGBA")
    pixels = image.load()
    for x in range(image.width):
        for y in range(image.height):
            if pixels[x, y][:3] == (255, 255, 255):
                pixels[x, y] = (255, 255, 255, 0)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def scripted_provider() -> type[ScriptedVideoGenProvider]:
    """The scripted provider class, for tests that need a custom script."""
    return ScriptedVideoGenProvider


@pytest.fixture
def scores() -> Callable[..., AxisScores]:
    return axis_scores


@pytest.fixture
def video_gen() -> ScriptedVideoGenProvider:
    return ScriptedVideoGenProvider()


@pytest.fixture
def vision() -> StubVisionQAProvider:
    return StubVisionQAProvider()


@pytest.fixture
def providers(video_gen, vision, storage) -> ProviderSet:
    return ProviderSet(
        llm=StubLLMProvider(),
        video_gen=video_gen,
        image_gen=StubImageGenProvider(latency_ms=0),
        cutout=StubCutoutProvider(),
        vision=vision,
        catalog=StubCatalogAdapter(),
        storage=storage,
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        fallback_fps=2,
        generation_timeout_seconds=5.0,
        rewrite_timeout_seconds=5.0,
        qa_timeout_seconds=5.0,
        preprocess_timeout_seconds=5.0,
    )


@pytest.fixture
def enqueued() -> list:
    """Job ids handed to the enqueue hook."""
    return []


@pytest.fixture
def orchestrator(providers, session_factory, test_settings, enqueued):
    from media_engine.services.orchestrator import JobOrchestrator

    def enqueue(job_id):
        enqueued.append(job_id)
        return f"task-{len(enqueued)}"

    return JobOrchestrator(
        providers=providers,
        session_factory=session_factory,
        settings=test_settings,
        enqueue=enqueue,
    )


@pytest.fixture
def fake_encoder(monkeypatch) -> list:
    """Replace MP4 encoding with a cheap file write. Records sampled frames."""
    calls: list = []

    def encode(frame_at, duration, fps, output_path):
        first = frame_at(0.0)
        last = frame_at(duration)
        calls.append({"duration": duration, "fps": fps, "first": first, "last": last})
        Path(output_path).write_bytes(b"fake-mp4")

    monkeypatch.setattr("media_engine.services.fallback_compositor.encode_video", encode)
    return calls


@pytest.fixture
def make_job(session) -> Callable[..., MediaVideoJobModel]:
    """Insert a job row directly."""

    def make(**overrides: Any) -> MediaVideoJobModel:
        values: dict[str, Any] = {
            "tenant_id": uuid4(),
            "original_prompt": "Hero shot of our sparkling water can",
            "niche": "packaged_goods",
            "aspect_ratio": "9:16",
            "duration_seconds": 6,
            "variation_count": 4,
            "status": "pending",
            "stage": 0,
        }
        values.update(overrides)
        job = MediaVideoJobModel(**values)
        session.add(job)
        session.commit()
        return job

    return make


@pytest.fixture
def test_client(orchestrator, session_factory) -> Generator[Any, None, None]:
    """API client wired to the test orchestrator and database."""
    from fastapi.testclient import TestClient

    from media_engine.api.deps import get_orchestrator
    from media_engine.db.session import get_session
    from media_engine.main import app

    def override_session() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()
