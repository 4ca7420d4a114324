"""Shared test fixtures for notedrive."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from notedrive.config import Settings, init_data_dirs
from notedrive.database import create_engine
from notedrive.filesystem.content_store import ContentStore
from notedrive.main import create_app
from notedrive.models.auth import AuthChallenge, AuthToken
from notedrive.services.auth_service import AuthManager
from notedrive.services.file_service import FileService
from notedrive.services.index_store import IndexStore
from notedrive.services.note_service import NoteService
from notedrive.services.sync_service import SyncService

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from sqlalchemy.orm import Session, sessionmaker

START_TIME_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = START_TIME_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


def openssh_public_key(private_key: Ed25519PrivateKey) -> str:
    return (
        private_key.public_key()
        .public_bytes(Encoding.OpenSSH, PublicFormat.OpenSSH)
        .decode("ascii")
    )


def sign_challenge(private_key: Ed25519PrivateKey, challenge: str) -> str:
    return base64.b64encode(private_key.sign(challenge.encode("utf-8"))).decode("ascii")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary data directory."""
    return Settings(_env_file=None, data_dir=tmp_path / "data")


@pytest.fixture
def session_factory(settings: Settings) -> Iterator[sessionmaker[Session]]:
    init_data_dirs(settings)
    engine, factory = create_engine(settings)
    yield factory
    engine.dispose()


@pytest.fixture
def store(session_factory: sessionmaker[Session], clock: FakeClock) -> IndexStore:
    index_store = IndexStore(session_factory, clock=clock)
    index_store.ensure_schema()
    return index_store


@pytest.fixture
def token_row(
    store: IndexStore, session_factory: sessionmaker[Session]
) -> Callable[[str], AuthToken | None]:
    """Look up a stored token row by its stored key."""

    def _lookup(token: str) -> AuthToken | None:
        with session_factory() as session:
            return session.get(AuthToken, token)

    return _lookup


@pytest.fixture
def challenge_count(
    store: IndexStore, session_factory: sessionmaker[Session]
) -> Callable[[], int]:
    """Count stored challenges, live or expired."""

    def _count() -> int:
        with session_factory() as session:
            return session.execute(select(func.count()).select_from(AuthChallenge)).scalar_one()

    return _count


@pytest.fixture
def files_content(settings: Settings) -> ContentStore:
    settings.files_root.mkdir(parents=True, exist_ok=True)
    return ContentStore(settings.files_root)


@pytest.fixture
def notes_content(settings: Settings) -> ContentStore:
    settings.notes_root.mkdir(parents=True, exist_ok=True)
    return ContentStore(settings.notes_root)


@pytest.fixture
def file_service(store: IndexStore, files_content: ContentStore, clock: FakeClock) -> FileService:
    return FileService(store, files_content, clock=clock)


@pytest.fixture
def note_service(store: IndexStore, notes_content: ContentStore, clock: FakeClock) -> NoteService:
    return NoteService(store, notes_content, clock=clock)


@pytest.fixture
def sync_service(store: IndexStore, clock: FakeClock) -> SyncService:
    return SyncService(store, clock=clock)


@pytest.fixture
def private_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


@pytest.fixture
def public_key(private_key: Ed25519PrivateKey) -> str:
    return openssh_public_key(private_key)


@pytest.fixture
def authorized_keys_file(settings: Settings, public_key: str) -> Path:
    """authorized_keys containing the test key plus a comment line."""
    path = settings.authorized_keys_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"# test keys\n{public_key} tester@example\n", encoding="utf-8")
    return path


@pytest.fixture
def auth_manager(store: IndexStore, authorized_keys_file: Path, clock: FakeClock) -> AuthManager:
    manager = AuthManager(
        store,
        authorized_keys_file,
        token_expiry=3600,
        challenge_expiry=60,
        clock=clock,
    )
    manager.load_authorized_keys()
    return manager


@pytest.fixture
def client(settings: Settings, authorized_keys_file: Path) -> Iterator[TestClient]:
    """HTTP client for a fully started app (lifespan included)."""
    _ = authorized_keys_file
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(
    client: TestClient, private_key: Ed25519PrivateKey, public_key: str
) -> dict[str, str]:
    """Run the challenge-response flow and return bearer headers."""
    resp = client.post("/api/v1/auth/challenge", json={"public_key": public_key})
    assert resp.status_code == 200
    challenge = resp.json()["challenge"]
    resp = client.post(
        "/api/v1/auth/verify",
        json={
            "challenge": challenge,
            "public_key": public_key,
            "signature": sign_challenge(private_key, challenge),
        },
    )
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def sign(private_key: Ed25519PrivateKey) -> Callable[[str], str]:
    """Sign a challenge with the test key, returning base64."""

    def _sign(challenge: str) -> str:
        return sign_challenge(private_key, challenge)

    return _sign
