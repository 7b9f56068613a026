import base64
import uuid

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine, SQLModel
from sqlmodel.pool import StaticPool

from api.auth.models import AuthSession
from core.deps import get_db, get_blob_store
from core.storage import BlobStoreError
from main import app


class MockBlobStore:
    """In-memory blob store that counts writes"""

    def __init__(self):
        self.blobs = {}
        self.writes = 0
        self.deletes = 0
        self.fail_writes = False

    def write(self, data: bytes) -> str:
        if self.fail_writes:
            raise BlobStoreError("Simulated write failure")
        self.writes += 1
        ref = f"mem://{uuid.uuid4()}"
        self.blobs[ref] = data
        return ref

    def read(self, ref: str) -> bytes:
        if ref not in self.blobs:
            raise BlobStoreError(f"No blob at {ref}")
        return self.blobs[ref]

    def delete(self, ref: str) -> None:
        self.deletes += 1
        self.blobs.pop(ref, None)


class MockS3Body:
    def __init__(self, data: bytes):
        self.data = data

    def read(self) -> bytes:
        return self.data


class MockS3Client:
    """Mock S3 client for testing"""

    def __init__(self):
        self.objects = {}  # {(bucket, key): bytes}
        self.error_mode = None  # For simulating errors

    def _raise_if_error(self, operation: str):
        if self.error_mode:
            raise ClientError(
                {"Error": {"Code": self.error_mode, "Message": self.error_mode}},
                operation,
            )

    def put_object(self, Bucket: str, Key: str, Body: bytes):
        self._raise_if_error("PutObject")
        self.objects[(Bucket, Key)] = Body
        return {"ETag": "mock"}

    def get_object(self, Bucket: str, Key: str):
        self._raise_if_error("GetObject")
        if (Bucket, Key) not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        return {"Body": MockS3Body(self.objects[(Bucket, Key)])}

    def delete_object(self, Bucket: str, Key: str):
        self._raise_if_error("DeleteObject")
        self.objects.pop((Bucket, Key), None)
        return {}

    def simulate_error(self, error_type: str):
        """
        Configure client to raise ClientError with the given code
        """
        self.error_mode = error_type


def make_auth_session(session: Session, user_id: uuid.UUID | None = None) -> tuple[str, uuid.UUID]:
    """Store a session row and return (token, user_id)"""
    user_id = user_id or uuid.uuid4()
    token = str(uuid.uuid4())
    session.add(AuthSession(token=token, user_id=str(user_id)))
    session.commit()
    return token, user_id


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="blob_store")
def blob_store_fixture():
    """Provide an in-memory blob store for testing"""
    return MockBlobStore()


@pytest.fixture(name="mock_s3_client")
def mock_s3_client_fixture():
    """Provide a mock S3 client for testing"""
    return MockS3Client()


@pytest.fixture(name="owner")
def owner_fixture(session: Session):
    """(token, user_id) of an authenticated caller"""
    return make_auth_session(session)


@pytest.fixture(name="other_owner")
def other_owner_fixture(session: Session):
    """(token, user_id) of a second, unrelated caller"""
    return make_auth_session(session)


@pytest.fixture(name="client")
def client_fixture(session: Session, blob_store: MockBlobStore):
    def get_db_override():
        return session

    def get_blob_store_override():
        return blob_store

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_blob_store] = get_blob_store_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
