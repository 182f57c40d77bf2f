import pytest

from auth.session import SessionTerminator
from auth.token_store import CredentialPair, CredentialStore, MemoryCredentialBackend
from tests.session_helpers import TerminationRecorder


@pytest.fixture
def store() -> CredentialStore:
    return CredentialStore(MemoryCredentialBackend(CredentialPair("A1", "R1")))


@pytest.fixture
def recorder() -> TerminationRecorder:
    return TerminationRecorder()


@pytest.fixture
def terminator(store, recorder) -> SessionTerminator:
    terminator = SessionTerminator(store)
    terminator.add_listener(recorder)
    return terminator
