"""Pytest configuration and fixtures."""

import hashlib
from typing import Callable, List, Sequence

import pytest

from tecdsa_signer import LocalKey, SessionState, SigningSession, simulate_keygen
from tecdsa_signer.config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make every test read settings from a clean environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def digest() -> bytes:
    """32-byte digest of a test message."""
    return hashlib.sha256(b"transfer 1 ETH to 0xabc").digest()


@pytest.fixture
def keys_3_of_3() -> List[LocalKey]:
    """Key shares where all three parties are needed (t=2, n=3)."""
    return simulate_keygen(threshold=2, parties=3)


@pytest.fixture
def keys_2_of_3() -> List[LocalKey]:
    """Key shares where any two parties can sign (t=1, n=3)."""
    return simulate_keygen(threshold=1, parties=3)


@pytest.fixture
def make_sessions() -> Callable[[Sequence[LocalKey], Sequence[int]], List[SigningSession]]:
    """Build one session per participant."""

    def build(keys: Sequence[LocalKey], participants: Sequence[int]) -> List[SigningSession]:
        by_index = {k.index: k for k in keys}
        return [SigningSession(i, participants, by_index[i]) for i in participants]

    return build


@pytest.fixture
def run_offline() -> Callable[[List[SigningSession]], None]:
    """Exchange round messages between sessions until all are offline ready."""

    def run(sessions: List[SigningSession]) -> None:
        for _ in range(20):
            if all(s.state is SessionState.OFFLINE_READY for s in sessions):
                return
            progressed = False
            for session in sessions:
                result = session.proceed()
                if not result.advanced:
                    continue
                progressed = True
                for envelope in result.messages:
                    for other in sessions:
                        if envelope.is_for(other.index):
                            other.handle_incoming(envelope)
            if not progressed:
                raise AssertionError("round exchange stalled")
        raise AssertionError("round exchange did not finish")

    return run
