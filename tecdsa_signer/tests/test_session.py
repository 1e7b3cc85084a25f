"""Unit tests for the signing session coordinator."""

import hashlib

import pytest
from eth_keys import keys

from tecdsa_signer import SigningSession, simulate_keygen
from tecdsa_signer.engine import OutgoingMessage
from tecdsa_signer.exceptions import (
    CompletedOfflineStageUnavailableError,
    ConfigurationError,
    DigestSizeError,
    DuplicateMessageError,
    OfflineStageIncompleteError,
    PartialAlreadyIssuedError,
    PreconditionError,
    ProtocolError,
    SessionFailedError,
    SessionStateError,
    SignatureVerificationError,
)
from tecdsa_signer.schemas import ErrorCategory, RoundEnvelope, SessionState
from tecdsa_signer.simulation import SimulatedOfflineStage


class ScriptedEngine:
    """Engine double with scripted readiness and messages."""

    def __init__(self, index, participants, local_key):
        self.index = index
        self.participants = participants
        self.current_round = 0
        self.is_finished = False
        self.ready = True
        self.outgoing = [OutgoingMessage(None, {"n": 1}), OutgoingMessage(2, {"n": 2})]
        self.accepted = []
        self.error = None

    def accept_incoming(self, envelope):
        if self.error:
            raise self.error
        self.accepted.append(envelope)

    def ready_to_advance(self):
        return self.ready

    def advance(self):
        self.current_round += 1
        self.ready = False
        return self.outgoing

    def take_completed_output(self):
        raise OfflineStageIncompleteError("not finished")

    def sign_manual(self, digest, completed):
        raise NotImplementedError


class TestConstruction:
    """Test session construction."""

    def test_valid_session(self, keys_3_of_3) -> None:
        """Test a session starts constructed in round 0."""
        session = SigningSession(1, [1, 2, 3], keys_3_of_3[0])

        assert session.state is SessionState.CONSTRUCTED
        assert session.current_round == 0
        assert session.participants == (1, 2, 3)

    def test_index_not_in_participants(self, keys_3_of_3) -> None:
        """Test the own index must be a participant."""
        with pytest.raises(ConfigurationError) as exc_info:
            SigningSession(4, [1, 2, 3], keys_3_of_3[0])

        assert exc_info.value.category is ErrorCategory.CONFIGURATION

    def test_empty_participants(self, keys_3_of_3) -> None:
        """Test an empty participant list."""
        with pytest.raises(ConfigurationError):
            SigningSession(1, [], keys_3_of_3[0])

    def test_duplicate_participants(self, keys_3_of_3) -> None:
        """Test duplicated participant indices."""
        with pytest.raises(ConfigurationError, match="duplicate"):
            SigningSession(1, [1, 2, 2, 3], keys_3_of_3[0])

    def test_key_configuration_mismatch(self, keys_3_of_3) -> None:
        """Test the engine rejects a key for a different configuration."""
        with pytest.raises(ConfigurationError):
            SigningSession(1, [1, 2], keys_3_of_3[0])

    def test_engine_error_surfaces_unchanged(self, keys_3_of_3) -> None:
        """Test engine construction errors are not wrapped."""
        error = ConfigurationError("engine says no")

        def factory(index, participants, local_key):
            raise error

        with pytest.raises(ConfigurationError) as exc_info:
            SigningSession(1, [1, 2, 3], keys_3_of_3[0], engine_factory=factory)
        assert exc_info.value is error


class TestProceed:
    """Test round advancement."""

    def test_wraps_engine_messages(self, keys_3_of_3) -> None:
        """Test outgoing messages get round, sender and receiver."""
        session = SigningSession(1, [1, 2, 3], keys_3_of_3[0], engine_factory=ScriptedEngine)

        result = session.proceed()

        assert result.advanced
        assert result.round == 1
        assert [(m.round, m.sender, m.receiver) for m in result.messages] == [
            (1, 1, None),
            (1, 1, 2),
        ]
        assert result.messages[1].body == {"n": 2}
        assert session.state is SessionState.ROUND_EXCHANGE

    def test_not_ready_is_not_an_error(self, keys_3_of_3) -> None:
        """Test proceed reports no advancement while waiting for peers."""
        session = SigningSession(1, [1, 2, 3], keys_3_of_3[0])
        session.proceed()

        first = session.proceed()
        second = session.proceed()

        assert not first.advanced
        assert not second.advanced
        assert first.messages == []
        assert first.as_wire() is False
        assert session.current_round == 1

    def test_rounds_are_monotonic(self, keys_3_of_3, make_sessions) -> None:
        """Test reported rounds never decrease."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        rounds = {s.index: [] for s in sessions}

        for _ in range(10):
            for session in sessions:
                result = session.proceed()
                if not result.advanced:
                    continue
                rounds[session.index].append(result.round)
                for envelope in result.messages:
                    for other in sessions:
                        if envelope.is_for(other.index):
                            other.handle_incoming(envelope)

        for reported in rounds.values():
            assert reported == sorted(reported)
            assert reported[-1] == 3

    def test_offline_ready_after_final_round(self, keys_3_of_3, make_sessions, run_offline) -> None:
        """Test sessions become offline ready and stay idle."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)

        for session in sessions:
            assert session.state is SessionState.OFFLINE_READY
            assert not session.proceed().advanced
            assert not session.proceed().advanced

    def test_finished_engine_still_ready(self, keys_3_of_3, run_offline, digest) -> None:
        """Test a session past the offline stage never advances again."""

        class StickyReadyStage(SimulatedOfflineStage):
            def ready_to_advance(self):
                return self.is_finished or super().ready_to_advance()

            def advance(self):
                if self.is_finished:
                    return []
                return super().advance()

        sessions = [
            SigningSession(k.index, [1, 2, 3], k, engine_factory=StickyReadyStage)
            for k in keys_3_of_3
        ]
        run_offline(sessions)
        partials = [s.partial(digest) for s in sessions]

        assert not sessions[0].proceed().advanced
        assert sessions[0].state is SessionState.PARTIAL_ISSUED

        sessions[0].create(partials)

        assert not sessions[0].proceed().advanced
        assert sessions[0].state is SessionState.SIGNATURE_COMPLETE
        with pytest.raises(PartialAlreadyIssuedError):
            sessions[0].partial(digest)

    def test_no_incoming_after_offline_ready(self, keys_3_of_3, make_sessions, run_offline) -> None:
        """Test round exchange cannot be re-entered."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)

        with pytest.raises(SessionStateError):
            sessions[0].handle_incoming(RoundEnvelope(round=1, sender=2, body={}))
        assert sessions[0].state is SessionState.OFFLINE_READY


class TestHandleIncoming:
    """Test incoming message handling."""

    def test_protocol_error_fails_session(self, keys_3_of_3, make_sessions) -> None:
        """Test a duplicate message is fatal to the session."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        envelope = sessions[1].proceed().messages[0]

        sessions[0].handle_incoming(envelope)
        assert sessions[0].state is SessionState.ROUND_EXCHANGE

        with pytest.raises(DuplicateMessageError) as exc_info:
            sessions[0].handle_incoming(envelope)
        assert exc_info.value.category is ErrorCategory.PROTOCOL
        assert sessions[0].state is SessionState.FAILED

        with pytest.raises(SessionFailedError):
            sessions[0].proceed()

    def test_engine_error_propagates_unchanged(self, keys_3_of_3) -> None:
        """Test the exact engine exception reaches the caller."""
        session = SigningSession(1, [1, 2, 3], keys_3_of_3[0], engine_factory=ScriptedEngine)
        error = ProtocolError("bad message")
        session._engine.error = error

        with pytest.raises(ProtocolError) as exc_info:
            session.handle_incoming(RoundEnvelope(round=1, sender=2, body={}))
        assert exc_info.value is error


class TestPartial:
    """Test partial signature creation."""

    def test_before_offline_stage(self, keys_3_of_3, digest) -> None:
        """Test partial fails with a precondition error before completion."""
        session = SigningSession(1, [1, 2, 3], keys_3_of_3[0])

        with pytest.raises(OfflineStageIncompleteError) as exc_info:
            session.partial(digest)
        assert exc_info.value.category is ErrorCategory.PRECONDITION
        assert session.state is SessionState.CONSTRUCTED

    def test_short_digest(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test a 31-byte digest fails without consuming the offline stage."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)

        with pytest.raises(DigestSizeError):
            sessions[0].partial(digest[:31])
        assert sessions[0].state is SessionState.OFFLINE_READY

        partial = sessions[0].partial(digest)
        assert partial.sender == 1

    def test_digest_conversions(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test hex and byte list digests are accepted, garbage is not."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)

        with pytest.raises(DigestSizeError):
            sessions[0].partial("0xzz")
        with pytest.raises(DigestSizeError):
            sessions[0].partial(12345)

        assert sessions[0].partial("0x" + digest.hex()).sender == 1
        assert sessions[1].partial(list(digest)).sender == 2

    def test_partial_only_once(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test the completed offline stage binds to one digest only."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)

        sessions[0].partial(digest)
        assert sessions[0].state is SessionState.PARTIAL_ISSUED

        with pytest.raises(PartialAlreadyIssuedError):
            sessions[0].partial(digest)
        assert sessions[0].state is SessionState.PARTIAL_ISSUED


class TestCreate:
    """Test signature creation."""

    def test_create_without_partial(self, keys_3_of_3) -> None:
        """Test create fails when no offline stage is cached."""
        session = SigningSession(1, [1, 2, 3], keys_3_of_3[0])

        with pytest.raises(CompletedOfflineStageUnavailableError, match="partial\\(\\)"):
            session.create([])

    def test_three_party_signing(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test all parties produce the same verifiable signature and address."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)
        partials = [s.partial(digest) for s in sessions]

        results = [s.create(partials) for s in sessions]

        assert len({r.signature.to_bytes() for r in results}) == 1
        assert len({r.address for r in results}) == 1
        assert all(s.state is SessionState.SIGNATURE_COMPLETE for s in sessions)

        result = results[0]
        assert result.public_key == keys_3_of_3[0].public_key
        signature = keys.Signature(vrs=result.signature.to_vrs())
        recovered = signature.recover_public_key_from_msg_hash(digest)
        assert recovered.to_checksum_address() == result.address
        assert recovered.to_bytes() == result.public_key[1:]

    def test_create_without_own_partial(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test the caller's own partial may be omitted."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)
        partials = [s.partial(digest) for s in sessions]

        result = sessions[0].create(partials[1:])
        assert result.address == sessions[1].create(partials).address

    def test_two_of_three_subset(self, keys_2_of_3, make_sessions, run_offline, digest) -> None:
        """Test any t + 1 key holders can sign."""
        sessions = make_sessions(keys_2_of_3, [1, 3])
        run_offline(sessions)
        partials = [s.partial(digest) for s in sessions]

        result = sessions[1].create(partials)

        expected = keys.PublicKey(keys_2_of_3[0].public_key[1:])
        assert result.address == expected.to_checksum_address()

    def test_create_only_once(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test the cached offline stage is consumed by create."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)
        partials = [s.partial(digest) for s in sessions]
        sessions[0].create(partials)

        with pytest.raises(CompletedOfflineStageUnavailableError) as exc_info:
            sessions[0].create(partials)
        assert isinstance(exc_info.value, PreconditionError)
        assert sessions[0].state is SessionState.SIGNATURE_COMPLETE

    def test_tampered_digest(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test partials over a different digest fail verification."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)
        other_digest = hashlib.sha256(b"transfer 100 ETH to 0xevil").digest()

        partials = [
            sessions[0].partial(digest),
            sessions[1].partial(other_digest),
            sessions[2].partial(other_digest),
        ]

        with pytest.raises(SignatureVerificationError) as exc_info:
            sessions[0].create(partials)
        assert exc_info.value.category is ErrorCategory.VERIFICATION
        assert sessions[0].state is SessionState.FAILED

    def test_partial_from_other_session(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test a partial from another signing run fails verification."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        foreign = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)
        run_offline(foreign)

        partials = [s.partial(digest) for s in sessions]
        foreign_partial = foreign[2].partial(digest)

        with pytest.raises(SignatureVerificationError):
            sessions[0].create(partials[:2] + [foreign_partial])

    def test_missing_partial_fails_session(self, keys_3_of_3, make_sessions, run_offline, digest) -> None:
        """Test combination errors from the engine are fatal."""
        sessions = make_sessions(keys_3_of_3, [1, 2, 3])
        run_offline(sessions)
        partials = [s.partial(digest) for s in sessions]

        with pytest.raises(ProtocolError):
            sessions[0].create(partials[:2])
        assert sessions[0].state is SessionState.FAILED

    def test_separate_key_sets_are_independent(self, make_sessions, run_offline, digest) -> None:
        """Test different key generations give different addresses."""
        addresses = set()
        for _ in range(2):
            sessions = make_sessions(simulate_keygen(threshold=1, parties=2), [1, 2])
            run_offline(sessions)
            partials = [s.partial(digest) for s in sessions]
            addresses.add(sessions[0].create(partials).address)

        assert len(addresses) == 2
