"""Simulated threshold-signing engine for local development and tests.

Follows the message flow of a GG20-style offline stage with real secp256k1
arithmetic, but the MtA sub-protocol is replaced by openly broadcast nonce
shares and key generation by a trusted dealer. Anyone who sees the nonce and
a signature can recover the private key, so this engine must never protect
real funds. In production an engine backed by a real MPC library plugs into
the same interface.

Rounds:
    0 -> 1  broadcast k_i and Gamma_i = gamma_i * G
    1 -> 2  broadcast delta_i = k * gamma_i
    2 -> 3  check every delta_j against Gamma_j, compute R = delta^-1 * Gamma
            and the local share sigma_i = k * w_i of k * x
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError

from . import curve
from .engine import OutgoingMessage
from .exceptions import (
    CombinationError,
    ConfigurationError,
    DuplicateMessageError,
    MalformedMessageError,
    OfflineStageIncompleteError,
    OutOfRoundError,
    PreconditionError,
    ProtocolError,
    UnknownPartyError,
)
from .schemas import (
    HexBytes,
    HexInt,
    LocalKey,
    PartialSignature,
    RoundEnvelope,
    SignatureRecid,
)

logger = logging.getLogger(__name__)

MESSAGE_ROUNDS = 2
FINAL_ROUND = 3


class Round1Message(BaseModel):
    """Nonce share and gamma commitment point."""

    nonce_share: HexInt = Field(..., description="Additive share k_i of the nonce")
    gamma_point: HexBytes = Field(..., description="Gamma_i = gamma_i * G")


class Round2Message(BaseModel):
    """Share of delta = k * gamma."""

    delta_share: HexInt = Field(..., description="delta_i = k * gamma_i")


_ROUND_BODIES = {1: Round1Message, 2: Round2Message}


def simulate_keygen(threshold: int, parties: int) -> List[LocalKey]:
    """Produce consistent key shares for ``parties`` holders with a trusted dealer.

    Stands in for a distributed key generation run. Any ``threshold + 1``
    of the returned keys can sign together.
    """
    if parties < 1 or not 0 <= threshold < parties:
        raise ConfigurationError(
            f"invalid threshold configuration t={threshold}, n={parties}"
        )

    secret = curve.random_scalar()
    shares = curve.shamir_split(secret, threshold, parties)
    public_key = curve.encode_point(curve.mul_base(secret))
    public_shares = [curve.encode_point(curve.mul_base(y)) for _, y in shares]

    logger.info(f"Simulated keygen produced {parties} shares, threshold {threshold}")
    return [
        LocalKey(
            index=i,
            threshold=threshold,
            parties=parties,
            secret_share=y,
            public_key=public_key,
            public_shares=public_shares,
        )
        for i, y in shares
    ]


class SimulatedCompletedOfflineStage(BaseModel):
    """Offline stage output of one party."""

    index: int
    participants: List[int]
    r_point: HexBytes = Field(..., description="Nonce point R = k^-1 * G")
    nonce_share: HexInt = Field(..., repr=False)
    sigma_share: HexInt = Field(..., repr=False)
    public_key: HexBytes = Field(..., description="Uncompressed joint public key")


class SimulatedSignManual:
    """Binds a completed offline stage to one digest."""

    def __init__(self, digest: int, completed: SimulatedCompletedOfflineStage):
        self._completed = completed
        x, y = curve.decode_point(completed.r_point)
        self._r = x % curve.N
        self._recid = (y & 1) | (2 if x >= curve.N else 0)
        m = digest % curve.N
        # s_i = m * k_i + r * sigma_i, so sum(s_i) = k * (m + r * x)
        self.local_share = (
            m * completed.nonce_share + self._r * completed.sigma_share
        ) % curve.N

    @classmethod
    def new(
        cls, digest: int, completed: SimulatedCompletedOfflineStage
    ) -> Tuple["SimulatedSignManual", PartialSignature]:
        sign = cls(digest, completed)
        return sign, PartialSignature(sender=completed.index, value=sign.local_share)

    def complete(self, partials: Sequence[PartialSignature]) -> SignatureRecid:
        """Combine the other participants' partials with the local one.

        The local partial may be included; it must then match.
        """
        own = self._completed.index
        expected = set(self._completed.participants)
        shares: Dict[int, int] = {own: self.local_share}

        for entry in partials:
            try:
                partial = PartialSignature.model_validate(entry)
            except ValidationError as e:
                raise MalformedMessageError("malformed partial signature", str(e))
            if partial.sender not in expected:
                raise UnknownPartyError(
                    f"partial signature from non-participant {partial.sender}"
                )
            if partial.sender == own:
                if partial.value % curve.N != self.local_share:
                    raise CombinationError("own partial signature does not match")
                continue
            if partial.sender in shares:
                if shares[partial.sender] != partial.value % curve.N:
                    raise CombinationError(
                        f"conflicting partial signatures from party {partial.sender}"
                    )
                continue
            shares[partial.sender] = partial.value % curve.N

        missing = sorted(expected - shares.keys())
        if missing:
            raise CombinationError("missing partial signatures", {"missing": missing})

        s = sum(shares.values()) % curve.N
        if s == 0:
            raise CombinationError("combined signature has s = 0")

        recid = self._recid
        if s > curve.N // 2:
            s = curve.N - s
            recid ^= 1
        return SignatureRecid(r=self._r, s=s, recid=recid)


class SimulatedOfflineStage:
    """Offline stage of one party over the simulated protocol."""

    def __init__(self, index: int, participants: List[int], local_key: LocalKey):
        participants = list(participants)
        if local_key.index != index:
            raise ConfigurationError(
                f"local key belongs to party {local_key.index}, not {index}"
            )
        if len(set(participants)) != len(participants):
            raise ConfigurationError("duplicate participant indices")
        unknown = [p for p in participants if not 1 <= p <= local_key.parties]
        if unknown:
            raise ConfigurationError(
                "participants do not hold shares of this key", {"unknown": unknown}
            )
        if index not in participants:
            raise ConfigurationError(f"party {index} is not a participant")
        if len(participants) <= local_key.threshold:
            raise ConfigurationError(
                f"at least {local_key.threshold + 1} participants required, "
                f"got {len(participants)}"
            )

        try:
            public_key = curve.decode_point(local_key.public_key)
            public_shares = [curve.decode_point(p) for p in local_key.public_shares]
        except ValueError as e:
            raise ConfigurationError("malformed local key", str(e))

        if curve.mul_base(local_key.secret_share) != public_shares[index - 1]:
            raise ConfigurationError("secret share does not match its public share")

        lambdas = {j: curve.lagrange_at_zero(j, participants) for j in participants}
        interpolated = curve.add(
            *(curve.mul(public_shares[j - 1], lambdas[j]) for j in participants)
        )
        if interpolated != public_key:
            raise ConfigurationError(
                "public shares of the participants do not match the public key"
            )

        self._index = index
        self._participants = participants
        self._others = [p for p in participants if p != index]
        self._public_key = public_key
        self._weighted_share = (lambdas[index] * local_key.secret_share) % curve.N

        self._round = 0
        self._received: Dict[int, Dict[int, BaseModel]] = {
            r: {} for r in range(1, MESSAGE_ROUNDS + 1)
        }
        self._nonce_share: Optional[int] = None
        self._gamma_share: Optional[int] = None
        self._nonce: Optional[int] = None
        self._output: Optional[SimulatedCompletedOfflineStage] = None
        self._output_taken = False

    @property
    def current_round(self) -> int:
        return self._round

    @property
    def is_finished(self) -> bool:
        return self._round == FINAL_ROUND

    def accept_incoming(self, envelope: RoundEnvelope) -> None:
        if self.is_finished:
            raise OutOfRoundError(
                f"offline stage finished, got round {envelope.round} message "
                f"from party {envelope.sender}"
            )
        if envelope.sender not in self._others:
            raise UnknownPartyError(f"message from non-participant {envelope.sender}")
        if envelope.receiver is not None and envelope.receiver != self._index:
            raise UnknownPartyError(
                f"message addressed to party {envelope.receiver}, not {self._index}"
            )

        # A peer can be at most one round ahead of us.
        allowed = range(max(self._round, 1), min(self._round + 1, MESSAGE_ROUNDS) + 1)
        if envelope.round not in allowed:
            raise OutOfRoundError(
                f"round {envelope.round} message from party {envelope.sender} "
                f"while in round {self._round}"
            )

        received = self._received[envelope.round]
        if envelope.sender in received:
            raise DuplicateMessageError(
                f"duplicate round {envelope.round} message from party {envelope.sender}"
            )

        try:
            body = _ROUND_BODIES[envelope.round].model_validate(envelope.body)
            if isinstance(body, Round1Message):
                curve.decode_point(body.gamma_point)
        except (ValidationError, ValueError) as e:
            raise MalformedMessageError(
                f"malformed round {envelope.round} message from party {envelope.sender}",
                str(e),
            )

        received[envelope.sender] = body
        logger.debug(
            f"Party {self._index} accepted round {envelope.round} message "
            f"from party {envelope.sender}"
        )

    def ready_to_advance(self) -> bool:
        if self._round == 0:
            return True
        if self._round > MESSAGE_ROUNDS:
            return False
        return len(self._received[self._round]) == len(self._others)

    def advance(self) -> List[OutgoingMessage]:
        if not self.ready_to_advance():
            raise ProtocolError(f"cannot advance from round {self._round}")

        if self._round == 0:
            outgoing = self._round_one()
        elif self._round == 1:
            outgoing = self._round_two()
        else:
            outgoing = self._finalize()

        self._round += 1
        logger.debug(
            f"Party {self._index} advanced to round {self._round}, "
            f"{len(outgoing)} outgoing messages"
        )
        return outgoing

    def _round_one(self) -> List[OutgoingMessage]:
        self._nonce_share = curve.random_scalar()
        self._gamma_share = curve.random_scalar()
        body = Round1Message(
            nonce_share=self._nonce_share,
            gamma_point=curve.encode_point(curve.mul_base(self._gamma_share)),
        )
        return [OutgoingMessage(None, body.model_dump(mode="json"))]

    def _round_two(self) -> List[OutgoingMessage]:
        shares = [m.nonce_share for m in self._received[1].values()]
        self._nonce = (self._nonce_share + sum(shares)) % curve.N
        if self._nonce == 0:
            raise ProtocolError("nonce shares sum to zero")
        body = Round2Message(delta_share=(self._nonce * self._gamma_share) % curve.N)
        return [OutgoingMessage(None, body.model_dump(mode="json"))]

    def _finalize(self) -> List[OutgoingMessage]:
        k = self._nonce
        gamma_points = [curve.mul_base(self._gamma_share)]
        delta = (k * self._gamma_share) % curve.N

        for sender in self._others:
            gamma_j = curve.decode_point(self._received[1][sender].gamma_point)
            delta_j = self._received[2][sender].delta_share % curve.N
            if curve.mul_base(delta_j) != curve.mul(gamma_j, k):
                raise ProtocolError(f"party {sender} sent an inconsistent delta share")
            gamma_points.append(gamma_j)
            delta = (delta + delta_j) % curve.N

        if delta == 0:
            raise ProtocolError("delta is zero")

        r_point = curve.mul(curve.add(*gamma_points), curve.inverse(delta))
        if r_point[0] % curve.N == 0:
            raise ProtocolError("nonce point has r = 0")

        self._output = SimulatedCompletedOfflineStage(
            index=self._index,
            participants=self._participants,
            r_point=curve.encode_point(r_point),
            nonce_share=self._nonce_share,
            sigma_share=(k * self._weighted_share) % curve.N,
            public_key=curve.encode_point(self._public_key),
        )
        return []

    def take_completed_output(self) -> SimulatedCompletedOfflineStage:
        if self._output_taken:
            raise PreconditionError("completed offline stage was already taken")
        if not self.is_finished:
            raise OfflineStageIncompleteError(
                f"offline stage incomplete, in round {self._round} of {FINAL_ROUND}"
            )
        output, self._output = self._output, None
        self._output_taken = True
        return output

    def sign_manual(
        self, digest: int, completed: SimulatedCompletedOfflineStage
    ) -> Tuple[SimulatedSignManual, PartialSignature]:
        if not isinstance(completed, SimulatedCompletedOfflineStage):
            raise ProtocolError(
                f"unsupported completed offline stage {type(completed).__name__}"
            )
        return SimulatedSignManual.new(digest, completed)
