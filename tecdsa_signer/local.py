"""In-process driver running every party of a signing session on one event loop.

Each party owns a SigningSession and a mailbox queue. Envelopes returned by
proceed() are routed to the mailboxes of their receivers, partial
signatures are broadcast the same way. Useful for local development,
integration tests and as a reference for wiring sessions to a transport.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .config import SignerSettings, get_settings
from .engine import OfflineStageFactory
from .exceptions import ConfigurationError, SigningTimeoutError
from .schemas import (
    LocalKey,
    PartialSignature,
    RoundEnvelope,
    SessionState,
    SignatureResult,
)
from .session import SigningSession
from .simulation import SimulatedOfflineStage

logger = logging.getLogger(__name__)


class LocalParty:
    """One party of a locally driven signing session."""

    def __init__(self, session: SigningSession):
        self.session = session
        self.mailbox: "asyncio.Queue[RoundEnvelope]" = asyncio.Queue()
        self.partials: "asyncio.Queue[PartialSignature]" = asyncio.Queue()

    @property
    def index(self) -> int:
        return self.session.index


class LocalSigningCluster:
    """Drives one signing session per party until every party holds a signature."""

    def __init__(
        self,
        local_keys: Iterable[LocalKey],
        participants: Sequence[int],
        engine_factory: OfflineStageFactory = SimulatedOfflineStage,
        settings: Optional[SignerSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.participants = list(participants)
        keys_by_index = {key.index: key for key in local_keys}

        missing = [p for p in self.participants if p not in keys_by_index]
        if missing:
            raise ConfigurationError(
                "no local key for some participants", {"missing": missing}
            )

        self.parties: Dict[int, LocalParty] = {
            index: LocalParty(
                SigningSession(
                    index, self.participants, keys_by_index[index], engine_factory
                )
            )
            for index in self.participants
        }
        self.tasks: List["asyncio.Future[SignatureResult]"] = []

    def _route(self, envelopes: List[RoundEnvelope]) -> None:
        for envelope in envelopes:
            for party in self.parties.values():
                if envelope.is_for(party.index):
                    party.mailbox.put_nowait(envelope)

    async def _receive(self, queue: asyncio.Queue, party: LocalParty, what: str):
        timeout = self.settings.local_round_timeout_ms / 1000
        try:
            return await asyncio.wait_for(queue.get(), timeout)
        except asyncio.TimeoutError:
            raise SigningTimeoutError(
                f"party {party.index} timed out waiting for {what}",
                {"round": party.session.current_round},
            )

    async def _pause(self) -> None:
        await asyncio.sleep(self.settings.local_poll_interval_ms / 1000)

    async def _run_offline(self, party: LocalParty) -> None:
        session = party.session
        while session.state is not SessionState.OFFLINE_READY:
            result = session.proceed()
            if result.advanced:
                self._route(result.messages)
                await self._pause()
                continue
            envelope = await self._receive(party.mailbox, party, "a round message")
            session.handle_incoming(envelope)

    async def _run_party(self, party: LocalParty, digest: bytes) -> SignatureResult:
        await self._run_offline(party)

        partial = party.session.partial(digest)
        for other in self.parties.values():
            if other.index != party.index:
                other.partials.put_nowait(partial)

        partials = [partial]
        while len(partials) < len(self.participants):
            partials.append(
                await self._receive(party.partials, party, "partial signatures")
            )
        return party.session.create(partials)

    async def sign(self, digest: bytes) -> Dict[int, SignatureResult]:
        """Run the whole protocol for ``digest`` and return each party's result."""
        logger.info(f"Local signing started for participants {self.participants}")
        self.tasks = [
            asyncio.ensure_future(self._run_party(party, digest))
            for party in self.parties.values()
        ]
        try:
            results = await asyncio.gather(*self.tasks)
        finally:
            pending = [task for task in self.tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(f"Local signing aborted, cancelled {len(pending)} parties")
                await asyncio.gather(*pending, return_exceptions=True)
        return dict(zip(self.parties.keys(), results))


async def run_local_signing(
    local_keys: Iterable[LocalKey],
    participants: Sequence[int],
    digest: bytes,
    engine_factory: OfflineStageFactory = SimulatedOfflineStage,
    settings: Optional[SignerSettings] = None,
) -> Dict[int, SignatureResult]:
    """Sign ``digest`` with the given parties, all driven on the running loop."""
    cluster = LocalSigningCluster(local_keys, participants, engine_factory, settings)
    return await cluster.sign(digest)
