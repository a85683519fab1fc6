"""Reconciliation actor: the single owner of tracking state.

The actor consumes two queues, control requests from the command layer and
telemetry snapshots from the GSI listener, and handles one message at a time.
Nothing else reads or writes ``save_data`` or ``active_matches``, so no locks
are needed.

Snapshot pipeline (first failed check ignores the snapshot):
1) Player and hero sections present and not in spectator form
2) Ranked/unranked lobby (no custom game) in a tracked game phase
3) Auth token present and well formed
4) (token, steam id) registered
5) Match id numeric
6) Same match as the account's active one -> edit every recorded message;
   otherwise -> create one message per tracked channel and replace the record
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from ..exceptions import ChannelNotBoundError, StalkerError
from ..gsi.models import TelemetrySnapshot
from ..persistence.models import ClientIdentity, SaveData
from ..persistence.store import SaveStore
from .content import build_content
from .requests import AddTrack, BindChannel, ControlRequest, RegisterUser, RemoveTrack
from .sink import NotificationContent, NotificationHandle, NotificationSink

logger = structlog.get_logger(__name__)

TRACKED_PHASES = frozenset({"STRATEGY_TIME", "PRE_GAME", "GAME_IN_PROGRESS", "POST_GAME"})


def is_valid_token(token: str) -> bool:
    """Tokens are issued as UUID4 strings."""
    try:
        uuid.UUID(token)
    except (ValueError, TypeError, AttributeError):
        return False
    return True


def token_prefix(token: str) -> str:
    return token[:8]


@dataclass
class ActiveMatch:
    """Match currently announced for one Steam account."""

    match_id: int
    handles: list[NotificationHandle] = field(default_factory=list)


@dataclass(frozen=True)
class QualifiedSnapshot:
    steam_id: str
    user_id: int
    match_id: int


class ReconciliationActor:
    """Serialize control requests and snapshots over the tracking state."""

    def __init__(
        self,
        save_data: SaveData,
        store: SaveStore,
        sink: NotificationSink,
        control_queue: asyncio.Queue[ControlRequest],
        snapshot_queue: asyncio.Queue[TelemetrySnapshot],
        content_builder: Callable[[TelemetrySnapshot], NotificationContent] = build_content,
    ):
        self.save_data = save_data
        self.store = store
        self.sink = sink
        self.control_queue = control_queue
        self.snapshot_queue = snapshot_queue
        self.content_builder = content_builder
        self.active_matches: dict[str, ActiveMatch] = {}
        self._control_first = True
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start the actor loop in a background task."""
        if self._running and self._task and not self._task.done():
            return
        self._running = True
        self._task = asyncio.create_task(self.run(), name="reconciliation-actor")
        self._task.add_done_callback(self._on_task_done)
        logger.info(
            "tracker_started",
            channels=len(self.save_data.channels),
            registrations=len(self.save_data.registrations),
            tracked_users=len(self.save_data.tracks),
        )

    async def stop(self) -> None:
        """Cancel the actor loop; in-flight notification calls are dropped."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("tracker_stopped")

    def _on_task_done(self, task: asyncio.Task) -> None:
        if not self._running:
            return
        if task.cancelled():
            logger.warning("tracker_cancelled_unexpectedly")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("tracker_crashed", error=str(exc), error_type=type(exc).__name__)
        else:
            logger.warning("tracker_exited_unexpectedly")

    async def run(self) -> None:
        """Fair select over both queues, one message at a time."""
        control_get: asyncio.Task | None = None
        snapshot_get: asyncio.Task | None = None
        try:
            while True:
                if control_get is None:
                    control_get = asyncio.create_task(self.control_queue.get())
                if snapshot_get is None:
                    snapshot_get = asyncio.create_task(self.snapshot_queue.get())

                done, _ = await asyncio.wait(
                    {control_get, snapshot_get},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                ready = []
                if control_get in done:
                    ready.append(control_get.result())
                    control_get = None
                if snapshot_get in done:
                    ready.append(snapshot_get.result())
                    snapshot_get = None

                if len(ready) == 2:
                    if not self._control_first:
                        ready.reverse()
                    self._control_first = not self._control_first

                for message in ready:
                    await self.dispatch(message)
        finally:
            for pending in (control_get, snapshot_get):
                if pending is not None:
                    pending.cancel()

    async def dispatch(self, message: ControlRequest | TelemetrySnapshot) -> None:
        if isinstance(message, TelemetrySnapshot):
            try:
                await self.handle_snapshot(message)
            except Exception as e:
                logger.error(
                    "snapshot_handling_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
        else:
            await self.handle_control(message)

    # Control requests

    async def handle_control(self, request: ControlRequest) -> None:
        """Apply one control request and resolve its reply future."""
        try:
            result = await self._apply_control(request)
        except Exception as e:
            if isinstance(e, StalkerError):
                logger.warning(
                    "control_request_rejected",
                    request=type(request).__name__,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            else:
                logger.error(
                    "control_request_failed",
                    request=type(request).__name__,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            if not request.reply.done():
                request.reply.set_exception(e)
            return

        if not request.reply.done():
            request.reply.set_result(result)

    async def _apply_control(self, request: ControlRequest) -> str | None:
        if isinstance(request, RegisterUser):
            return await self.register_user(request.user_id, request.steam_id)
        if isinstance(request, BindChannel):
            return await self.bind_channel(request.channel_id)
        if isinstance(request, AddTrack):
            return await self.add_track(request.user_id, request.channel_id)
        if isinstance(request, RemoveTrack):
            return await self.remove_track(request.user_id, request.channel_id)
        raise TypeError(f"Unknown control request: {type(request).__name__}")

    async def _persist(self, updated: SaveData) -> None:
        # Swap only after the write succeeded so a failed save leaves state as it was.
        await self.store.save(updated)
        self.save_data = updated

    async def register_user(self, user_id: int, steam_id: str) -> str:
        token = str(uuid.uuid4())
        updated = self.save_data.copy()
        updated.registrations[ClientIdentity(token=token, steam_id=steam_id)] = user_id
        await self._persist(updated)
        logger.info(
            "user_registered",
            user_id=user_id,
            steam_id=steam_id,
            token_prefix=token_prefix(token),
        )
        return token

    async def bind_channel(self, channel_id: int) -> None:
        if channel_id in self.save_data.channels:
            logger.debug("channel_already_bound", channel_id=channel_id)
            return
        updated = self.save_data.copy()
        updated.channels.add(channel_id)
        await self._persist(updated)
        logger.info("channel_bound", channel_id=channel_id)

    async def add_track(self, user_id: int, channel_id: int) -> None:
        if channel_id not in self.save_data.channels:
            raise ChannelNotBoundError(channel_id)
        if channel_id in self.save_data.tracks.get(user_id, ()):
            logger.debug("track_already_present", user_id=user_id, channel_id=channel_id)
            return
        updated = self.save_data.copy()
        updated.tracks.setdefault(user_id, set()).add(channel_id)
        await self._persist(updated)
        logger.info("track_added", user_id=user_id, channel_id=channel_id)

    async def remove_track(self, user_id: int, channel_id: int) -> None:
        if channel_id not in self.save_data.tracks.get(user_id, ()):
            logger.debug("track_not_present", user_id=user_id, channel_id=channel_id)
            return
        updated = self.save_data.copy()
        channels = updated.tracks[user_id]
        channels.discard(channel_id)
        if not channels:
            del updated.tracks[user_id]
        await self._persist(updated)
        logger.info("track_removed", user_id=user_id, channel_id=channel_id)

    # Telemetry

    def qualify(self, snapshot: TelemetrySnapshot) -> QualifiedSnapshot | None:
        """Run the pipeline checks; ``None`` means the snapshot is ignored."""
        if snapshot.player is None or snapshot.hero is None:
            logger.debug("snapshot_ignored", reason="not_playing")
            return None

        game_map = snapshot.map
        if game_map is None:
            logger.debug("snapshot_ignored", reason="no_map")
            return None
        if game_map.customgamename:
            logger.debug("snapshot_ignored", reason="custom_game")
            return None
        if game_map.phase not in TRACKED_PHASES:
            logger.debug("snapshot_ignored", reason="untracked_phase", game_state=game_map.game_state)
            return None

        if snapshot.auth is None or not is_valid_token(snapshot.auth.token):
            logger.debug("snapshot_ignored", reason="invalid_token")
            return None

        steam_id = snapshot.player.steamid
        user_id = self.save_data.registrations.get(ClientIdentity(snapshot.auth.token, steam_id))
        if user_id is None:
            logger.debug("snapshot_ignored", reason="unknown_identity", steam_id=steam_id)
            return None

        # Plain ASCII digits only; int() would also take " 1", "+1", "1_0" and other scripts.
        matchid = game_map.matchid
        if not (matchid.isascii() and matchid.isdigit()):
            logger.debug("snapshot_ignored", reason="bad_match_id", matchid=matchid)
            return None

        return QualifiedSnapshot(steam_id=steam_id, user_id=user_id, match_id=int(matchid))

    async def handle_snapshot(self, snapshot: TelemetrySnapshot) -> None:
        qualified = self.qualify(snapshot)
        if qualified is None:
            return

        steam_id = qualified.steam_id
        active = self.active_matches.get(steam_id)

        if active is not None and active.match_id == qualified.match_id:
            await self._refresh(steam_id, active, self.content_builder(snapshot))
            return

        channels = sorted(self.save_data.tracks.get(qualified.user_id, ()))
        if not channels:
            if self.active_matches.pop(steam_id, None) is not None:
                logger.info("active_match_cleared", steam_id=steam_id, reason="no_tracked_channels")
            return

        if active is None:
            logger.info("match_started", steam_id=steam_id, match_id=qualified.match_id)
        else:
            logger.info(
                "match_replaced",
                steam_id=steam_id,
                old_match_id=active.match_id,
                match_id=qualified.match_id,
            )

        handles = await self._announce(steam_id, qualified.match_id, channels, self.content_builder(snapshot))
        if handles:
            self.active_matches[steam_id] = ActiveMatch(match_id=qualified.match_id, handles=handles)
        else:
            # Nothing delivered; leave no record so the next snapshot tries again.
            self.active_matches.pop(steam_id, None)
            logger.warning("match_announce_failed", steam_id=steam_id, match_id=qualified.match_id)

    async def _announce(
        self,
        steam_id: str,
        match_id: int,
        channels: list[int],
        content: NotificationContent,
    ) -> list[NotificationHandle]:
        results = await asyncio.gather(
            *(self.sink.create(channel_id, content) for channel_id in channels),
            return_exceptions=True,
        )

        handles: list[NotificationHandle] = []
        for channel_id, result in zip(channels, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    "notification_create_failed",
                    steam_id=steam_id,
                    match_id=match_id,
                    channel_id=channel_id,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                continue
            handles.append(result)

        logger.info(
            "match_announced",
            steam_id=steam_id,
            match_id=match_id,
            delivered=len(handles),
            channels=len(channels),
        )
        return handles

    async def _refresh(self, steam_id: str, active: ActiveMatch, content: NotificationContent) -> None:
        results = await asyncio.gather(
            *(self.sink.edit(handle, content) for handle in active.handles),
            return_exceptions=True,
        )

        failed = 0
        for handle, result in zip(active.handles, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failed += 1
                logger.error(
                    "notification_edit_failed",
                    steam_id=steam_id,
                    match_id=active.match_id,
                    channel_id=handle.channel_id,
                    message_id=handle.message_id,
                    error=str(result),
                    error_type=type(result).__name__,
                )

        logger.debug(
            "match_refreshed",
            steam_id=steam_id,
            match_id=active.match_id,
            edited=len(active.handles) - failed,
            failed=failed,
        )
