"""
MPV media tracks driven over JSON IPC.

Each track owns one mpv process. Nothing here blocks the UI thread: the
backend pumps every live track once per frame, which advances process
start-up and loading and refreshes cached playback status.
"""

import json
import os
import socket
import subprocess
import tempfile
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from meditone.core.config import PlayerConfig
from meditone.core.frames import FrameScheduler

from .exceptions import MpvUnavailableError, TrackLoadError
from .media import TrackCallbacks

# Minimum seconds between status refreshes over IPC
STATUS_POLL_INTERVAL = 0.05

# Reported positions this far behind the interpolated one count as IPC lag
POSITION_LAG_TOLERANCE = 1.0

# Track lifecycle phases
_STARTING = "starting"  # Process spawned, waiting for the IPC socket
_LOADING = "loading"  # loadfile sent, waiting for a duration
_READY = "ready"
_FAILED = "failed"
_UNLOADED = "unloaded"


def check_mpv_available(mpv_path: str = "mpv") -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            [mpv_path, "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def _ipc_request(socket_path: Optional[str], command: list[Any]) -> Optional[dict]:
    """Send one JSON IPC command and return the decoded reply."""
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(0.5)
            sock.connect(socket_path)

            command_json = json.dumps({"command": command}) + "\n"
            sock.send(command_json.encode("utf-8"))

            response = sock.recv(4096).decode("utf-8").strip()
    except (socket.error, OSError):
        return None

    # mpv may interleave event lines with the reply
    for line in response.splitlines():
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if "error" in data:
            return data
    return None


def send_mpv_command(socket_path: Optional[str], *command: Any) -> bool:
    """Send JSON IPC command to MPV."""
    reply = _ipc_request(socket_path, list(command))
    return reply is not None and reply.get("error") == "success"


def get_mpv_property(socket_path: Optional[str], property_name: str) -> Any:
    """Get a property value from MPV."""
    reply = _ipc_request(socket_path, ["get_property", property_name])
    if reply is not None and reply.get("error") == "success":
        return reply.get("data")
    return None


class MpvTrack:
    """One media track backed by its own mpv process.

    Transport calls made before the process is ready are remembered and
    applied once the file is loaded.
    """

    def __init__(
        self,
        backend: "MpvBackend",
        url: str,
        volume: float,
        loop: bool,
        callbacks: TrackCallbacks,
    ):
        self.backend = backend
        self.url = url
        self.loop = loop
        self.callbacks = callbacks

        self._volume = volume
        self._phase = _STARTING
        self._process: Optional[subprocess.Popen] = None
        self._socket_path: Optional[str] = None
        self._started_at = 0.0

        # Cached status, refreshed by update()
        self._want_playing = False
        self._ended = False
        self._duration: Optional[float] = None
        self._last_actual_position = 0.0
        self._last_position_time = 0.0
        self._last_poll_time = 0.0

    @property
    def phase(self) -> str:
        return self._phase

    def start(self, now: float) -> None:
        """Spawn the mpv process; loading continues from update()."""
        config = self.backend.config
        socket_dir = Path(config.socket_dir or tempfile.gettempdir())
        self._socket_path = str(socket_dir / f"meditone-mpv-{uuid.uuid4().hex[:12]}")
        self._started_at = now

        cmd = [
            config.mpv_path,
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            "--pause",
            f"--input-ipc-server={self._socket_path}",
            f"--volume={round(self._volume * 100)}",
            "--keep-open=yes",
            "--load-scripts=no",
        ]
        if self.loop:
            cmd.append("--loop-file=inf")

        logger.debug(f"Starting mpv for {self.url} with socket: {self._socket_path}")
        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise MpvUnavailableError(f"Failed to start mpv: {e}") from e

    # Transport -------------------------------------------------------------

    def play(self) -> None:
        if self._phase in (_FAILED, _UNLOADED):
            return
        if self._ended:
            # Replaying a finished track starts from the top
            self.seek(0.0)
            self._ended = False
        self._want_playing = True
        self._last_position_time = self.backend.clock()
        if self._phase == _READY:
            send_mpv_command(self._socket_path, "set_property", "pause", False)

    def pause(self) -> None:
        if self._phase in (_FAILED, _UNLOADED):
            return
        self._last_actual_position = self.position()
        self._want_playing = False
        if self._phase == _READY:
            send_mpv_command(self._socket_path, "set_property", "pause", True)

    def stop(self) -> None:
        self.pause()
        if self._phase == _READY:
            self.seek(0.0)

    def seek(self, seconds: float) -> None:
        if self._phase != _READY:
            return
        if send_mpv_command(self._socket_path, "seek", seconds, "absolute"):
            self._last_actual_position = seconds
            self._last_position_time = self.backend.clock()
            self._ended = False

    def set_volume(self, volume: float) -> None:
        self._volume = volume
        if self._phase == _READY:
            send_mpv_command(
                self._socket_path, "set_property", "volume", round(volume * 100)
            )

    def unload(self) -> None:
        """Kill the mpv process and forget the track."""
        if self._phase == _UNLOADED:
            return
        self._phase = _UNLOADED
        self._want_playing = False
        self.backend.detach(self)

        if self._process:
            try:
                self._process.kill()
                self._process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired):
                pass  # Process already terminated or couldn't be killed
        if self._socket_path and os.path.exists(self._socket_path):
            try:
                os.unlink(self._socket_path)
            except OSError:
                pass
        logger.debug(f"Unloaded mpv track: {self.url}")

    # Status ----------------------------------------------------------------

    def position(self) -> float:
        """Position in seconds, interpolated between IPC polls."""
        return self._interpolated_position(self.backend.clock())

    def _interpolated_position(self, now: float) -> float:
        if not self.is_playing():
            return self._last_actual_position
        elapsed = now - self._last_position_time
        position = self._last_actual_position + max(0.0, elapsed)
        if self._duration and not self.loop:
            position = min(position, self._duration)
        return position

    def duration(self) -> Optional[float]:
        return self._duration

    def is_playing(self) -> bool:
        return self._phase == _READY and self._want_playing and not self._ended

    # Pump ------------------------------------------------------------------

    def update(self, now: float) -> None:
        """Advance loading and refresh cached status. Called once per frame."""
        if self._phase in (_FAILED, _UNLOADED):
            return

        if self._process is not None and self._process.poll() is not None:
            if self._phase == _READY:
                logger.warning(f"mpv exited while playing {self.url}")
                self._want_playing = False
                self._ended = True
                return
            self._fail("mpv exited before the track loaded")
            return

        if now - self._started_at > self.backend.config.load_timeout and (
            self._phase in (_STARTING, _LOADING)
        ):
            self._fail(
                f"timed out after {self.backend.config.load_timeout:.1f}s"
            )
            return

        if self._phase == _STARTING:
            if self._socket_path and os.path.exists(self._socket_path):
                if send_mpv_command(self._socket_path, "loadfile", self.url, "replace"):
                    self._phase = _LOADING
                    logger.debug(f"Loading file metadata for: {self.url}")
            return

        if self._phase == _LOADING:
            duration = get_mpv_property(self._socket_path, "duration")
            if duration and duration > 0:
                self._duration = float(duration)
                self._phase = _READY
                logger.info(
                    f"Metadata loaded: {self.url} duration={self._duration:.2f}s"
                )
                send_mpv_command(
                    self._socket_path, "set_property", "volume", round(self._volume * 100)
                )
                if self._want_playing:
                    send_mpv_command(self._socket_path, "set_property", "pause", False)
                    self._last_position_time = now
                self.callbacks.on_load()
            return

        if now - self._last_poll_time >= STATUS_POLL_INTERVAL:
            self._last_poll_time = now
            self._refresh_status(now)

    def _refresh_status(self, now: float) -> None:
        if self._ended:
            return
        position = get_mpv_property(self._socket_path, "time-pos")
        if position is not None:
            reported = float(position)
            interpolated = self._interpolated_position(now)
            if 0.0 < interpolated - reported <= POSITION_LAG_TOLERANCE:
                # Lagging report; keep position monotonic while playing
                reported = interpolated
            self._last_actual_position = reported
            self._last_position_time = now

        if self.loop or not self._want_playing:
            return

        eof = get_mpv_property(self._socket_path, "eof-reached")
        if eof is True:
            self._ended = True
            self._want_playing = False
            if self._duration:
                self._last_actual_position = self._duration
            logger.info(f"Track finished: {self.url}")
            self.callbacks.on_end()

    def _fail(self, reason: str) -> None:
        logger.error(f"Failed to load {self.url}: {reason}")
        self._phase = _FAILED
        self._want_playing = False
        self.callbacks.on_load_error(reason)


class MpvBackend:
    """Creates mpv tracks and pumps them from the frame scheduler.

    At most one pump frame is pending at a time; the pump stops once no
    track is alive.
    """

    def __init__(
        self,
        scheduler: FrameScheduler,
        config: Optional[PlayerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.scheduler = scheduler
        self.config = config or PlayerConfig()
        self.clock = clock
        self._tracks: list[MpvTrack] = []
        self._frame: Optional[int] = None

    @property
    def tracks(self) -> list[MpvTrack]:
        return list(self._tracks)

    def create_track(
        self,
        url: str,
        *,
        volume: float,
        loop: bool,
        callbacks: TrackCallbacks,
    ) -> MpvTrack:
        """Spawn an mpv process for url.

        Raises:
            TrackLoadError: If url is a local path that does not exist
            MpvUnavailableError: If mpv cannot be started
        """
        if "://" not in url and not Path(url).expanduser().exists():
            raise TrackLoadError(url, f"File not found: {url}")
        track = MpvTrack(self, url, volume, loop, callbacks)
        track.start(self.clock())
        self._tracks.append(track)
        self._schedule()
        return track

    def detach(self, track: MpvTrack) -> None:
        if track in self._tracks:
            self._tracks.remove(track)
        if not self._tracks:
            self.scheduler.cancel_frame(self._frame)
            self._frame = None

    def close(self) -> None:
        """Unload every live track."""
        for track in list(self._tracks):
            track.unload()

    def _schedule(self) -> None:
        self.scheduler.cancel_frame(self._frame)
        self._frame = self.scheduler.request_frame(self._pump)

    def _pump(self, timestamp: float) -> None:
        self._frame = None
        now = self.clock()
        for track in list(self._tracks):
            track.update(now)
        if self._tracks and self._frame is None:
            self._schedule()
