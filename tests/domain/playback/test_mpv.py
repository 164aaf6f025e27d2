"""Tests for the mpv-backed media tracks, with the IPC layer mocked out."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from meditone.core.config import PlayerConfig
from meditone.domain.playback import mpv
from meditone.domain.playback.exceptions import MpvUnavailableError, TrackLoadError
from meditone.domain.playback.media import TrackCallbacks
from meditone.domain.playback.mpv import MpvBackend


@pytest.fixture
def audio_file(tmp_path: Path) -> str:
    path = tmp_path / "calm.ogg"
    path.write_bytes(b"")
    return str(path)


@pytest.fixture
def process() -> MagicMock:
    process = MagicMock()
    process.poll.return_value = None
    return process


@pytest.fixture
def properties() -> dict:
    """Property values the fake mpv reports."""
    return {"duration": 90.0, "time-pos": 0.0, "eof-reached": False}


@pytest.fixture
def ipc(process, properties, tmp_path):
    """Patch process spawning and JSON IPC."""
    with patch.object(mpv.subprocess, "Popen", return_value=process) as popen, patch.object(
        mpv, "send_mpv_command", return_value=True
    ) as send, patch.object(
        mpv, "get_mpv_property", side_effect=lambda socket, name: properties.get(name)
    ) as get, patch.object(mpv.os.path, "exists", return_value=True):
        yield MagicMock(popen=popen, send=send, get=get)


@pytest.fixture
def backend(scheduler, clock, tmp_path) -> MpvBackend:
    backend = MpvBackend(scheduler, PlayerConfig(socket_dir=str(tmp_path)), clock=clock)
    yield backend
    backend.close()


@pytest.fixture
def callbacks() -> TrackCallbacks:
    return TrackCallbacks(on_load=MagicMock(), on_load_error=MagicMock(), on_end=MagicMock())


def make_ready(backend, scheduler, audio_file, callbacks, loop=False):
    track = backend.create_track(audio_file, volume=0.8, loop=loop, callbacks=callbacks)
    scheduler.tick()  # socket ready -> loadfile
    scheduler.tick()  # duration known -> ready
    return track


class TestCreateTrack:
    """Test spawning mpv processes."""

    def test_spawns_mpv_with_ipc_socket(self, ipc, backend, audio_file, callbacks, tmp_path):
        """Test the command line starts paused, audio-only, with an IPC server."""
        backend.create_track(audio_file, volume=0.8, loop=False, callbacks=callbacks)

        cmd = ipc.popen.call_args[0][0]
        assert cmd[0] == "mpv"
        assert "--no-video" in cmd
        assert "--pause" in cmd
        assert "--volume=80" in cmd
        assert "--loop-file=inf" not in cmd
        assert any(arg.startswith(f"--input-ipc-server={tmp_path}") for arg in cmd)

    def test_looping_track(self, ipc, backend, audio_file, callbacks):
        """Test background tracks loop forever."""
        backend.create_track(audio_file, volume=0.5, loop=True, callbacks=callbacks)
        assert "--loop-file=inf" in ipc.popen.call_args[0][0]

    def test_missing_file_raises(self, ipc, backend, callbacks, tmp_path):
        """Test a local path that does not exist is rejected up front."""
        with pytest.raises(TrackLoadError):
            backend.create_track(
                str(tmp_path / "missing.ogg"), volume=0.8, loop=False, callbacks=callbacks
            )
        ipc.popen.assert_not_called()

    def test_urls_skip_file_check(self, ipc, backend, callbacks):
        """Test remote URLs are handed straight to mpv."""
        track = backend.create_track(
            "https://example.com/calm.mp3", volume=0.8, loop=False, callbacks=callbacks
        )
        assert track.url == "https://example.com/calm.mp3"

    def test_spawn_failure_raises_unavailable(self, backend, audio_file, callbacks):
        """Test a missing mpv executable surfaces as MpvUnavailableError."""
        with patch.object(mpv.subprocess, "Popen", side_effect=FileNotFoundError("mpv")):
            with pytest.raises(MpvUnavailableError):
                backend.create_track(audio_file, volume=0.8, loop=False, callbacks=callbacks)

    def test_callbacks_not_fired_during_create(self, ipc, backend, audio_file, callbacks):
        """Test load results only arrive from the pump."""
        backend.create_track(audio_file, volume=0.8, loop=False, callbacks=callbacks)
        callbacks.on_load.assert_not_called()
        callbacks.on_load_error.assert_not_called()


class TestLoading:
    """Test the load sequence driven by the frame pump."""

    def test_load_sequence(self, ipc, backend, scheduler, audio_file, callbacks):
        """Test loadfile then duration then on_load."""
        track = backend.create_track(audio_file, volume=0.8, loop=False, callbacks=callbacks)

        scheduler.tick()
        ipc.send.assert_any_call(track._socket_path, "loadfile", audio_file, "replace")
        callbacks.on_load.assert_not_called()

        scheduler.tick()
        callbacks.on_load.assert_called_once()
        assert track.duration() == 90.0
        assert track.phase == "ready"

    def test_waits_for_duration(self, ipc, backend, scheduler, audio_file, callbacks, properties):
        """Test the track stays loading until mpv reports a duration."""
        properties["duration"] = None
        track = make_ready(backend, scheduler, audio_file, callbacks)
        assert track.phase == "loading"
        callbacks.on_load.assert_not_called()

    def test_play_before_ready_is_applied_on_load(self, ipc, backend, scheduler, audio_file, callbacks):
        """Test transport calls made while loading are remembered."""
        track = backend.create_track(audio_file, volume=0.8, loop=False, callbacks=callbacks)
        track.play()
        assert not track.is_playing()

        scheduler.tick()
        scheduler.tick()

        ipc.send.assert_any_call(track._socket_path, "set_property", "pause", False)
        assert track.is_playing()

    def test_load_timeout(self, ipc, backend, scheduler, clock, audio_file, callbacks, properties):
        """Test a load that never completes is reported as an error."""
        properties["duration"] = None
        track = make_ready(backend, scheduler, audio_file, callbacks)

        clock.advance(11.0)
        scheduler.tick()

        callbacks.on_load_error.assert_called_once()
        assert "timed out" in callbacks.on_load_error.call_args[0][0]
        assert track.phase == "failed"

    def test_process_exit_before_load(self, ipc, backend, scheduler, process, audio_file, callbacks):
        """Test mpv dying while loading is reported as an error."""
        backend.create_track(audio_file, volume=0.8, loop=False, callbacks=callbacks)
        process.poll.return_value = 2

        scheduler.tick()

        callbacks.on_load_error.assert_called_once_with("mpv exited before the track loaded")


class TestTransport:
    """Test transport commands on a ready track."""

    def test_pause_and_volume(self, ipc, backend, scheduler, audio_file, callbacks):
        """Test pause and volume are sent over IPC."""
        track = make_ready(backend, scheduler, audio_file, callbacks)
        track.play()
        track.pause()
        track.set_volume(0.5)

        ipc.send.assert_any_call(track._socket_path, "set_property", "pause", True)
        ipc.send.assert_any_call(track._socket_path, "set_property", "volume", 50)
        assert not track.is_playing()

    def test_seek(self, ipc, backend, scheduler, audio_file, callbacks):
        """Test seek is absolute and updates the cached position."""
        track = make_ready(backend, scheduler, audio_file, callbacks)
        track.seek(42.0)
        ipc.send.assert_any_call(track._socket_path, "seek", 42.0, "absolute")
        assert track.position() == 42.0

    def test_position_interpolates_between_polls(self, ipc, backend, scheduler, clock, audio_file, callbacks):
        """Test position advances with the clock while playing."""
        track = make_ready(backend, scheduler, audio_file, callbacks)
        track.play()
        clock.advance(2.5)
        assert track.position() == pytest.approx(2.5)

    def test_lagging_poll_does_not_move_position_back(
        self, ipc, backend, scheduler, clock, audio_file, callbacks, properties
    ):
        """Test a time-pos behind the interpolated position keeps position monotonic."""
        track = make_ready(backend, scheduler, audio_file, callbacks)
        track.play()
        clock.advance(0.2)
        before = track.position()
        properties["time-pos"] = 0.1

        scheduler.tick()

        assert track.position() >= before
        clock.advance(0.1)
        assert track.position() == pytest.approx(0.3)

    def test_poll_far_behind_reanchors(self, ipc, backend, scheduler, clock, audio_file, callbacks, properties):
        """Test a large jump back, such as a loop restart, is taken as reported."""
        track = make_ready(backend, scheduler, audio_file, callbacks, loop=True)
        track.play()
        clock.advance(5.0)
        properties["time-pos"] = 0.5

        scheduler.tick()

        assert track.position() == pytest.approx(0.5)

    def test_end_of_file(self, ipc, backend, scheduler, clock, audio_file, callbacks, properties):
        """Test eof-reached fires on_end once and stops playback."""
        track = make_ready(backend, scheduler, audio_file, callbacks)
        track.play()
        properties["eof-reached"] = True

        clock.advance(0.1)
        scheduler.tick()
        clock.advance(0.1)
        scheduler.tick()

        callbacks.on_end.assert_called_once()
        assert not track.is_playing()
        assert track.position() == 90.0

    def test_looping_track_never_ends(self, ipc, backend, scheduler, clock, audio_file, callbacks, properties):
        """Test looping tracks ignore eof-reached."""
        track = make_ready(backend, scheduler, audio_file, callbacks, loop=True)
        track.play()
        properties["eof-reached"] = True

        clock.advance(0.1)
        scheduler.tick()

        callbacks.on_end.assert_not_called()
        assert track.is_playing()


class TestUnload:
    """Test releasing tracks."""

    def test_unload_kills_process_and_stops_pump(self, ipc, backend, scheduler, process, audio_file, callbacks):
        """Test unload kills mpv, detaches, and leaves no pump frame."""
        track = make_ready(backend, scheduler, audio_file, callbacks)

        track.unload()

        process.kill.assert_called_once()
        assert backend.tracks == []
        assert scheduler.pending == 0

    def test_unload_is_idempotent(self, ipc, backend, scheduler, process, audio_file, callbacks):
        """Test a second unload does nothing."""
        track = make_ready(backend, scheduler, audio_file, callbacks)
        track.unload()
        track.unload()
        process.kill.assert_called_once()

    def test_commands_after_unload_are_ignored(self, ipc, backend, scheduler, audio_file, callbacks):
        """Test transport on an unloaded track is a no-op."""
        track = make_ready(backend, scheduler, audio_file, callbacks)
        track.unload()
        ipc.send.reset_mock()

        track.play()
        track.seek(10.0)

        ipc.send.assert_not_called()
        assert not track.is_playing()


class TestIpcHelpers:
    """Test the JSON IPC helpers."""

    def test_send_command_success(self):
        """Test a success reply maps to True."""
        with patch.object(mpv, "_ipc_request", return_value={"error": "success"}) as request:
            assert mpv.send_mpv_command("/tmp/sock", "seek", 1.0, "absolute") is True
        request.assert_called_once_with("/tmp/sock", ["seek", 1.0, "absolute"])

    def test_send_command_failure(self):
        """Test an error reply or no reply maps to False."""
        with patch.object(mpv, "_ipc_request", return_value={"error": "property not found"}):
            assert mpv.send_mpv_command("/tmp/sock", "stop") is False
        with patch.object(mpv, "_ipc_request", return_value=None):
            assert mpv.send_mpv_command("/tmp/sock", "stop") is False

    def test_get_property(self):
        """Test property data is unwrapped."""
        with patch.object(mpv, "_ipc_request", return_value={"error": "success", "data": 12.5}):
            assert mpv.get_mpv_property("/tmp/sock", "time-pos") == 12.5

    def test_request_without_socket(self, tmp_path: Path):
        """Test requests to a missing socket return None."""
        assert mpv._ipc_request(str(tmp_path / "none"), ["stop"]) is None
        assert mpv._ipc_request(None, ["stop"]) is None

    def test_socket_closed_when_request_fails(self):
        """Test the IPC socket is released even when the reply never arrives."""
        sock = MagicMock()
        sock.__enter__.return_value = sock
        sock.__exit__.return_value = False
        sock.recv.side_effect = OSError("timed out")
        with patch.object(mpv.socket, "socket", return_value=sock), patch.object(
            mpv.os.path, "exists", return_value=True
        ):
            assert mpv._ipc_request("/tmp/sock", ["stop"]) is None
        sock.__exit__.assert_called_once()

    def test_socket_closed_after_reply(self):
        """Test a successful request also releases the socket."""
        sock = MagicMock()
        sock.__enter__.return_value = sock
        sock.__exit__.return_value = False
        sock.recv.return_value = b'{"event":"idle"}\n{"data":3.0,"error":"success"}\n'
        with patch.object(mpv.socket, "socket", return_value=sock), patch.object(
            mpv.os.path, "exists", return_value=True
        ):
            assert mpv._ipc_request("/tmp/sock", ["get_property", "time-pos"]) == {
                "data": 3.0,
                "error": "success",
            }
        sock.__exit__.assert_called_once()

    def test_check_mpv_available(self):
        """Test availability follows the version command's exit code."""
        with patch.object(mpv.subprocess, "run", return_value=MagicMock(returncode=0)):
            assert mpv.check_mpv_available() is True
        with patch.object(mpv.subprocess, "run", side_effect=FileNotFoundError()):
            assert mpv.check_mpv_available() is False
