"""Three-state audio toggle for the story being read."""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class PlaybackPhase(Enum):
    IDLE = 'idle'        # nothing fetched yet
    PLAYING = 'playing'
    PAUSED = 'paused'    # audio fetched and available


@dataclass(frozen=True)
class PlaybackState:
    phase: PlaybackPhase = PlaybackPhase.IDLE
    resource: Optional[str] = None
    loading: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'phase': self.phase.value, 'resource': self.resource, 'loading': self.loading}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlaybackState':
        return cls(PlaybackPhase(data.get('phase', 'idle')), data.get('resource'), bool(data.get('loading')))


BUTTON_LABELS = {
    PlaybackPhase.IDLE: ('🔊', 'Listen to Story'),
    PlaybackPhase.PLAYING: ('⏸️', 'Pause Audio'),
    PlaybackPhase.PAUSED: ('▶️', 'Play Audio'),
}


def button_label(state: PlaybackState) -> Tuple[str, str]:
    """Icon and text for the audio button."""
    return BUTTON_LABELS[state.phase]


def start_loading(state: PlaybackState) -> PlaybackState:
    return replace(state, loading=True)


def loaded(state: PlaybackState, resource: str) -> PlaybackState:
    return PlaybackState(PlaybackPhase.PLAYING, resource, False)


def load_failed(state: PlaybackState) -> PlaybackState:
    return replace(state, loading=False)


def toggle(state: PlaybackState) -> PlaybackState:
    """Flip play/pause once audio is available; idle stays idle."""
    if state.phase is PlaybackPhase.PLAYING:
        return replace(state, phase=PlaybackPhase.PAUSED)
    if state.phase is PlaybackPhase.PAUSED:
        return replace(state, phase=PlaybackPhase.PLAYING)
    return state


def ended(state: PlaybackState) -> PlaybackState:
    if state.resource is None:
        return state
    return replace(state, phase=PlaybackPhase.PAUSED)


class AudioResourceStore:
    """Writes fetched audio to temporary files that a player can open by path."""

    def __init__(self, directory: Optional[str] = None, suffix: str = '.mp3'):
        self.directory = directory
        self.suffix = suffix

    def write(self, audio: bytes) -> str:
        fd, path = tempfile.mkstemp(prefix='story-', suffix=self.suffix, dir=self.directory)
        with os.fdopen(fd, 'wb') as handle:
            handle.write(audio)
        return path

    def release(self, path: Optional[str]) -> None:
        if not path:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not release audio resource %s: %s", path, exc)


class AudioPlayer:
    """Interface of the object that actually produces sound."""

    def play(self, resource: str) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class PlaybackController:
    """Applies playback state changes to the resource store and the player.

    Transitions themselves are the pure functions above; ``sync`` is called
    with the state before and after each transition and performs whatever
    side effect the difference implies.
    """

    def __init__(self, store: Optional[AudioResourceStore] = None,
                 player: Optional[AudioPlayer] = None):
        self.store = store or AudioResourceStore()
        self.player = player

    def fetch(self, fetch_audio: Callable[[], bytes]) -> str:
        """Download audio and return the path of its local resource."""
        return self.store.write(fetch_audio())

    def sync(self, before: PlaybackState, after: PlaybackState) -> None:
        if before.resource and before.resource != after.resource:
            if self.player is not None:
                self.player.stop()
            self.store.release(before.resource)

        if self.player is None:
            return
        if after.phase is PlaybackPhase.PLAYING and (
            before.phase is not PlaybackPhase.PLAYING or before.resource != after.resource
        ):
            self.player.play(after.resource)
        elif after.phase is PlaybackPhase.PAUSED and before.phase is PlaybackPhase.PLAYING:
            self.player.pause()
