# trackmix/models/selection.py
from pathlib import Path

from .job import MixInput
from .track import ProbedFile, TrackKind

_Key = tuple[Path, str]


class TrackSelection:
    """
    User's choice of tracks, kept apart from the immutable probe results.

    One probed file is loaded per track kind (video/audio/subtitle panel).
    Selection and language overrides are keyed by (path, track_id), so
    re-probing a file can never leave a selection pointing at a track that
    no longer exists.
    """

    def __init__(self):
        self._files: dict[TrackKind, ProbedFile] = {}
        self._selected: set[_Key] = set()
        self._overrides: dict[_Key, str] = {}

    def _live_keys(self) -> set[_Key]:
        return {(f.path, t.track_id) for f in self._files.values() for t in f.tracks}

    def _prune(self) -> None:
        live = self._live_keys()
        self._selected &= live
        self._overrides = {k: v for k, v in self._overrides.items() if k in live}

    def load(self, kind: TrackKind, probed: ProbedFile, select_all: bool = True) -> None:
        previous = self._files.get(kind)
        self._files[kind] = probed
        self._prune()
        if not select_all:
            return
        fresh = {(probed.path, t.track_id) for t in probed.tracks}
        if previous is not None and previous.path == probed.path:
            # Same file re-probed: keep surviving choices, pick up new tracks only.
            fresh -= {(previous.path, tid) for tid in previous.track_ids()}
        self._selected |= fresh

    def unload(self, kind: TrackKind) -> None:
        if self._files.pop(kind, None) is not None:
            self._prune()

    def reset(self) -> None:
        self._files.clear(); self._selected.clear(); self._overrides.clear()

    def _check(self, path: Path, track_id: str) -> _Key:
        key = (Path(path), str(track_id))
        if key not in self._live_keys():
            raise KeyError(f"track {track_id!r} is not loaded for {path}")
        return key

    def probed(self, kind: TrackKind) -> ProbedFile | None:
        return self._files.get(kind)

    def is_selected(self, path: Path, track_id: str) -> bool:
        return (Path(path), str(track_id)) in self._selected

    def selected_keys(self) -> set[_Key]:
        return set(self._selected)

    def set_selected(self, path: Path, track_id: str, selected: bool) -> None:
        key = self._check(path, track_id)
        if selected:
            self._selected.add(key)
        else:
            self._selected.discard(key)

    def toggle(self, path: Path, track_id: str) -> bool:
        key = self._check(path, track_id)
        self.set_selected(*key, key not in self._selected)
        return key in self._selected

    def lang_override(self, path: Path, track_id: str) -> str | None:
        return self._overrides.get((Path(path), str(track_id)))

    def set_lang_override(self, path: Path, track_id: str, lang: str | None) -> None:
        key = self._check(path, track_id)
        lang = (lang or "").strip()
        if lang:
            self._overrides[key] = lang
        else:
            self._overrides.pop(key, None)

    def clear_lang_override(self, path: Path, track_id: str) -> None:
        self.set_lang_override(path, track_id, None)

    def mix_input(self, kind: TrackKind, default_lang: str | None = None) -> MixInput | None:
        if (probed := self._files.get(kind)) is None:
            return None
        ids, langs = [], {}
        for t in probed.tracks:
            if t.kind != kind or (probed.path, t.track_id) not in self._selected:
                continue
            ids.append(t.track_id)
            # The per-kind default only fills in for tracks with no language tag.
            lang = self._overrides.get((probed.path, t.track_id))
            if not lang and not t.lang:
                lang = default_lang
            if lang:
                langs[t.track_id] = lang
        if not ids:
            return None
        return MixInput(path=probed.path, kind=kind, track_ids=tuple(ids), track_langs=langs)

    def mix_inputs(self, default_langs: dict | None = None) -> list[MixInput]:
        default_langs = default_langs or {}
        out = []
        for kind in TrackKind:
            if inp := self.mix_input(kind, default_langs.get(kind.value)):
                out.append(inp)
        return out
