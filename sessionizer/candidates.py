"""Build the catalog of sessions offered to the user.

The catalog merges two things:
    - directories matched by the globs of each configured session source
    - sessions already running in tmux

A directory is one candidate no matter how many sources match it. The
last source that matches a path decides its env/command/split/windows,
while the first one decides where it appears in the list. Running
sessions that don't belong to any configured directory are added at the
end as "scratch" sessions.
"""

import glob
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sessionizer.config import PaneSplit, SessionSource, WindowConfig, expand_home
from sessionizer.output import warn
from sessionizer.tmux import LiveSession, SessionSpec

# tmux silently rewrites these in session names
_INVALID_NAME_CHARS = re.compile(r"[.:]")


@dataclass(frozen=True)
class CandidateSession:
    """One entry in the catalog, running or not."""

    path: str
    name: str
    exists: bool = False
    attached: bool = False
    scratch: bool = False
    env: Dict[str, str] = field(default_factory=dict)
    command: str = ""
    split: PaneSplit = field(default_factory=PaneSplit)
    windows: Tuple[WindowConfig, ...] = ()

    @property
    def label(self) -> str:
        if self.scratch:
            return f"scratch: {self.name}"
        if self.exists:
            return f"tmux: {self.name} [{collapse_home(self.path)}]"
        return collapse_home(self.path)

    def to_session_spec(self) -> SessionSpec:
        return SessionSpec(
            name=self.name,
            path=self.path,
            env=dict(self.env),
            command=self.command,
            split=self.split,
            windows=self.windows,
        )


def collapse_home(path: str, home: Optional[str] = None) -> str:
    """Abbreviate the user's home directory to ``~`` for display."""
    home = home if home is not None else str(Path.home())
    if path == home:
        return "~"
    if path.startswith(home.rstrip(os.sep) + os.sep):
        return "~" + path[len(home.rstrip(os.sep)):]
    return path


def derive_name(path: str) -> str:
    """Session name for a directory: its base name, made safe for tmux."""
    base = os.path.basename(os.path.normpath(path))
    return _INVALID_NAME_CHARS.sub("_", base)


def glob_directories(pattern: str) -> List[str]:
    """
    Expand a glob pattern and keep only the directories it matches.

    A pattern that can't be expanded is reported and treated as matching
    nothing, so one bad source doesn't hide the others.

    Args:
        pattern: Glob pattern, optionally starting with ``~/``

    Returns:
        Sorted list of normalized directory paths
    """
    try:
        matches = glob.glob(expand_home(pattern))
    except (OSError, ValueError, re.error) as e:
        warn(f"Unable to parse glob {pattern!r}: {e}")
        return []
    return sorted(os.path.normpath(m) for m in matches if os.path.isdir(m))


def find_live_session(
    path: str, name: str, live: Sequence[LiveSession]
) -> Optional[LiveSession]:
    for session in live:
        if session.path == path and session.name == name:
            return session
    return None


def _candidate_for_path(
    path: str, source: SessionSource, live: Sequence[LiveSession]
) -> CandidateSession:
    name = derive_name(path)
    session = find_live_session(path, name, live)
    return CandidateSession(
        path=path,
        name=session.name if session else name,
        exists=session is not None,
        attached=session.attached if session else False,
        env=source.env,
        command=source.command,
        split=source.split,
        windows=source.windows,
    )


def resolve_candidates(
    sources: Iterable[SessionSource], live: Sequence[LiveSession]
) -> List[CandidateSession]:
    """
    Resolve configured sources and running sessions into candidates.

    Args:
        sources: Configured sources, in config file order
        live: Sessions currently running in tmux

    Returns:
        Candidates in resolution order (unsorted, unfiltered)
    """
    # Re-assigning an existing key keeps its original position
    catalog: Dict[str, CandidateSession] = {}
    for source in sources:
        for pattern in source.paths:
            for path in glob_directories(pattern):
                catalog[path] = _candidate_for_path(path, source, live)

    candidates = list(catalog.values())

    claimed = {(c.name, c.path) for c in candidates if c.exists}
    for session in live:
        if (session.name, session.path) in claimed:
            continue
        candidates.append(
            CandidateSession(
                path=session.path,
                name=session.name,
                exists=True,
                attached=session.attached,
                scratch=True,
            )
        )
        claimed.add((session.name, session.path))

    return candidates


def sort_candidates(candidates: Iterable[CandidateSession]) -> List[CandidateSession]:
    """New directories first, then running sessions, then scratch sessions.

    The sort is stable, so order inside each group is left alone.
    """
    return sorted(candidates, key=lambda c: (c.scratch, c.exists))


def build_catalog(
    sources: Iterable[SessionSource],
    live: Sequence[LiveSession],
    hide_attached: bool = False,
) -> List[CandidateSession]:
    """Resolve, filter and order the candidates shown in the selector."""
    candidates = resolve_candidates(sources, live)
    if hide_attached:
        candidates = [c for c in candidates if not c.attached]
    return sort_candidates(candidates)


def scratch_candidate(name: str, path: Optional[str] = None) -> CandidateSession:
    """Candidate for a brand new session named after what the user typed."""
    path = path or str(Path.home())
    return CandidateSession(
        path=path, name=_INVALID_NAME_CHARS.sub("_", name), scratch=True
    )
