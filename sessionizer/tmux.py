"""
Tmux Controller

Everything sessionizer asks of tmux goes through here:
- Listing the sessions that are already running
- Creating a new session (panes, split, extra windows, environment)
- Switching or attaching the user's terminal to a session
"""

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sessionizer.config import PaneSplit, WindowConfig
from sessionizer.output import warn

LIST_FORMAT = "#{session_name} #{session_path} #{session_attached}"

SPLIT_DIRECTIONS = {
    "h": "-h",
    "horizontal": "-h",
    "v": "-v",
    "vertical": "-v",
}


class DependencyMissing(Exception):
    """Raised when tmux or fzf can't be found on $PATH."""

    pass


class MaterializationError(Exception):
    """Raised when one of the steps creating a session fails."""

    def __init__(self, step: str, detail: str = ""):
        self.step = step
        self.detail = detail
        message = f"Failed to {step}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


@dataclass(frozen=True)
class LiveSession:
    """A session as reported by `tmux list-sessions`."""

    name: str
    path: str
    attached: bool = False


@dataclass(frozen=True)
class SessionSpec:
    """Everything needed to create a session that doesn't exist yet."""

    name: str
    path: str
    env: Dict[str, str] = field(default_factory=dict)
    command: str = ""
    split: PaneSplit = field(default_factory=PaneSplit)
    windows: Tuple[WindowConfig, ...] = ()


def is_available() -> bool:
    return shutil.which("tmux") is not None


def in_tmux() -> bool:
    """True when this process runs inside a tmux client."""
    return bool(os.environ.get("TMUX"))


def parse_list_output(output: str) -> List[LiveSession]:
    """Parse `list-sessions` output in LIST_FORMAT, one session per line.

    The name ends at the first space and the attached flag starts after the
    last one, so a path containing spaces is kept whole.
    """
    sessions: List[LiveSession] = []
    for line in output.split("\n"):
        name, sep, rest = line.partition(" ")
        path, sep2, attached = rest.rpartition(" ")
        if not (sep and sep2 and name and path):
            continue
        sessions.append(
            LiveSession(name=name, path=path, attached=attached not in ("", "0"))
        )
    return sessions


def _env_args(env: Dict[str, str]) -> List[str]:
    args: List[str] = []
    for key, val in env.items():
        args.extend(["-e", f"{key}={val}"])
    return args


class TmuxController:
    """Thin wrapper around the tmux binary."""

    def __init__(self, tmux_bin: str = "tmux"):
        self.tmux_bin = tmux_bin

    # ----------------------------
    # Internal utilities
    # ----------------------------
    def _run_tmux(self, args: List[str]) -> Tuple[str, str, int]:
        result = subprocess.run(
            [self.tmux_bin] + args,
            capture_output=True,
            text=True,
            errors="surrogateescape",
        )
        return result.stdout, result.stderr.strip(), result.returncode

    def _run_step(self, step: str, args: List[str]) -> str:
        out, err, code = self._run_tmux(args)
        if code != 0:
            raise MaterializationError(step, err)
        return out.strip()

    def _send_command(self, target: str, command: str, step: str) -> None:
        self._run_step(step, ["send-keys", "-t", target, command, "Enter"])

    # ----------------------------
    # Live sessions
    # ----------------------------
    def list_sessions(self) -> List[LiveSession]:
        """Return running sessions; no server running means no sessions."""
        out, _, code = self._run_tmux(["list-sessions", "-F", LIST_FORMAT])
        if code != 0:
            return []
        return parse_list_output(out)

    def has_session(self, name: str) -> bool:
        # "=" forces an exact match instead of tmux's prefix matching
        _, _, code = self._run_tmux(["has-session", "-t", f"={name}"])
        return code == 0

    # ----------------------------
    # Materialization
    # ----------------------------
    def ensure_session(self, spec: SessionSpec) -> LiveSession:
        """Reuse the named session if it exists, otherwise create it from spec.

        An existing session is never modified. If creation fails halfway the
        partially built session is left for the user to inspect.
        """
        if not self.has_session(spec.name):
            self.create_session(spec)
        return LiveSession(name=spec.name, path=spec.path)

    def create_session(self, spec: SessionSpec) -> None:
        """Create a detached session, then its split pane and extra windows.

        Panes and windows are addressed by the ids tmux prints for them, so
        base-index and pane-base-index settings don't matter.

        Raises:
            MaterializationError: On the first tmux call that fails
        """
        name = spec.name

        first_pane = self._run_step(
            f"create session '{name}'",
            [
                "new-session", "-d",
                "-s", name,
                "-c", spec.path,
                "-P", "-F", "#{pane_id}",
            ] + _env_args(spec.env),
        ) or f"={name}:"

        if spec.command:
            self._send_command(first_pane, spec.command, "send session command")

        if spec.split.configured:
            self._create_split(spec, first_pane)

        for i, window in enumerate(spec.windows, start=1):
            env = {**spec.env, **window.env}
            window_id = self._run_step(
                f"create window {i}",
                [
                    "new-window",
                    "-a", "-t", f"={name}:{{end}}",
                    "-d",  # keep the first window active
                    "-c", window.path or spec.path,
                    "-P", "-F", "#{window_id}",
                ] + _env_args(env),
            )
            if window.command:
                self._send_command(window_id, window.command, f"send window {i} command")

    def _create_split(self, spec: SessionSpec, first_pane: str) -> None:
        split = spec.split
        direction = SPLIT_DIRECTIONS.get(split.direction.lower())
        if direction is None:
            raise MaterializationError(
                "split pane", f"invalid split direction '{split.direction}'"
            )

        env = {**spec.env, **split.env}
        split_pane = self._run_step(
            "split pane",
            [
                "split-pane", direction,
                "-t", first_pane,
                "-l", split.size,
                "-c", split.path or spec.path,
                "-P", "-F", "#{pane_id}",
            ] + _env_args(env),
        )

        if split.command:
            self._send_command(split_pane, split.command, "send split command")

        self._run_step("select first pane", ["select-pane", "-t", first_pane])

    # ----------------------------
    # Activation
    # ----------------------------
    def activate(self, name: str, inside_tmux: Optional[bool] = None) -> int:
        """Switch (inside tmux) or attach (outside) the terminal to a session.

        The session already exists at this point, so a failure here is only
        reported, not raised.
        """
        if inside_tmux is None:
            inside_tmux = in_tmux()
        args = ["switch-client", "-t", name] if inside_tmux else ["attach-session", "-t", name]
        # Inherit stdin/stdout/stderr so tmux takes over the terminal
        code = subprocess.run([self.tmux_bin] + args).returncode
        if code != 0:
            warn(f"tmux {args[0]} exited with status {code}; attach manually with `tmux attach -t {name}`")
        return code
