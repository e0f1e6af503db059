"""Shared test helpers."""

from sessionizer.tmux import LiveSession


class FakeTmux:
    """Records tmux calls and answers them like a fresh tmux server would."""

    def __init__(self, fail_on=None, existing=()):
        self.calls = []
        self.fail_on = fail_on
        self.sessions = {name: LiveSession(name, path) for name, path in existing}
        self._panes = 0
        self._windows = 0

    def __call__(self, args):
        self.calls.append(args)
        command = args[0]
        if command == self.fail_on:
            return "", "boom", 1
        if command == "has-session":
            return "", "", 0 if args[2].lstrip("=") in self.sessions else 1
        if command == "list-sessions":
            if not self.sessions:
                return "", "no server running", 1
            lines = [f"{s.name} {s.path} 0" for s in self.sessions.values()]
            return "\n".join(lines) + "\n", "", 0
        if command == "new-session":
            name = args[args.index("-s") + 1]
            path = args[args.index("-c") + 1]
            self.sessions[name] = LiveSession(name, path)
            return self._new_pane(), "", 0
        if command == "split-pane":
            return self._new_pane(), "", 0
        if command == "new-window":
            self._windows += 1
            return f"@{self._windows}\n", "", 0
        return "", "", 0

    def _new_pane(self):
        pane = f"%{self._panes}\n"
        self._panes += 1
        return pane

    @property
    def commands(self):
        return [call[0] for call in self.calls]


def env_pairs(args):
    return [args[i + 1] for i, arg in enumerate(args) if arg == "-e"]
