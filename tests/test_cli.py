"""Tests for the sessionizer command and its end-to-end flow."""
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from sessionizer import __version__
from sessionizer.candidates import CandidateSession
from sessionizer.cli import choose_session, main, run
from sessionizer.config import Config, SessionSource
from sessionizer.selector import Cancelled, Chosen, NewQuery, ProtocolError
from sessionizer.tmux import LiveSession, MaterializationError, SessionSpec, TmuxController


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ["alpha", "beta"]:
        (tmp_path / "src" / name).mkdir(parents=True)
    return tmp_path


@pytest.fixture
def config():
    return Config(sources=(SessionSource(paths=("~/src/*",), command="nvim ."),))


@pytest.fixture
def controller():
    mock = MagicMock(spec=TmuxController)
    mock.list_sessions.return_value = []
    mock.ensure_session.side_effect = lambda spec: LiveSession(spec.name, spec.path)
    return mock


class TestChooseSession:
    """Tests for mapping selector results to sessions."""

    catalog = [CandidateSession(path="/a", name="a"), CandidateSession(path="/b", name="b")]

    def test_cancelled(self):
        assert choose_session(self.catalog, Cancelled()) is None

    def test_empty_query(self):
        assert choose_session(self.catalog, NewQuery("")) is None

    def test_chosen(self):
        assert choose_session(self.catalog, Chosen(index=1, label="/b")) is self.catalog[1]

    def test_new_query_is_scratch_session(self, home):
        candidate = choose_session(self.catalog, NewQuery("notes"))

        assert candidate.name == "notes"
        assert candidate.path == str(home)


class TestRun:
    """Tests for a single run against a mocked tmux."""

    @patch("sessionizer.cli.selector.prompt")
    def test_offers_labels_in_catalog_order(self, mock_prompt, home, config, controller):
        controller.list_sessions.return_value = [
            LiveSession("beta", str(home / "src" / "beta")),
            LiveSession("misc", "/tmp/misc"),
        ]
        mock_prompt.return_value = Cancelled()

        run(config, controller)

        mock_prompt.assert_called_once_with(
            ["~/src/alpha", "tmux: beta [~/src/beta]", "scratch: misc"]
        )

    @patch("sessionizer.cli.selector.prompt")
    def test_cancel_does_nothing(self, mock_prompt, home, config, controller):
        mock_prompt.return_value = Cancelled()

        assert run(config, controller) is None

        controller.ensure_session.assert_not_called()
        controller.activate.assert_not_called()

    @patch("sessionizer.cli.selector.prompt")
    def test_empty_query_does_nothing(self, mock_prompt, home, config, controller):
        mock_prompt.return_value = NewQuery("")

        assert run(config, controller) is None

        controller.ensure_session.assert_not_called()

    @patch("sessionizer.cli.selector.prompt")
    def test_chosen_new_directory_is_created_and_activated(
        self, mock_prompt, home, config, controller
    ):
        mock_prompt.return_value = Chosen(index=1, label="~/src/beta")

        session = run(config, controller)

        spec = controller.ensure_session.call_args[0][0]
        assert spec == SessionSpec(
            name="beta", path=str(home / "src" / "beta"), command="nvim ."
        )
        controller.activate.assert_called_once_with("beta")
        assert session.name == "beta"

    @patch("sessionizer.cli.selector.prompt")
    def test_chosen_existing_session_is_reused(self, mock_prompt, home, config, controller):
        controller.list_sessions.return_value = [LiveSession("misc", "/tmp/misc")]
        mock_prompt.return_value = Chosen(index=2, label="scratch: misc")

        run(config, controller)

        spec = controller.ensure_session.call_args[0][0]
        assert (spec.name, spec.path) == ("misc", "/tmp/misc")
        controller.activate.assert_called_once_with("misc")

    @patch("sessionizer.cli.selector.prompt")
    def test_typed_query_opens_scratch_in_home(self, mock_prompt, home, config, controller):
        mock_prompt.return_value = NewQuery("notes")

        run(config, controller)

        spec = controller.ensure_session.call_args[0][0]
        assert spec == SessionSpec(name="notes", path=str(home))
        controller.activate.assert_called_once_with("notes")

    @patch("sessionizer.cli.selector.prompt")
    def test_empty_catalog_still_prompts(self, mock_prompt, tmp_path, monkeypatch, controller):
        """With nothing to list, a typed name still opens a scratch session."""
        monkeypatch.setenv("HOME", str(tmp_path))
        config = Config(sources=(SessionSource(paths=("~/missing/*",)),))
        mock_prompt.return_value = NewQuery("notes")

        session = run(config, controller)

        mock_prompt.assert_called_once_with([])
        assert session.name == "notes"
        controller.activate.assert_called_once_with("notes")

    @patch("sessionizer.cli.selector.prompt")
    def test_hide_attached(self, mock_prompt, home, controller):
        config = Config(sources=(SessionSource(paths=("~/src/*",)),), hide_attached_sessions=True)
        controller.list_sessions.return_value = [
            LiveSession("beta", str(home / "src" / "beta"), attached=True),
        ]
        mock_prompt.return_value = Cancelled()

        run(config, controller)

        mock_prompt.assert_called_once_with(["~/src/alpha"])


class TestMain:
    """Tests for the click command."""

    @patch("sessionizer.cli.selector.is_available", return_value=True)
    @patch("sessionizer.cli.tmux.is_available", return_value=False)
    def test_missing_tmux(self, mock_tmux, mock_fzf, tmp_path):
        config = tmp_path / "config.toml"
        config.write_text('[[sessions]]\npath = "~/*"\n')

        result = CliRunner().invoke(main, ["-c", str(config)])

        assert result.exit_code == 1
        assert "tmux is not installed" in result.output

    @patch("sessionizer.cli.selector.is_available", return_value=False)
    @patch("sessionizer.cli.tmux.is_available", return_value=True)
    def test_missing_fzf(self, mock_tmux, mock_fzf, tmp_path):
        config = tmp_path / "config.toml"
        config.write_text('[[sessions]]\npath = "~/*"\n')

        result = CliRunner().invoke(main, ["-c", str(config)])

        assert result.exit_code == 1
        assert "fzf is not installed" in result.output

    @patch("sessionizer.cli.check_dependencies")
    def test_explicit_config_must_exist(self, mock_check, tmp_path):
        result = CliRunner().invoke(main, ["--config", str(tmp_path / "nope.toml")])

        assert result.exit_code == 1

    @patch("sessionizer.cli.selector.is_available", return_value=True)
    @patch("sessionizer.cli.tmux.is_available", return_value=False)
    def test_missing_tmux_reported_before_config(self, mock_tmux, mock_fzf, tmp_path):
        """A missing dependency wins over a broken config file."""
        config = tmp_path / "config.toml"
        config.write_text("[[sessions]\npath = ")

        with patch("sessionizer.cli.load_config") as mock_load:
            result = CliRunner().invoke(main, ["-c", str(config)])

        assert result.exit_code == 1
        assert "tmux is not installed" in result.output
        mock_load.assert_not_called()

    @patch("sessionizer.cli.run")
    @patch("sessionizer.cli.check_dependencies")
    def test_success(self, mock_check, mock_run, tmp_path):
        config = tmp_path / "config.toml"
        config.write_text("[tmux]\nhide_attached_sessions = true\n")
        mock_run.return_value = None

        result = CliRunner().invoke(main, ["-c", str(config), "-v"])

        assert result.exit_code == 0
        loaded, controller = mock_run.call_args[0]
        assert loaded.hide_attached_sessions is True
        assert isinstance(controller, TmuxController)
        assert mock_run.call_args[1] == {"verbose": True}

    @pytest.mark.parametrize(
        "exc",
        [ProtocolError("Invalid result returned from fzf"), MaterializationError("split pane", "boom")],
    )
    @patch("sessionizer.cli.check_dependencies")
    def test_fatal_errors_exit_nonzero(self, mock_check, exc, tmp_path):
        config = tmp_path / "config.toml"
        config.write_text("")

        with patch("sessionizer.cli.run", side_effect=exc):
            result = CliRunner().invoke(main, ["-c", str(config)])

        assert result.exit_code == 1
        assert str(exc) in result.output

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output
