import json
import os
import tempfile
import unittest
from pathlib import Path

from tidewatch.agents import discover_agents, resolve_session_dir


class AgentDiscoveryTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)
        self.config_path = self.root / "openclaw.json"
        self.agents_base = self.root / "agents"
        self.default_dir = self.agents_base / "main" / "sessions"

    def _discover(self):
        return discover_agents(self.config_path, self.agents_base, self.default_dir)

    def _write_config(self, payload) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self.config_path.write_text(text, encoding="utf-8")

    def test_missing_config_falls_back_to_main(self) -> None:
        agents = self._discover()
        self.assertEqual(len(agents), 1)
        self.assertEqual(agents[0].id, "main")
        self.assertEqual(agents[0].name, "main")
        self.assertEqual(agents[0].sessionDir, str(self.default_dir))

    def test_empty_agent_list_falls_back_to_main(self) -> None:
        self._write_config({"agents": {"list": []}})
        self.assertEqual([a.id for a in self._discover()], ["main"])

    def test_malformed_config_falls_back_with_warning(self) -> None:
        self._write_config("{oops")
        with self.assertLogs("tidewatch", level="WARNING"):
            agents = self._discover()
        self.assertEqual([a.id for a in agents], ["main"])

    def test_agents_are_listed_in_config_order(self) -> None:
        (self.agents_base / "kintaro" / "sessions").mkdir(parents=True)
        self._write_config({
            "agents": {
                "list": [
                    {"id": "kintaro", "name": "Kintaro"},
                    {"id": "motoko"},
                    {"name": "no id"},
                ]
            }
        })

        agents = self._discover()

        self.assertEqual([a.id for a in agents], ["kintaro", "motoko"])
        self.assertEqual(agents[0].name, "Kintaro")
        self.assertEqual(agents[1].name, "motoko")
        self.assertEqual(
            agents[0].sessionDir,
            str((self.agents_base / "kintaro" / "sessions").resolve()),
        )
        self.assertEqual(agents[1].sessionDir, str(self.agents_base / "motoko" / "sessions"))

    def test_configured_agent_dir_wins_when_it_exists(self) -> None:
        custom = self.root / "custom"
        (custom / "sessions").mkdir(parents=True)
        (self.agents_base / "kintaro" / "sessions").mkdir(parents=True)

        resolved = resolve_session_dir({"id": "kintaro", "agentDir": str(custom)}, self.agents_base)
        self.assertEqual(resolved, (custom / "sessions").resolve())

    def test_agent_suffix_uses_parent_sessions_dir(self) -> None:
        workspace = self.root / "workspace"
        (workspace / "sessions").mkdir(parents=True)

        resolved = resolve_session_dir(
            {"id": "motoko", "agentDir": str(workspace / "agent")},
            self.agents_base,
        )
        self.assertEqual(resolved, (workspace / "sessions").resolve())

    def test_symlinked_directory_is_resolved(self) -> None:
        real = self.root / "real-sessions"
        real.mkdir()
        link_parent = self.root / "linked"
        link_parent.mkdir()
        os.symlink(real, link_parent / "sessions")

        resolved = resolve_session_dir({"id": "x", "agentDir": str(link_parent)}, self.agents_base)
        self.assertEqual(resolved, real.resolve())

    def test_no_existing_candidate_returns_standard_path(self) -> None:
        resolved = resolve_session_dir(
            {"id": "ghost", "agentDir": str(self.root / "nowhere" / "agent")},
            self.agents_base,
        )
        self.assertEqual(resolved, self.agents_base / "ghost" / "sessions")


if __name__ == "__main__":
    unittest.main()
