import copy
import json
from pathlib import Path
from unittest.mock import Mock, patch

from chatgpt_terminal import Mode, Signal, CLI_SYSTEM_MESSAGE
from chatgpt_terminal.core.proxy import ProxyError
from .test_base import BaseChatCLITest


class TestCommands(BaseChatCLITest):
    def test_mode_switching(self):
        """Mode keywords switch modes without touching any log"""
        self.test_session.add_user_message("Hello")

        self.assertEqual(self.chat_cli.dispatch("cli mode"), Signal.CONTINUE)
        self.assertEqual(self.test_session.mode, Mode.CLI)

        self.chat_cli.dispatch("面试模式")
        self.assertEqual(self.test_session.mode, Mode.INTERVIEW)

        self.chat_cli.dispatch("对话模式")
        self.assertEqual(self.test_session.mode, Mode.CHAT)
        self.assertEqual(self.test_session.messages, [{"role": "user", "content": "Hello"}])

    def test_switch_to_active_mode_is_a_no_op(self):
        self.test_session.add_user_message("Hello")
        before = copy.deepcopy(self.test_session.logs)

        self.chat_cli.dispatch("chat mode")

        self.assertEqual(self.test_session.mode, Mode.CHAT)
        self.assertEqual(self.test_session.logs, before)
        self.assertIn("Already in chat mode", self.printed)

    def test_keywords_are_case_sensitive(self):
        self.stream_responses([])
        self.chat_cli.dispatch("CLI MODE")
        self.assertEqual(self.test_session.mode, Mode.CHAT)
        self.assertEqual(self.test_session.messages[0], {"role": "user", "content": "CLI MODE"})

    def test_clean_command(self):
        """Clean resets every log to its seed and keeps the current mode"""
        for text in ("one", "two", "three"):
            self.test_session.add_user_message(text)
        self.test_session.logs[Mode.CLI].append({"role": "user", "content": "list"})

        self.chat_cli.dispatch("清空")

        self.assertEqual(self.test_session.logs[Mode.CHAT], [])
        self.assertEqual(self.test_session.logs[Mode.CLI], [CLI_SYSTEM_MESSAGE])
        self.assertEqual(self.test_session.mode, Mode.CHAT)

    def test_save_command(self):
        self.test_session.add_user_message("Hello")

        self.chat_cli.dispatch("save")

        saved = json.loads((self.test_dir / "chat-log.json").read_text(encoding="utf-8"))
        self.assertEqual(saved, [{"role": "user", "content": "Hello"}])
        self.assertTrue((self.test_dir / "cli-log.json").exists())
        self.assertIn("cli-log.json", self.printed)

    @patch("chatgpt_terminal.cli.questionary.path")
    def test_read_command_infers_mode(self, mock_path):
        log = [CLI_SYSTEM_MESSAGE, {"role": "user", "content": "list"}, {"role": "assistant", "content": ">ls"}]
        path = self.test_dir / "history.json"
        path.write_text(json.dumps(log), encoding="utf-8")
        mock_path.return_value.ask.return_value = str(path)

        self.chat_cli.dispatch("读取")

        mock_path.assert_called_once()
        self.assertEqual(self.test_session.mode, Mode.CLI)
        self.assertEqual(self.test_session.logs[Mode.CLI], log)

    @patch("chatgpt_terminal.cli.questionary.path")
    def test_read_command_with_bad_file(self, mock_path):
        path = self.test_dir / "broken.json"
        path.write_text("[{", encoding="utf-8")
        mock_path.return_value.ask.return_value = str(path)
        before = copy.deepcopy(self.test_session.logs)

        self.assertEqual(self.chat_cli.dispatch("read"), Signal.CONTINUE)

        self.assertEqual(self.test_session.logs, before)
        self.assertEqual(self.test_session.mode, Mode.CHAT)
        self.assertIn("missing or malformed", self.printed)

    @patch("chatgpt_terminal.cli.questionary.path")
    def test_read_command_with_unreadable_file(self, mock_path):
        path = self.test_dir / "locked.json"
        path.write_text("[]", encoding="utf-8")
        mock_path.return_value.ask.return_value = str(path)
        before = copy.deepcopy(self.test_session.logs)

        with patch.object(Path, "read_text", side_effect=PermissionError(13, "Permission denied")):
            self.assertEqual(self.chat_cli.dispatch("read"), Signal.CONTINUE)

        self.assertEqual(self.test_session.logs, before)
        self.assertIn("Permission denied", self.printed)

    def test_help_command(self):
        self.chat_cli.dispatch("help")
        self.assertIn("exit", self.printed)
        self.assertIn("cli mode", self.printed)
        self.assertEqual(self.test_session.messages, [])

    def test_stream_toggle(self):
        self.chat_cli.dispatch("stream off")
        self.assertFalse(self.test_session.stream)

        self.chat_cli.dispatch("stream off")
        self.assertFalse(self.test_session.stream)
        self.assertIn("already non-streaming", self.printed)

        self.chat_cli.dispatch("stream on")
        self.assertTrue(self.test_session.stream)

    @patch("chatgpt_terminal.cli.webbrowser.open")
    def test_image_directive(self, mock_open):
        self.mock_client.images.generate.return_value = Mock(data=[Mock(url="https://img.example/1.png")])

        self.chat_cli.dispatch("\\img a red fox")

        self.mock_client.images.generate.assert_called_once_with(
            prompt="a red fox", n=1, response_format="url"
        )
        mock_open.assert_called_once_with("https://img.example/1.png")
        self.assertIn("https://img.example/1.png", self.printed)
        self.assertEqual(self.test_session.messages, [])


@patch("chatgpt_terminal.cli.create_app")
@patch("chatgpt_terminal.cli.ProxyServer")
@patch("chatgpt_terminal.cli.questionary.text")
class TestProxyCommands(BaseChatCLITest):
    def _serve(self, mock_text, mock_server, port="3000"):
        mock_text.return_value.ask.return_value = port
        mock_server.return_value.urls.return_value = ["http://192.168.1.2:3000", "http://localhost:3000"]
        return self.chat_cli.dispatch("serve")

    def test_serve_then_stop(self, mock_text, mock_server, mock_create_app):
        self._serve(mock_text, mock_server)

        mock_server.assert_called_once_with(mock_create_app.return_value, port=3000)
        server = mock_server.return_value
        server.start.assert_called_once()
        self.assertIs(self.test_session.proxy, server)
        self.assertIn("http://localhost:3000", self.printed)
        self.assertIn("http://192.168.1.2:3000", self.printed)

        self.chat_cli.dispatch("stop")
        server.close.assert_called_once()
        self.assertIsNone(self.test_session.proxy)

        self.assertEqual(self.chat_cli.dispatch("stop"), Signal.CONTINUE)
        self.assertIn("No proxy server is running", self.printed)
        server.close.assert_called_once()

    def test_serve_twice_reuses_running_server(self, mock_text, mock_server, mock_create_app):
        self._serve(mock_text, mock_server)
        self._serve(mock_text, mock_server)

        mock_server.assert_called_once()
        mock_text.assert_called_once()

    def test_serve_start_failure(self, mock_text, mock_server, mock_create_app):
        mock_server.return_value.start.side_effect = ProxyError("Cannot listen on port 3000")

        self.assertEqual(self._serve(mock_text, mock_server), Signal.CONTINUE)

        self.assertIsNone(self.test_session.proxy)
        self.assertIn("Cannot listen on port 3000", self.printed)

    def test_serve_invalid_port(self, mock_text, mock_server, mock_create_app):
        self._serve(mock_text, mock_server, port="http")

        mock_server.assert_not_called()
        self.assertIn("Invalid port", self.printed)

    def test_exit_closes_proxy(self, mock_text, mock_server, mock_create_app):
        self._serve(mock_text, mock_server)

        self.assertEqual(self.chat_cli.dispatch("bye"), Signal.EXIT)

        mock_server.return_value.close.assert_called_once()
        self.assertIsNone(self.test_session.proxy)
        self.assertFalse(self.test_session.active)

    def test_exit_aborts_when_proxy_cannot_close(self, mock_text, mock_server, mock_create_app):
        self._serve(mock_text, mock_server)
        mock_server.return_value.close.side_effect = ProxyError("did not shut down")

        with self.assertRaises(SystemExit) as ctx:
            self.chat_cli.dispatch("exit")

        self.assertEqual(ctx.exception.code, 1)
