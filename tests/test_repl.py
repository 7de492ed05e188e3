from unittest.mock import Mock, patch

from chatgpt_terminal import Mode
from chatgpt_terminal.core.client import describe_error
from chatgpt_terminal.core.commands import ExecutionGate
from chatgpt_terminal.core.functions import FUNCTION_DEFINITIONS
from .test_base import BaseChatCLITest, api_error, sse


class TestREPL(BaseChatCLITest):
    @patch("builtins.input")
    def test_repl_basic_interaction(self, mock_input):
        """Test basic REPL interaction with a streamed answer"""
        mock_input.side_effect = ["Hello", "exit"]
        self.stream_responses(sse({"role": "assistant"}, {"content": "Hi "}, {"content": "there!"}))

        self.chat_cli.repl()

        self.assertEqual(
            self.test_session.messages,
            [
                {"role": "user", "content": "Hello"},
                {"role": "assistant", "content": "Hi there!"},
            ],
        )
        self.assertIn("Hi there!", self.printed)
        self.assertFalse(self.test_session.active)

    @patch("builtins.input")
    def test_repl_without_streaming(self, mock_input):
        mock_input.side_effect = ["stream off", "Hello", "quit"]
        message = Mock()
        message.model_dump.return_value = {"role": "assistant", "content": "Hi there!"}
        self.mock_client.chat.completions.create.return_value = Mock(choices=[Mock(message=message)])

        self.chat_cli.repl()

        params = self.mock_client.chat.completions.create.call_args.kwargs
        self.assertNotIn("stream", params)
        self.assertEqual(self.test_session.messages[-1], {"role": "assistant", "content": "Hi there!"})
        self.assertIn("Hi there!", self.printed)

    @patch("builtins.input")
    def test_api_error_keeps_only_user_message(self, mock_input):
        mock_input.side_effect = ["Hello", "exit"]
        self.mock_client.chat.completions.with_streaming_response.create.side_effect = api_error()

        self.chat_cli.repl()

        self.assertEqual(self.test_session.messages, [{"role": "user", "content": "Hello"}])
        self.assertIn("invalid_request_error", self.printed)
        self.assertIn("bad key", self.printed)

    @patch("builtins.input")
    def test_repl_with_commands(self, mock_input):
        """Messages go to the log of the mode that was active"""
        mock_input.side_effect = ["Hello", "cli mode", "list files", "chat mode", "exit"]
        self.stream_responses(
            sse({"role": "assistant"}, {"content": "Hi!"}),
            sse({"role": "assistant"}, {"content": ">ls"}),
        )

        self.chat_cli.repl()

        self.assertEqual(len(self.test_session.logs[Mode.CHAT]), 2)
        self.assertEqual(len(self.test_session.logs[Mode.CLI]), 3)  # seed + user + command
        self.gate.confirm.assert_called_once_with("ls")

    @patch("builtins.input")
    def test_end_of_input_at_confirmation_keeps_session(self, mock_input):
        mock_input.side_effect = ["cli mode", "list files", EOFError, "exit"]
        self.stream_responses(sse({"role": "assistant"}, {"content": ">ls"}))
        runner = Mock(return_value=0)
        self.chat_cli.gate = ExecutionGate(runner=runner)

        self.chat_cli.repl()

        runner.assert_not_called()
        self.assertIn("Command cancelled", self.printed)
        self.assertEqual(self.test_session.messages[-1], {"role": "assistant", "content": ">ls"})
        self.assertFalse(self.test_session.active)

    @patch("builtins.input", side_effect=EOFError)
    def test_end_of_input_exits(self, mock_input):
        self.chat_cli.repl()
        self.assertFalse(self.test_session.active)


class TestCompletionPipeline(BaseChatCLITest):
    def test_cli_mode_runs_extracted_command(self):
        self.test_session.switch(Mode.CLI)
        self.stream_responses(sse({"role": "assistant"}, {"content": "Sure, run this:\n>dir\nThanks"}))

        self.chat_cli.dispatch("show the directory")

        self.gate.confirm.assert_called_once_with("dir")
        self.assertEqual(self.test_session.messages[-1], {"role": "assistant", "content": ">dir"})
        params = self.streaming_calls()[0].kwargs
        self.assertEqual(params["temperature"], 0)
        self.assertNotIn("functions", params)

    def test_cli_mode_unknown_answer(self):
        self.test_session.switch(Mode.CLI)
        self.stream_responses(sse({"role": "assistant"}, {"content": "I am not sure."}))

        self.chat_cli.dispatch("do the thing")

        self.gate.confirm.assert_not_called()
        self.assertEqual(self.test_session.messages[-1], {"role": "assistant", "content": "UNKNOWN"})

    def test_chat_request_parameters(self):
        self.stream_responses(sse({"content": "ok"}))

        self.chat_cli.dispatch("Hello")

        params = self.streaming_calls()[0].kwargs
        self.assertEqual(params["model"], "gpt-test")
        self.assertEqual(params["temperature"], 1)
        self.assertEqual(params["functions"], FUNCTION_DEFINITIONS)
        self.assertEqual(params["function_call"], "auto")
        self.assertTrue(params["stream"])
        self.assertEqual(params["messages"][-1], {"role": "user", "content": "Hello"})
        # the request holds a copy, not the log that grows afterwards
        self.assertEqual(len(params["messages"]), 1)
        self.assertEqual(len(self.test_session.messages), 2)

    def test_interview_mode_has_no_functions(self):
        self.test_session.switch(Mode.INTERVIEW)
        self.stream_responses(sse({"content": "First question?"}))

        self.chat_cli.dispatch("backend engineer")

        params = self.streaming_calls()[0].kwargs
        self.assertNotIn("functions", params)
        self.assertEqual(self.test_session.messages[-1]["content"], "First question?")

    @patch("builtins.input")
    def test_function_call_reruns_without_prompt(self, mock_input):
        mock_input.side_effect = ["What time is it?", "exit"]
        self.stream_responses(
            sse(
                {"role": "assistant", "function_call": {"name": "get_current_time", "arguments": ""}},
                {"function_call": {"arguments": "{}"}},
            ),
            sse({"role": "assistant"}, {"content": "It is noon."}),
        )

        self.chat_cli.repl()

        log = self.test_session.messages
        self.assertEqual(len(log), 4)
        self.assertEqual(
            log[1],
            {
                "role": "assistant",
                "content": None,
                "function_call": {"name": "get_current_time", "arguments": "{}"},
            },
        )
        self.assertEqual(log[2]["role"], "function")
        self.assertEqual(log[2]["name"], "get_current_time")
        self.assertIn('"datetime"', log[2]["content"])
        self.assertEqual(log[3], {"role": "assistant", "content": "It is noon."})
        # The follow-up request cannot ask for another function
        self.assertNotIn("functions", self.streaming_calls()[1].kwargs)
        self.assertEqual(mock_input.call_count, 2)

    @patch("builtins.input")
    def test_nested_function_call_is_rejected(self, mock_input):
        mock_input.side_effect = ["What time is it?", "exit"]
        call = sse({"role": "assistant", "function_call": {"name": "get_current_time", "arguments": "{}"}})
        self.stream_responses(call, list(call))

        self.chat_cli.repl()

        self.assertEqual([m["role"] for m in self.test_session.messages], ["user", "assistant", "function"])
        self.assertIn("Ignoring nested call", self.printed)

    def test_unknown_function_leaves_log_untouched(self):
        self.stream_responses(sse({"role": "assistant", "function_call": {"name": "launch", "arguments": "{}"}}))

        self.chat_cli.dispatch("launch it")

        self.assertEqual(self.test_session.messages, [{"role": "user", "content": "launch it"}])
        self.assertIn("Unknown function: launch", self.printed)

    def test_describe_error(self):
        self.assertEqual(describe_error(api_error()), ("invalid_request_error", "bad key"))
        self.assertEqual(describe_error(ValueError("boom")), ("ValueError", "boom"))

    def test_bare_function_call_ends_the_label_line(self):
        self.stream_responses(sse({"role": "assistant", "function_call": {"name": "get_current_time", "arguments": "{}"}}))

        message = self.mock_wrapper.chat_completion(Mode.CHAT, [], stream=True)

        self.assertEqual(message["function_call"]["name"], "get_current_time")
        self.assertEqual(self.printed, "\n")
