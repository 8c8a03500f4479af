import json
from types import SimpleNamespace

import pytest

from conftest import FakeClient, make_completion, make_run, text_message
from orchestrator.assistant import Assistant
from orchestrator.assistants_engine import AssistantsEngine
from orchestrator.errors import ContextTransferError, MessageError, ThreadError
from orchestrator.tasks import EvaluationTask, Task
from orchestrator.transfer import create_transfer_tool


def lookup(key):
    return f"value-{key}"


@pytest.fixture
def refunds():
    return Assistant(name="Refunds", functions=[lookup], instance_id="asst_refunds")


@pytest.fixture
def sales():
    return Assistant(name="Sales", instance_id="asst_sales")


def make_engine(client, transcripts, *assistants):
    engine = AssistantsEngine(client, transcript_logger=transcripts, poll_interval=0, max_handoffs=2)
    for assistant in assistants:
        engine.add_assistant(assistant)
    return engine


class TestRunRequest:
    @pytest.mark.asyncio
    async def test_completed_run_returns_latest_text(self, refunds, transcripts):
        client = FakeClient()
        runs = client.beta.threads.runs
        runs.create.return_value = make_run("run_1", "queued")
        runs.retrieve.side_effect = [make_run("run_1", "in_progress"), make_run("run_1", "completed")]

        engine = make_engine(client, transcripts, refunds)
        assert await engine.run_request("refund my bees", refunds) == "Hello!"

        client.beta.threads.messages.create.assert_awaited_once_with(
            thread_id="thread_1", role="user", content="refund my bees"
        )
        runs.create.assert_awaited_once_with(thread_id="thread_1", assistant_id="asst_refunds")
        assert runs.retrieve.await_count == 2
        transcripts.save.assert_awaited_once()
        assert [m.content for m in refunds.history] == ["refund my bees", "Hello!"]

    @pytest.mark.asyncio
    async def test_requires_action_submits_outputs(self, refunds, transcripts):
        client = FakeClient()
        runs = client.beta.threads.runs
        runs.create.return_value = make_run("run_1", "queued")
        runs.retrieve.side_effect = [
            make_run("run_1", "requires_action", [("call_1", "lookup", {"key": "a"}), ("call_2", "missing", {})]),
            make_run("run_1", "completed"),
        ]
        runs.submit_tool_outputs.return_value = make_run("run_1", "in_progress")

        engine = make_engine(client, transcripts, refunds)
        await engine.run_request("look it up", refunds)

        runs.submit_tool_outputs.assert_awaited_once_with(
            run_id="run_1",
            thread_id="thread_1",
            tool_outputs=[
                {"tool_call_id": "call_1", "output": "value-a"},
                {"tool_call_id": "call_2", "output": "Error: Function missing not found"},
            ],
        )
        tool_entry = refunds.history[1]
        assert tool_entry.content == "Tool used: lookup"
        assert tool_entry.tool.args == {"key": "a"}

    @pytest.mark.asyncio
    async def test_handoff_cancels_and_restarts_on_target(self, sales, transcripts):
        triage = Assistant(
            name="Triage",
            functions=[create_transfer_tool("transfer_to_sales", "Sales", "Sales")],
            instance_id="asst_triage",
        )
        client = FakeClient()
        runs = client.beta.threads.runs
        runs.create.side_effect = [make_run("run_1", "queued"), make_run("run_2", "queued")]
        runs.retrieve.side_effect = [
            make_run("run_1", "requires_action", [("call_1", "transfer_to_sales", {"request": "buy bees"})]),
            make_run("run_1", "cancelled"),
            make_run("run_2", "completed"),
        ]
        runs.cancel.return_value = make_run("run_1", "cancelling")

        engine = make_engine(client, transcripts, triage, sales)
        assert await engine.run_request("buy bees", triage) == "Hello!"

        runs.cancel.assert_awaited_once_with(run_id="run_1", thread_id="thread_1")
        assert runs.create.await_args_list[1].kwargs == {"thread_id": "thread_1", "assistant_id": "asst_sales"}
        runs.submit_tool_outputs.assert_not_awaited()
        assert engine.active_assistant is sales
        assert sales.history[0].content == "buy bees"

    @pytest.mark.asyncio
    async def test_handoff_limit(self, transcripts):
        ping = Assistant(name="Ping", instance_id="asst_ping")
        pong = Assistant(name="Pong", instance_id="asst_pong")

        def to_pong():
            return pong

        def to_ping():
            return ping

        ping.functions = [to_pong]
        pong.functions = [to_ping]

        client = FakeClient()
        runs = client.beta.threads.runs
        runs.create.side_effect = [make_run(f"run_{i}", "queued") for i in range(1, 4)]
        runs.retrieve.side_effect = [
            make_run("run_1", "requires_action", [("c1", "to_pong", {})]), make_run("run_1", "cancelled"),
            make_run("run_2", "requires_action", [("c2", "to_ping", {})]), make_run("run_2", "cancelled"),
            make_run("run_3", "requires_action", [("c3", "to_pong", {})]), make_run("run_3", "cancelled"),
        ]
        runs.cancel.side_effect = [make_run(f"run_{i}", "cancelling") for i in range(1, 4)]

        engine = make_engine(client, transcripts, ping, pong)
        with pytest.raises(ThreadError, match="Exceeded 2 handoffs"):
            await engine.run_request("loop", ping)
        assert runs.cancel.await_count == 3

    @pytest.mark.asyncio
    async def test_handoff_to_assistant_without_instance(self, transcripts):
        local = Assistant(name="Local")
        triage = Assistant(
            name="Triage",
            functions=[create_transfer_tool("transfer_to_local", "Local", "Local")],
            instance_id="asst_triage",
        )
        client = FakeClient()
        runs = client.beta.threads.runs
        runs.create.return_value = make_run("run_1", "queued")
        runs.retrieve.side_effect = [
            make_run("run_1", "requires_action", [("call_1", "transfer_to_local", {"request": "x"})]),
            make_run("run_1", "cancelled"),
        ]
        runs.cancel.return_value = make_run("run_1", "cancelling")

        engine = make_engine(client, transcripts, triage, local)
        with pytest.raises(ContextTransferError, match="Local"):
            await engine.run_request("x", triage)
        assert runs.create.await_count == 1
        assert local.history == []

    @pytest.mark.asyncio
    async def test_failed_run(self, refunds, transcripts):
        client = FakeClient()
        client.beta.threads.runs.create.return_value = make_run("run_1", "queued")
        client.beta.threads.runs.retrieve.return_value = make_run("run_1", "failed")

        engine = make_engine(client, transcripts, refunds)
        with pytest.raises(ThreadError, match="failed"):
            await engine.run_request("x", refunds)
        transcripts.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_text_in_final_message(self, refunds, transcripts):
        client = FakeClient()
        client.beta.threads.runs.create.return_value = make_run("run_1", "completed")
        client.beta.threads.messages.list.return_value = SimpleNamespace(data=[
            SimpleNamespace(role="assistant", content=[SimpleNamespace(type="image_file")]),
        ])

        engine = make_engine(client, transcripts, refunds)
        with pytest.raises(MessageError):
            await engine.run_request("x", refunds)

    @pytest.mark.asyncio
    async def test_assistant_without_instance(self, transcripts):
        engine = make_engine(FakeClient(), transcripts)
        with pytest.raises(ThreadError, match="no provider instance"):
            await engine.run_request("x", Assistant(name="Local"))

    @pytest.mark.asyncio
    async def test_test_mode_skips_transcript(self, refunds, transcripts):
        client = FakeClient()
        client.beta.threads.runs.create.return_value = make_run("run_1", "completed")

        engine = make_engine(client, transcripts, refunds)
        await engine.run_request("x", refunds, test_mode=True)
        transcripts.save.assert_not_awaited()


class TestCancelRun:
    @pytest.mark.asyncio
    async def test_requires_thread_and_run(self, transcripts):
        engine = make_engine(FakeClient(), transcripts)
        with pytest.raises(ThreadError, match="No active thread or run"):
            await engine.cancel_run()

        await engine.initialize_thread()
        with pytest.raises(ThreadError):
            await engine.cancel_run()


class TestTasks:
    @pytest.mark.asyncio
    async def test_triage_request(self, refunds, sales, transcripts):
        client = FakeClient([make_completion("  Sales \n")])
        engine = make_engine(client, transcripts, refunds, sales)

        assert await engine.triage_request("I want bees") is sales
        user_prompt = client.request()["messages"][1]["content"]
        assert "I want bees" in user_prompt
        assert "Refunds, Sales" in user_prompt

    @pytest.mark.asyncio
    async def test_triage_unknown_name(self, refunds, transcripts):
        engine = make_engine(FakeClient([make_completion("Nobody")]), transcripts, refunds)
        assert await engine.triage_request("?") is None

    @pytest.mark.asyncio
    async def test_run_task_auto_records_assistant_in_test_mode(self, refunds, transcripts):
        client = FakeClient([make_completion("Refunds")])
        client.beta.threads.runs.create.return_value = make_run("run_1", "completed")
        engine = make_engine(client, transcripts, refunds)
        task = Task("refund order 7", assistant="auto")

        assert await engine.run_task(task, test_mode=True) == "Hello!"
        assert task.assistant == "Refunds"
        assert refunds.history[0].task_id == task.id

    @pytest.mark.asyncio
    async def test_run_task_without_assistant(self, transcripts):
        engine = make_engine(FakeClient(), transcripts)
        assert await engine.run_task(Task("x", assistant="Nobody")) is None

    @pytest.mark.asyncio
    async def test_each_task_gets_a_fresh_thread(self, refunds, transcripts):
        client = FakeClient()
        client.beta.threads.runs.create.return_value = make_run("run_1", "completed")
        engine = make_engine(client, transcripts, refunds)

        await engine.run_task(Task("one", assistant="Refunds"))
        await engine.run_task(Task("two", assistant="Refunds"))
        assert engine.thread.id == "thread_2"


class TestDeploy:
    @pytest.mark.asyncio
    async def test_failing_task_does_not_stop_the_rest(self, refunds, transcripts):
        broken = Assistant(name="Broken")
        client = FakeClient()
        client.beta.threads.runs.create.return_value = make_run("run_1", "completed")
        engine = AssistantsEngine(
            client,
            tasks=[Task("first", assistant="Broken"), Task("second", assistant="Refunds")],
            transcript_logger=transcripts,
            poll_interval=0,
        )
        engine.add_assistant(broken)
        engine.add_assistant(refunds)

        summary = await engine.deploy()

        assert len(summary.outcomes) == 2
        assert [o.description for o in summary.failed] == ["first"]
        assert "no provider instance" in summary.outcomes[0].error
        assert summary.outcomes[1].output == "Hello!"
        assert summary.total_tests == 0

    @pytest.mark.asyncio
    async def test_outcome_names_the_triaged_assistant(self, refunds, sales, transcripts):
        client = FakeClient([make_completion("Refunds")])
        client.beta.threads.runs.create.return_value = make_run("run_1", "completed")
        engine = AssistantsEngine(
            client,
            tasks=[Task("refund please", assistant="auto"), Task("nobody", assistant="Nobody")],
            transcript_logger=transcripts,
            poll_interval=0,
        )
        engine.add_assistant(refunds)
        engine.add_assistant(sales)

        summary = await engine.deploy()

        assert [o.assistant for o in summary.outcomes] == ["Refunds", None]
        assert engine.tasks[0].assistant == "auto"

    @pytest.mark.asyncio
    async def test_test_mode_scores_tasks(self, refunds, transcripts, tmp_path):
        test_file = tmp_path / "tasks.jsonl"
        test_file.write_text(
            json.dumps({"text": "refund my bees", "groundtruth": "refunded", "expected_assistant": "Refunds"})
            + "\n\n"
        )
        client = FakeClient([make_completion("Refunds"), make_completion("True")])
        client.beta.threads.runs.create.return_value = make_run("run_1", "completed")
        client.beta.threads.messages.list.return_value = SimpleNamespace(data=[text_message("Item refunded")])

        engine = make_engine(client, transcripts, refunds)
        summary = await engine.deploy(test_mode=True, test_file_path=test_file)

        assert isinstance(engine.tasks[0], EvaluationTask)
        assert summary.total_tests == 1
        assert summary.groundtruth_passed == 1
        assert summary.assistant_passed == 1
        assert summary.success_rate(summary.groundtruth_passed) == 100.0
        eval_prompt = client.request(1)["messages"][0]["content"]
        assert "Item refunded" in eval_prompt and "refunded" in eval_prompt
        transcripts.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deploy_loads_assistants_when_none_are_registered(self, transcripts):
        loader = SimpleNamespace(
            build_assistants=lambda: [Assistant(name="Loaded")],
            register=_register_all,
        )
        engine = AssistantsEngine(FakeClient(), loader=loader, transcript_logger=transcripts, poll_interval=0)
        await engine.deploy()
        assert [a.name for a in engine.assistants] == ["Loaded"]
        assert engine.assistants[0].instance_id == "asst_Loaded"


async def _register_all(threads, assistants):
    for assistant in assistants:
        assistant.instance_id = f"asst_{assistant.name}"
