"""
Tests for the control loop.
"""
import pytest

from conftest import FakeVoiceover, ScriptedBackend, call, reply, words


def _bodies(engine):
    return [event.body for event in engine.bus.tail(len(engine.bus))]


ASK_DURATION = reply(
    "Before we start I need a few details.",
    call("request_user_input", question="Who is the audience and how long should it be?", options=["1 minute", "5 minutes"]),
)


class TestStart:
    """Tests for starting a session."""

    @pytest.mark.asyncio
    async def test_kickoff_suspends_for_user(self, make_engine):
        """Coordinator asking a question should suspend the loop."""
        backend = ScriptedBackend([ASK_DURATION])
        engine = make_engine(backend)

        state = await engine.start("The history of coffee", "for a general audience")

        assert state["isRunning"] is True
        assert state["waitingForUser"] is True
        assert state["currentPhase"] == "clarifying"
        assert state["pendingQuestion"]["options"] == ["1 minute", "5 minutes"]
        assert state["steps"] == 0
        assert backend.roles == ["orchestrator"]

    @pytest.mark.asyncio
    async def test_start_posts_system_event_and_question(self, make_engine):
        engine = make_engine(ScriptedBackend([ASK_DURATION]))
        await engine.start("The history of coffee")

        events = engine.bus.tail(10)
        assert events[0].sender == "system"
        assert 'New project started: "The history of coffee"' in events[0].body
        question = events[-1]
        assert question.recipient == "user"
        assert question.kind.value == "question"
        assert question.to_dict()["options"] == ["1 minute", "5 minutes"]

    @pytest.mark.asyncio
    async def test_restart_clears_previous_session(self, make_engine):
        from scriptroom.agents.profiles import COORDINATOR
        from scriptroom.orchestration.enums import ScriptOperation

        engine = make_engine(ScriptedBackend([ASK_DURATION, ASK_DURATION]))
        await engine.start("First topic")
        engine.bus.mutate_artifact("Hook", "old text", ScriptOperation.CREATE)

        state = await engine.start("Second topic")

        assert state["topic"] == "Second topic"
        assert state["script"] == {}
        assert all("First topic" not in body for body in _bodies(engine))
        assert len(engine.workers[COORDINATOR].memory) == 2


class TestRespond:
    """Tests for human replies."""

    @pytest.mark.asyncio
    async def test_respond_before_start_raises(self, make_engine):
        from scriptroom.orchestration.exceptions import SessionNotStartedError

        engine = make_engine(ScriptedBackend())
        with pytest.raises(SessionNotStartedError):
            await engine.respond("hello")

    @pytest.mark.asyncio
    async def test_respond_sets_target_envelope(self, make_engine):
        """A one-minute answer should give the [139, 180] word envelope."""
        engine = make_engine(ScriptedBackend([ASK_DURATION, reply("Great, let's go.")]))
        await engine.start("Coffee")

        state = await engine.respond("Teenagers, make it 1 minute please")

        assert state["targetDuration"] == 1
        assert state["targetWordCount"] == {"min": 139, "max": 180}
        assert state["waitingForUser"] is False
        assert state["pendingQuestion"] is None
        assert any("📏 Target set: 1 minutes (139-180 words)" in body for body in _bodies(engine))

    @pytest.mark.asyncio
    async def test_respond_with_seconds(self, make_engine):
        engine = make_engine(ScriptedBackend([ASK_DURATION, reply("ok")]))
        await engine.start("Coffee")

        state = await engine.respond("45 seconds")

        assert state["targetDuration"] == 0.75
        assert state["targetWordCount"]["min"] <= 105 <= state["targetWordCount"]["max"]

    @pytest.mark.asyncio
    async def test_target_not_overwritten_by_later_reply(self, make_engine):
        engine = make_engine(ScriptedBackend([ASK_DURATION, ASK_DURATION, reply("ok")]))
        await engine.start("Coffee")
        await engine.respond("2 minutes")

        state = await engine.respond("actually 10 minutes")

        assert state["targetDuration"] == 2

    @pytest.mark.asyncio
    async def test_respond_includes_user_message_in_prompt(self, make_engine):
        backend = ScriptedBackend([ASK_DURATION, reply("ok")])
        engine = make_engine(backend)
        await engine.start("Coffee")

        await engine.respond("Adults, 3 minutes, dramatic tone")

        _, messages, _ = backend.calls[-1]
        assert 'The user responded: "Adults, 3 minutes, dramatic tone"' in messages[-1]["content"]
        assert "Target word count: 418-540 words" in messages[-1]["content"]

    @pytest.mark.asyncio
    async def test_unset_duration_is_reported_to_coordinator(self, make_engine):
        backend = ScriptedBackend([ASK_DURATION, reply("ok")])
        engine = make_engine(backend)
        await engine.start("Coffee")

        await engine.respond("Adults, documentary tone")

        _, messages, _ = backend.calls[-1]
        assert "Target duration: NOT SET YET" in messages[-1]["content"]


class TestDelegation:
    """Tests for delegation order and phases."""

    @pytest.mark.asyncio
    async def test_depth_first_order(self, make_engine):
        """Each delegated worker is followed by a coordinator turn before the next delegation."""
        turns = {"orchestrator": 0}

        def responder(role, messages):
            if role == "orchestrator":
                turns["orchestrator"] += 1
                if turns["orchestrator"] == 1:
                    return reply(
                        "Kicking off.",
                        call("send_message", to="researcher", message="Research coffee", type="task"),
                        call("send_message", to="writer", message="Draft a hook", type="task"),
                    )
                return reply("Waiting.")
            return reply(f"{role} finished.")

        backend = ScriptedBackend(responder=responder)
        engine = make_engine(backend)
        state = await engine.start("Coffee")

        assert backend.roles == ["orchestrator", "researcher", "orchestrator", "writer", "orchestrator"]
        assert state["steps"] == 4
        assert state["currentPhase"] == "writing"

    @pytest.mark.asyncio
    async def test_delegated_worker_sees_sender_and_message(self, make_engine):
        backend = ScriptedBackend([
            reply("", call("send_message", to="@Researcher", message="Find three facts", type="task")),
            reply("Here are the facts."),
            reply("Thanks."),
        ])
        engine = make_engine(backend)
        await engine.start("Coffee")

        role, messages, tools = backend.calls[1]
        assert role == "researcher"
        assert '@orchestrator sent you a message: "Find three facts"' in messages[-1]["content"]
        assert [t["function"]["name"] for t in tools] == ["search_web", "send_message"]

    @pytest.mark.asyncio
    async def test_phase_follows_delegated_role(self, make_engine):
        phases = []
        backend = ScriptedBackend([
            reply("", call("send_message", to="critic", message="Review it", type="task")),
            reply("Score 8/10."),
            reply("Done for now."),
        ])
        engine = make_engine(backend)
        engine.bus.subscribe(lambda n: phases.append(n.data["phase"]) if n.type.value == "phase" else None)

        state = await engine.start("Coffee")

        assert phases == ["clarifying", "reviewing"]
        assert state["currentPhase"] == "reviewing"

    @pytest.mark.asyncio
    async def test_message_to_all_is_recorded_only(self, make_engine):
        backend = ScriptedBackend([reply("", call("send_message", to="all", message="Team, stand by", type="info"))])
        engine = make_engine(backend)

        state = await engine.start("Coffee")

        assert backend.roles == ["orchestrator"]
        assert state["steps"] == 0
        assert engine.bus.tail(1)[0].recipient == "all"

    @pytest.mark.asyncio
    async def test_question_to_user_suspends(self, make_engine):
        backend = ScriptedBackend([reply("", call("send_message", to="user", message="How long?", type="question"))])
        engine = make_engine(backend)

        state = await engine.start("Coffee")

        assert state["waitingForUser"] is True
        assert state["pendingQuestion"]["question"] == "How long?"

    @pytest.mark.asyncio
    async def test_info_to_user_does_not_suspend(self, make_engine):
        backend = ScriptedBackend([reply("", call("send_message", to="user", message="Working on it", type="info"))])
        engine = make_engine(backend)

        state = await engine.start("Coffee")

        assert state["waitingForUser"] is False

    @pytest.mark.asyncio
    async def test_unknown_recipient_rejected(self, make_engine):
        backend = ScriptedBackend([reply("", call("send_message", to="director", message="Hi", type="task"))])
        engine = make_engine(backend)

        await engine.start("Coffee")

        assert backend.roles == ["orchestrator"]
        assert "unknown recipient 'director'" in engine.bus.tail(1)[0].body


class TestStepBudget:
    """Tests for loop termination."""

    @pytest.mark.asyncio
    async def test_self_delegation_stops_at_budget(self, make_engine):
        """A coordinator that always delegates to itself halts after exactly step_budget steps."""
        backend = ScriptedBackend(
            responder=lambda role, messages: reply("", call("send_message", to="orchestrator", message="again", type="task"))
        )
        engine = make_engine(backend)

        state = await engine.start("Coffee")

        assert state["steps"] == 30
        assert len(backend.calls) == 31
        assert state["isRunning"] is True

    @pytest.mark.asyncio
    async def test_budget_is_configurable(self, make_engine):
        backend = ScriptedBackend(
            responder=lambda role, messages: reply("", call("send_message", to="writer", message="again", type="task"))
        )
        engine = make_engine(backend, step_budget=5)

        state = await engine.start("Coffee")

        assert state["steps"] == 5
        assert len(backend.calls) == 6

    @pytest.mark.asyncio
    async def test_exhausted_budget_blocks_continue(self, make_engine):
        backend = ScriptedBackend(
            responder=lambda role, messages: reply("", call("send_message", to="orchestrator", message="loop", type="task"))
        )
        engine = make_engine(backend, step_budget=3)
        await engine.start("Coffee")
        calls_before = len(backend.calls)

        state = await engine.continue_orchestration()

        assert len(backend.calls) == calls_before
        assert state["steps"] == 3


class TestFinalize:
    """Tests for the finalize action inside the loop."""

    async def _with_target(self, make_engine, *later_replies):
        backend = ScriptedBackend([ASK_DURATION, *later_replies])
        engine = make_engine(backend)
        await engine.start("Coffee")
        return engine

    @pytest.mark.asyncio
    async def test_too_long_script_rejected(self, make_engine):
        engine = await self._with_target(
            make_engine,
            reply("", call("finalize_script", title="Coffee", script=words(300))),
        )

        state = await engine.respond("1 minute")

        assert state["finalScript"] is None
        assert state["currentPhase"] == "clarifying"
        assert any("Script too long: 300 words (maximum: 180)" in body for body in _bodies(engine))

    @pytest.mark.asyncio
    async def test_script_in_range_accepted(self, make_engine):
        engine = await self._with_target(
            make_engine,
            reply("", call("finalize_script", title="<b>Coffee</b> Story", description="All about coffee", script=words(150))),
        )

        state = await engine.respond("1 minute")

        final = state["finalScript"]
        assert final["title"] == "Coffee Story"
        assert final["wordCount"] == 150
        assert final["duration_estimate"] == "~1.0 minutes"
        assert state["isRunning"] is True
        assert engine.bus.tail(1)[0].to_dict()["finalScript"]["title"] == "Coffee Story"

    @pytest.mark.asyncio
    async def test_second_finalize_keeps_first_record(self, make_engine):
        engine = await self._with_target(
            make_engine,
            reply(
                "",
                call("finalize_script", title="First", script=words(150)),
                call("finalize_script", title="Second", script=words(160)),
            ),
        )

        state = await engine.respond("1 minute")

        assert state["finalScript"]["title"] == "First"
        assert "already finalized" in engine.bus.tail(1)[0].body

    @pytest.mark.asyncio
    async def test_meta_commentary_rejected(self, make_engine):
        script = "@writer please check. " + words(150)
        engine = await self._with_target(make_engine, reply("", call("finalize_script", title="Coffee", script=script)))

        state = await engine.respond("1 minute")

        assert state["finalScript"] is None
        assert any("meta-commentary" in body for body in _bodies(engine))


class TestVoiceover:
    """Tests for the terminal voiceover step."""

    @pytest.mark.asyncio
    async def test_voiceover_completes_session(self, make_engine, fake_voiceover):
        backend = ScriptedBackend([
            reply("", call("send_message", to="voiceover", message="Record it", type="task")),
            reply(
                "Recording now.",
                call("generate_voiceover", text=words(40), voice_style="calm"),
                call("send_message", to="orchestrator", message="Done", type="info"),
            ),
        ])
        engine = make_engine(backend)

        state = await engine.start("Coffee")

        assert state["isRunning"] is False
        assert state["currentPhase"] == "completed"
        assert state["audio"]["url"] == "https://cdn.example.com/voice.mp3"
        assert fake_voiceover.requests == [(words(40), "calm")]
        # the trailing send_message was skipped and no coordinator follow-up ran
        assert backend.roles == ["orchestrator", "voiceover"]
        assert engine.bus.tail(1)[0].to_dict()["audioFile"]["duration"] == 42.0

    @pytest.mark.asyncio
    async def test_markup_fails_gate_without_halting(self, make_engine, fake_voiceover):
        backend = ScriptedBackend([
            reply("", call("send_message", to="voiceover", message="Record it", type="task")),
            reply("", call("generate_voiceover", text="[VISUAL: drone shot] " + words(40))),
            reply("I'll ask for a cleaner script."),
        ])
        engine = make_engine(backend)

        state = await engine.start("Coffee")

        assert state["isRunning"] is True
        assert fake_voiceover.requests == []
        rejection = [e for e in engine.bus.tail(len(engine.bus)) if "Voiceover text validation failed" in e.body][0]
        assert rejection.to_dict()["foundMarkup"] == ["[VISUAL] direction"]
        assert backend.roles[-1] == "orchestrator"

    @pytest.mark.asyncio
    async def test_synthesis_error_still_terminates(self, make_engine):
        failing = FakeVoiceover(error=RuntimeError("TTS down"))
        backend = ScriptedBackend([
            reply("", call("generate_voiceover", text=words(40))),
        ])
        engine = make_engine(backend, voiceover=failing)

        state = await engine.start("Coffee")

        assert state["isRunning"] is False
        assert state["currentPhase"] == "completed"
        assert state["audio"] is None
        assert "Voiceover generation error: TTS down" in engine.bus.tail(1)[0].body

    @pytest.mark.asyncio
    async def test_continue_after_completion_raises(self, make_engine):
        from scriptroom.orchestration.exceptions import SessionNotStartedError

        engine = make_engine(ScriptedBackend([reply("", call("generate_voiceover", text=words(40)))]))
        await engine.start("Coffee")

        with pytest.raises(SessionNotStartedError):
            await engine.continue_orchestration()


class TestFailures:
    """Tests for backend and payload failures."""

    @pytest.mark.asyncio
    async def test_backend_failure_becomes_event(self, make_engine):
        engine = make_engine(ScriptedBackend([ConnectionError("upstream timeout")]))

        state = await engine.start("Coffee")

        assert state["isRunning"] is True
        last = engine.bus.tail(1)[0]
        assert last.sender == "system"
        assert "Error occurred: upstream timeout" in last.body

    @pytest.mark.asyncio
    async def test_malformed_action_skipped_siblings_run(self, make_engine):
        from scriptroom.agents.tools import ToolCall

        backend = ScriptedBackend([
            reply(
                "",
                ToolCall(name="write_script_section", arguments="{not json"),
                call("write_script_section", section="Hook", content="Coffee changed the world.", action="create"),
            ),
        ])
        engine = make_engine(backend)

        state = await engine.start("Coffee")

        assert state["script"] == {"Hook": "Coffee changed the world."}
        assert state["wordCount"] == 4
        assert any("Skipped a malformed action" in body for body in _bodies(engine))

    @pytest.mark.asyncio
    async def test_role_cannot_use_foreign_tool(self, make_engine):
        backend = ScriptedBackend([
            reply("", call("send_message", to="critic", message="Review", type="task")),
            reply("", call("finalize_script", title="Mine", script=words(150))),
            reply("ok"),
        ])
        engine = make_engine(backend)

        state = await engine.start("Coffee")

        assert state["finalScript"] is None
        assert any("Editor cannot use 'finalize_script'" in body for body in _bodies(engine))


class TestLifecycle:
    """Tests for state snapshots and reset."""

    @pytest.mark.asyncio
    async def test_get_state_shape(self, make_engine):
        engine = make_engine(ScriptedBackend([ASK_DURATION]))
        await engine.start("Coffee")

        state = engine.get_state()

        for key in ("isRunning", "currentPhase", "waitingForUser", "script", "messages", "agents", "wordCount", "stepBudget"):
            assert key in state
        assert len(state["agents"]) == 7
        assert "instructions" not in state["agents"][0]

    @pytest.mark.asyncio
    async def test_reset_keeps_observers(self, make_engine):
        seen = []
        engine = make_engine(ScriptedBackend([ASK_DURATION, ASK_DURATION]))
        engine.bus.subscribe(seen.append)
        await engine.start("Coffee")

        await engine.reset()

        state = engine.get_state()
        assert state["isRunning"] is False
        assert state["currentPhase"] == "idle"
        assert state["messages"] == []
        assert engine.bus.observer_count == 1

        seen.clear()
        await engine.start("Tea")
        assert seen

    @pytest.mark.asyncio
    async def test_reset_interrupts_running_loop(self, make_engine):
        """Reset during a long session returns after the current step, not after the budget."""
        import asyncio

        class SlowBackend(ScriptedBackend):
            async def infer(self, messages, tools=None):
                await asyncio.sleep(0.02)
                return await super().infer(messages, tools)

        backend = SlowBackend(
            responder=lambda role, messages: reply("", call("send_message", to="orchestrator", message="again", type="task"))
        )
        engine = make_engine(backend)

        task = asyncio.create_task(engine.start("Coffee"))
        await asyncio.sleep(0.07)
        await engine.reset()
        calls_at_reset = len(backend.calls)
        await task

        assert calls_at_reset < 10
        assert len(backend.calls) == calls_at_reset
        state = engine.get_state()
        assert state["isRunning"] is False
        assert state["steps"] == 0
        assert state["messages"] == []
