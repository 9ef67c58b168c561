from __future__ import annotations

import dataclasses
from contextlib import closing

import streamlit as st
from loguru import logger

from debate.config import get_settings
from debate.errors import StartupError, ValidationError
from debate.events import (
    DialogueCleared,
    MessageAppended,
    StateChanged,
    TurnCountChanged,
    TurnFailed,
    TurnRequested,
    TypingChanged,
)
from debate.states import SessionState
from debate.stream_runner import run_debate_stream


AVATARS = {"GROK": "🟥", "CLAUDE": "🟧", "CHATGPT": "🟩", "DEEPSEEK": "🟦"}
CATEGORIES = {
    "Debate": "Should AI models be allowed to debate each other in public?",
    "Philosophy": "Is free will real?",
    "Technology": "Will open-source models overtake closed ones?",
    "Science": "Is there life elsewhere in our galaxy?",
    "Politics": "Should voting be mandatory?",
}


def render_message(m: dict) -> None:
    with st.chat_message("assistant", avatar=AVATARS.get(m["speaker"], "⬜")):
        st.markdown(
            f"**{m['speaker']}**\n\n{m['content']}\n\n"
            f"<span style='color:gray;font-size:smaller'>{m['time']}</span>",
            unsafe_allow_html=True,
        )


st.set_page_config(page_title="debateterminal", page_icon="💬", layout="centered")

base = get_settings()
st.sidebar.title("Debate – Controls")
roster_txt = st.sidebar.text_input("Roster (speaking order)", value=",".join(base.roster))
max_turns = st.sidebar.slider("Max turns", min_value=1, max_value=50, value=min(base.max_turns, 50) or 1)
turn_interval = st.sidebar.slider("Seconds between turns", min_value=0.0, max_value=5.0, value=float(min(base.turn_interval, 5.0)), step=0.5)
fail_rate = st.sidebar.slider("Simulated failure rate", min_value=0.0, max_value=0.5, value=float(min(base.fail_rate, 0.5)), step=0.05)

st.title("debateterminal")
st.caption("AI Models Debate in Real-time")

if "transcript" not in st.session_state:
    st.session_state["transcript"] = []
    st.session_state["status"] = ""
if "prompt" not in st.session_state:
    st.session_state["prompt"] = ""

cat_cols = st.columns(len(CATEGORIES))
for col, (label, sample) in zip(cat_cols, CATEGORIES.items()):
    if col.button(label, use_container_width=True):
        st.session_state["prompt"] = sample

prompt = st.text_input("Ask anything or start a debate...", key="prompt")
c1, c2 = st.columns(2)
start_btn = c1.button("▶ Start", type="primary", disabled=not prompt.strip(), use_container_width=True)
stop_btn = c2.button("■ Stop", use_container_width=True)

status_box = st.empty()
chat_area = st.container()

if stop_btn:
    # The rerun interrupts the previous run, whose closing() stream then stops the session
    st.session_state["status"] = "Stopped"

if start_btn:
    roster = tuple(n.strip().upper() for n in roster_txt.split(",") if n.strip())
    try:
        settings = dataclasses.replace(
            base, roster=roster, max_turns=max_turns, turn_interval=turn_interval, fail_rate=fail_rate
        )
    except ValueError as e:
        st.sidebar.error(f"Invalid settings: {e}")
        st.stop()

    rows: list[dict] = []
    st.session_state["transcript"] = rows
    turn, typing = 0, False
    try:
        with chat_area, closing(run_debate_stream(prompt, settings=settings)) as events:
            for event in events:
                if isinstance(event, DialogueCleared):
                    rows.clear()
                elif isinstance(event, MessageAppended):
                    m = event.message
                    row = {"speaker": m.speaker, "content": m.content, "time": m.timestamp.astimezone().strftime("%H:%M:%S")}
                    rows.append(row)
                    render_message(row)
                elif isinstance(event, TurnCountChanged):
                    turn = event.turn_count
                elif isinstance(event, TypingChanged):
                    typing = event.typing
                elif isinstance(event, TurnRequested):
                    typing = False
                elif isinstance(event, TurnFailed):
                    logger.warning(f"ui_turn_failed | {event.error}")
                elif isinstance(event, StateChanged) and event.state is SessionState.STOPPED:
                    reason = event.stop_reason.value if event.stop_reason else "stopped"
                    st.session_state["status"] = f"Finished after {turn} turns ({reason})"
                    continue
                status_box.info(f"Turn {turn} - {'AI typing...' if typing else 'Getting response...'}")
    except ValidationError:
        st.warning("Enter a prompt to start a debate.")
    except StartupError as e:
        st.error(f"The debate could not start: {e}")
    if st.session_state["status"]:
        status_box.success(st.session_state["status"])
else:
    with chat_area:
        for row in st.session_state["transcript"]:
            render_message(row)
    if st.session_state["status"]:
        status_box.info(st.session_state["status"])
    elif not st.session_state["transcript"]:
        st.info(
            "Enter a topic or question above to watch AI models debate in real-time. "
            "Grok, Claude, ChatGPT, and DeepSeek will engage in intelligent discourse."
        )
