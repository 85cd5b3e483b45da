from __future__ import annotations

import logging
from typing import List, Optional, Union

import streamlit as st

import interview_core as core

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

QuestionLike = Union[core.Question, core.SearchEntry]


# ============================================================
# Loading (cached catalog; mutable progress not cached)
# ============================================================
@st.cache_data(show_spinner=False)
def load_catalog_cached() -> core.QuestionStore:
    return core.load_catalog(core.QUESTIONS_FILE)


# ============================================================
# State
# ============================================================
def ensure_state():
    if st.session_state.get("initialized"):
        return

    catalog = load_catalog_cached()

    # session backend keeps the store alive across reruns
    store = st.session_state.get("kv_store") or core.make_store()
    tracker = core.ProgressTracker(store)
    tracker.load()

    st.session_state.initialized = True
    st.session_state.kv_store = store
    st.session_state.study = core.StudySession(catalog=catalog, tracker=tracker)

    # view
    st.session_state.current_topic = None  # type: Optional[str]
    st.session_state.search_term = ""
    st.session_state.expand_all = False

    # deep link
    st.session_state.current_topic = topic_from_query()


def study() -> core.StudySession:
    return st.session_state.study


def topic_from_query() -> Optional[str]:
    wanted = st.query_params.get("topic")
    topic = study().resolve_topic(wanted)
    return topic.id if topic else None


def select_topic(topic_id: Optional[str]):
    st.session_state.current_topic = topic_id
    st.session_state.search_term = ""
    st.session_state.search_box = ""
    st.session_state.expand_all = False
    if topic_id:
        st.query_params["topic"] = topic_id
    else:
        st.query_params.clear()


def notify_persist(result: core.PersistResult):
    if not result.ok:
        st.toast("⚠️ Progress kept for this session only (save failed).")


# ============================================================
# Actions
# ============================================================
def handle_mark_read(topic_id: str, qid: int):
    now_read = study().tracker.toggle_read(topic_id, qid)
    notify_persist(study().tracker.last_result)
    st.toast("✓ Marked as reviewed!" if now_read else "Unmarked")


def handle_mark_all_read(topic: core.Topic):
    result = study().tracker.mark_all_read(topic.id, [q.id for q in topic.questions])
    notify_persist(result)
    st.toast("✓ All marked as reviewed!")


# ============================================================
# UI helpers
# ============================================================
def progress_bar(pct: int, text: str = ""):
    st.progress(max(0, min(100, int(pct))) / 100.0, text=text or None)


def render_header_stats():
    hs = study().aggregator.header_stats()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("📚 Total questions", hs["total_questions"])
    c2.metric("✅ Completed", hs["completed"])
    c3.metric("📊 Overall progress", f"{hs['pct']}%")
    c4.metric("🏷 Topics covered", hs["topics"])
    progress_bar(hs["pct"])


def render_question_card(q: QuestionLike, topic_id: str, display_idx: int, highlight_term: str = ""):
    tracker = study().tracker
    read = tracker.is_read(topic_id, q.id)
    mark = "✅" if read else "○"
    label = f"{mark} {display_idx}. {q.question}"

    with st.expander(label, expanded=st.session_state.expand_all):
        if highlight_term:
            st.markdown(core.highlight(q.question, highlight_term), unsafe_allow_html=True)

        st.markdown("**💡 Answer**")
        st.write(q.answer)

        if q.example:
            st.markdown("**⚡ Code Example**")
            st.code(q.example)

        st.button(
            "✓ Done" if read else "○ Mark Read",
            key=f"read::{topic_id}::{q.id}",
            type="secondary" if read else "primary",
            on_click=handle_mark_read,
            args=(topic_id, q.id),
        )


def render_questions(questions: List[QuestionLike], topic_id: str):
    if not questions:
        st.caption("No questions found.")
        return
    for idx, q in enumerate(questions, start=1):
        render_question_card(q, topic_id, idx)


# ============================================================
# Screens
# ============================================================
def render_home():
    agg = study().aggregator
    topics = study().catalog.topics
    cols = st.columns(3)
    for i, topic in enumerate(topics):
        p = agg.topic_progress(topic.id)
        with cols[i % 3]:
            with st.container(border=True):
                st.subheader(f"{topic.icon} {topic.name}")
                desc = core.topic_description(topic.id)
                if desc:
                    st.caption(desc)
                progress_bar(p.pct)
                st.write(f"{len(topic.questions)} questions · {p.read}/{p.total} done")
                st.button(
                    "Open",
                    key=f"home::{topic.id}",
                    use_container_width=True,
                    on_click=select_topic,
                    args=(topic.id,),
                )


def render_topic(topic: core.Topic):
    p = study().aggregator.topic_progress(topic.id)
    st.header(f"{topic.icon} {topic.name}")
    st.caption(core.topic_count_line(topic, p))

    b1, b2, b3, b4 = st.columns(4)
    with b1:
        if st.button("Expand all", use_container_width=True):
            st.session_state.expand_all = True
            st.rerun()
    with b2:
        if st.button("Collapse all", use_container_width=True):
            st.session_state.expand_all = False
            st.rerun()
    with b3:
        st.button(
            "Mark all read",
            use_container_width=True,
            on_click=handle_mark_all_read,
            args=(topic,),
        )
    with b4:
        st.button("🏠 Home", use_container_width=True, on_click=select_topic, args=(None,))

    render_questions(list(topic.questions), topic.id)


def render_search(term: str):
    index = study().index
    results = index.search(term)

    st.header("🔍 Search Results")
    st.caption(f"{len(results)} results found" if results else "0 results")
    st.info(core.search_summary(term, results))

    if not results:
        st.caption("No results found. Try different keywords.")
        return

    catalog = study().catalog
    global_idx = 1
    for topic_id, qs in index.group_by_topic(results).items():
        topic = catalog.get_topic(topic_id)
        icon = topic.icon if topic else qs[0].topic_icon
        name = topic.name if topic else qs[0].topic_name
        st.markdown(f"##### {icon} {name} ({len(qs)})")
        for q in qs:
            render_question_card(q, topic_id, global_idx, highlight_term=term)
            global_idx += 1


def render_sidebar():
    agg = study().aggregator
    with st.sidebar:
        st.header("Topics")
        for topic in study().catalog.topics:
            active = topic.id == st.session_state.current_topic
            st.button(
                f"{topic.icon} {topic.name} ({len(topic.questions)})",
                key=f"nav::{topic.id}",
                type="primary" if active else "secondary",
                use_container_width=True,
                on_click=select_topic,
                args=(topic.id,),
            )

        st.divider()
        st.header("Your Progress")
        for topic in study().catalog.topics:
            p = agg.topic_progress(topic.id)
            progress_bar(p.pct, text=f"{topic.name} · {p.pct}%")

        st.divider()
        with st.expander("Reset progress", expanded=False):
            if st.button("Reset all progress", use_container_width=True):
                notify_persist(study().tracker.reset())
                st.rerun()


# ============================================================
# Main
# ============================================================
def main():
    st.set_page_config(page_title="DevInterview Pro", layout="wide")

    try:
        ensure_state()
    except core.CatalogError as e:
        st.error(f"Failed to load questions. Please ensure {core.QUESTIONS_FILE} is in the same folder.\n\n{e}")
        st.stop()

    st.title("DevInterview Pro")
    render_header_stats()
    render_sidebar()

    term = st.text_input("Search questions", key="search_box", placeholder="Search all questions…").strip()
    st.session_state.search_term = term

    if term:
        render_search(term)
        return

    topic = study().resolve_topic(st.session_state.current_topic)
    if topic is None:
        render_home()
        return

    render_topic(topic)


if __name__ == "__main__":
    main()
