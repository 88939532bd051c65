from collections import OrderedDict

import streamlit as st

from board_helpers import load_vocabulary, picto_for, picto_for_label, search_terms, suggest_words, get_resolver


st.set_page_config(page_title="Pictoboard", layout="wide")
st.title("Pictoboard")

st.markdown(
    """
<style>
.word-card {
  padding: 8px;
  border-radius: 12px;
  text-align: center;
}
.sentence {
  font-size: 28px;
  min-height: 48px;
}
</style>
""",
    unsafe_allow_html=True,
)

COLUMNS = 6

if "sentence" not in st.session_state:
    st.session_state.sentence = []


def add_word(label: str) -> None:
    st.session_state.sentence.append(label)


vocabulary = load_vocabulary()
categories = OrderedDict()
for entry in vocabulary:
    categories.setdefault(entry.category, []).append(entry)

# Sentence bar
st.markdown(f"<div class='sentence'>{' '.join(st.session_state.sentence)}</div>", unsafe_allow_html=True)
col1, col2, col3 = st.columns([1, 1, 4])
with col1:
    if st.button("Töröl", disabled=not st.session_state.sentence):
        st.session_state.sentence.pop()
        st.rerun()
with col2:
    if st.button("Új mondat"):
        st.session_state.sentence = []
        st.rerun()
with col3:
    show_debug = st.checkbox("Forrás mutatása", value=False)

# Word buttons, one tab per category
tabs = st.tabs(list(categories.keys()))
for tab, (category, entries) in zip(tabs, categories.items()):
    with tab:
        cols = st.columns(COLUMNS)
        for i, entry in enumerate(entries):
            with cols[i % COLUMNS]:
                resolved = picto_for(entry)
                st.image(resolved.url, use_container_width=True)
                if show_debug:
                    st.caption(f"{resolved.source.value} {resolved.pictogram_id or ''}")
                st.button(entry.label, key=f"word_{entry.id}", on_click=add_word, args=(entry.label,), use_container_width=True)

st.divider()

# Free search
st.subheader("Keresés")
term = st.text_input("Szó", placeholder="pl. alma")
if term.strip():
    suggestions = suggest_words(term)
    if suggestions:
        st.caption(", ".join(suggestions))

    candidates = search_terms(term)
    # None: a newer query of this session took over, its results come on the next run
    if candidates is not None and not candidates:
        st.info("Nincs találat.")
    elif candidates:
        cols = st.columns(COLUMNS)
        for i, cand in enumerate(candidates[:COLUMNS]):
            label = cand.keyword or term
            with cols[i]:
                st.image(get_resolver().client.pictogram_url(cand.id), use_container_width=True)
                st.button(label, key=f"cand_{cand.id}", on_click=add_word, args=(label,), use_container_width=True)

    # a typed word can always be added, with its pictogram or placeholder
    resolved = picto_for_label(term)
    st.image(resolved.url, width=120)
    st.button(f"Hozzáad: {term}", on_click=add_word, args=(term,))
