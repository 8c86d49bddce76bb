# app.py
import logging
import os

import pandas as pd
import streamlit as st

from engine import CANCER, GLAUCOMA, QUESTIONS, classify, get_risk_level_name, normalize_answer
from src.screening.errors import ScreeningError
from src.screening.expert_system import ScreeningExpertSystem
from src.screening.spreadsheet import read_answers

logging.basicConfig(
    level=os.environ.get("SCREENER_LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

st.set_page_config(page_title="Glaucoma & Cancer Risk Screener", layout="centered")
st.title("Glaucoma & Cancer Risk Screener for People with Diabetes")

st.markdown("Answer the questions below (or upload an Excel file with a **Data** sheet to pre-fill them). Click **Get Assessment** to see your risk scores and recommendations. Unanswered questions count as **No**.")
st.caption("This is a screening aid, not a medical diagnosis.")

system = ScreeningExpertSystem()
if "history" not in st.session_state:
    st.session_state["history"] = []

# Optional workbook upload pre-fills the checkboxes
prefill = {}
form_key = "manual"
upload = st.file_uploader("Upload answers (.xlsx, sheet named 'Data')", type=["xlsx"])
if upload is not None:
    try:
        prefill = read_answers(upload, sheet_name=system.config["sheet_name"])
        form_key = upload.file_id
        st.success(f"Loaded {len(prefill)} answers from {upload.name}.")
    except ScreeningError as exc:
        st.error(str(exc))


def prefilled(question_id):
    # checkbox defaults must be real booleans
    return normalize_answer(prefill.get(question_id))


with st.form("assessment_form"):
    answers = {}
    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Eyes")
        for q in QUESTIONS:
            if q.group == GLAUCOMA:
                answers[q.id] = st.checkbox(q.prompt, value=prefilled(q.id), key=f"{q.id}-{form_key}")
    with col2:
        st.subheader("General")
        for q in QUESTIONS:
            if q.group != GLAUCOMA:
                answers[q.id] = st.checkbox(q.prompt, value=prefilled(q.id), key=f"{q.id}-{form_key}")

    submitted = st.form_submit_button("Get Assessment")


def show_condition(label, condition, score, percentage, recommendation):
    tier = classify(score, condition)
    color = tier.color if tier else "#6b7280"
    st.markdown(
        f"<span style='color:{color}; font-weight:600'>{label}: {score}/10 ({percentage}%) "
        f"- {get_risk_level_name(score, condition)}</span>",
        unsafe_allow_html=True,
    )
    st.write(recommendation)
    if tier:
        st.caption(f"Treatment pathway at this level: {tier.treatment}")


if submitted:
    record = system.assess(answers)
    st.session_state["history"].append(record)

    st.subheader("Overall Recommendation")
    for line in record["recommendations"].splitlines():
        st.markdown(f"**{line}**" if line.startswith(("Primary", "Equal")) else line)

    col3, col4 = st.columns(2)
    with col3:
        show_condition("Glaucoma", GLAUCOMA, record["glaucomaScore"], record["glaucomaRiskPercentage"], record["glaucomaRecommendations"])
    with col4:
        show_condition("Cancer", CANCER, record["cancerScore"], record["cancerRiskPercentage"], record["cancerRecommendations"])

history = st.session_state["history"]
if history:
    with st.expander(f"Show History ({len(history)} assessments this session)"):
        col5, col6 = st.columns(2)
        start = col5.date_input("From", value=None)
        end = col6.date_input("To", value=None)
        view = system.dashboard(history, start=start, end=end)

        if view["summary"]["assessments"] == 0:
            st.info("No assessments in this date range.")
        else:
            trend = view["trend"].set_index("timestamp")
            st.line_chart(trend.rename(columns={"glaucomaScore": "Glaucoma", "cancerScore": "Cancer"}))

            summary = view["summary"]
            for condition in (GLAUCOMA, CANCER):
                s = summary[condition]
                st.write(f"**{condition.title()}:** latest {s['latest']:g}, change {s['change']:+g} ({s['direction']})")

            st.bar_chart(pd.Series(view["distribution"], name="Assessments"))
