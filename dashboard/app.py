"""Streamlit operator console for the meeting room allocation service."""

from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
import requests
import streamlit as st

# ==========================================
# Configuration & Constants
# ==========================================
# Point this to your local FastAPI server
API_BASE_URL = "http://127.0.0.1:8000"

st.set_page_config(
    page_title="Meeting Rooms",
    page_icon="🏢",
    layout="wide",
)

# ==========================================
# API Helper Functions
# ==========================================
def submit_meeting_request(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Calls the allocation endpoint; 400 responses carry a structured reason."""
    try:
        response = requests.post(
            f"{API_BASE_URL}/meeting_requests",
            json=payload,
            timeout=10,
        )
        if response.status_code == 400:
            detail = response.json().get("detail")
            if isinstance(detail, dict):
                st.error(f"{detail.get('message')} ({detail.get('invalid_attendees')} invalid)")
            else:
                st.error(str(detail))
            return None
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Backend connection failed: {e}")
        return None


def confirm_alternative(meeting_request_id: int, room_id: int, start_at: str) -> Optional[Dict[str, Any]]:
    try:
        response = requests.post(
            f"{API_BASE_URL}/bookings/confirm",
            json={
                "meeting_request_id": meeting_request_id,
                "room_id": room_id,
                "start_at": start_at,
            },
            timeout=10,
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Confirmation failed: {e}")
        return None


def check_in(booking_id: int) -> Optional[Dict[str, Any]]:
    try:
        response = requests.post(
            f"{API_BASE_URL}/bookings/{booking_id}/check_in",
            timeout=5,
        )
        if response.status_code in (404, 409):
            st.warning(response.json().get("detail"))
            return None
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Check-in failed: {e}")
        return None


def trigger_auto_release() -> Optional[Dict[str, Any]]:
    try:
        response = requests.post(f"{API_BASE_URL}/bookings/auto_release", timeout=10)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Auto-release failed: {e}")
        return None


def fetch_bookings(status: Optional[str]) -> List[Dict[str, Any]]:
    try:
        params = {"status": status} if status else {}
        response = requests.get(f"{API_BASE_URL}/bookings", params=params, timeout=5)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Backend connection failed: {e}")
        return []


def _parse_ids(raw: str) -> List[int]:
    return [int(item) for item in raw.replace(" ", "").split(",") if item]


# ==========================================
# UI Page Functions
# ==========================================
def render_request_page() -> None:
    st.header("📅 Book a Meeting Room")
    st.markdown("Request a room; if none is free at the preferred time, ranked alternatives are listed.")

    col1, col2, col3 = st.columns(3)
    with col1:
        organizer_id = st.number_input("Organizer ID", min_value=1, value=1)
        attendees_raw = st.text_input("Attendee IDs (comma separated)", "1,2,3")
    with col2:
        meeting_date = st.date_input("Date", datetime.date.today())
        meeting_time = st.time_input("Preferred start", datetime.time(10, 0))
    with col3:
        duration = st.number_input("Duration (minutes)", min_value=15, step=15, value=30)
        flexibility = st.number_input("Flexibility (minutes)", min_value=0, step=15, value=30)

    equipment_raw = st.text_input("Required equipment IDs (comma separated)", "")
    priority = st.selectbox("Priority", ["low", "normal", "high", "urgent"], index=1)

    if st.button("Request Room", type="primary"):
        preferred_start = datetime.datetime.combine(
            meeting_date, meeting_time, tzinfo=datetime.timezone.utc
        )
        with st.spinner("Searching rooms..."):
            result = submit_meeting_request(
                {
                    "organizer_id": int(organizer_id),
                    "duration": int(duration),
                    "required_equipment": _parse_ids(equipment_raw),
                    "preferred_start": preferred_start.isoformat(),
                    "flexibility": int(flexibility),
                    "priority": priority,
                    "attendees": _parse_ids(attendees_raw),
                }
            )
        if result:
            st.session_state["last_result"] = result

    result = st.session_state.get("last_result")
    if not result:
        return

    if result.get("success"):
        booking = result["booking"]
        st.success(result["message"])
        metric_col1, metric_col2, metric_col3 = st.columns(3)
        metric_col1.metric("Booking", booking["id"])
        metric_col2.metric("Room", booking["room"]["name"])
        metric_col3.metric("Attendees", booking["attendees"])
        return

    st.warning(result.get("message", "No room available"))
    alternatives = result.get("alternatives", [])
    if not alternatives:
        st.info("No alternatives in the search window. Try another date or a wider flexibility.")
        return

    df = pd.DataFrame(alternatives)
    st.dataframe(
        df[["room_name", "suggested_start", "time_shift", "hourly_rate", "capacity", "cost_saved", "location"]],
        use_container_width=True,
    )
    choice = st.selectbox(
        "Confirm alternative",
        range(len(alternatives)),
        format_func=lambda idx: (
            f"{alternatives[idx]['room_name']} at {alternatives[idx]['suggested_start']}"
        ),
    )
    if st.button("Confirm Selected Alternative"):
        selected = alternatives[choice]
        booking = confirm_alternative(
            result["meeting_request"]["id"],
            selected["room_id"],
            selected["suggested_start"],
        )
        if booking:
            st.success(f"Booked {booking['room']['name']} (booking {booking['id']})")
            st.session_state.pop("last_result", None)


def render_bookings_page() -> None:
    st.header("🗂️ Bookings")

    status = st.selectbox("Status filter", ["", "confirmed", "cancelled"])
    bookings = fetch_bookings(status or None)
    if bookings:
        st.dataframe(pd.DataFrame(bookings), use_container_width=True)
    else:
        st.info("No bookings found.")

    col1, col2 = st.columns(2)
    with col1:
        booking_id = st.number_input("Booking ID", min_value=1, value=1)
        if st.button("Check In"):
            result = check_in(int(booking_id))
            if result:
                st.success(f"Checked in at {result['checked_in_at']}")
    with col2:
        st.write("Release confirmed bookings nobody checked into.")
        if st.button("Run Auto-Release"):
            result = trigger_auto_release()
            if result:
                st.metric("Released", result["released"])


# ==========================================
# Main App Router
# ==========================================
def main() -> None:
    st.sidebar.title("Meeting Rooms")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigation Module",
        ["Book a Room", "Bookings"]
    )

    if page == "Book a Room":
        render_request_page()
    elif page == "Bookings":
        render_bookings_page()

if __name__ == "__main__":
    main()
