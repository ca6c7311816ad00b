import calendar
import logging
from datetime import date, datetime, timedelta

import pandas as pd
import requests
import streamlit as st
from apscheduler.schedulers.background import BackgroundScheduler

from habithub.config import load_settings, setup_logging
from habithub.models import CATEGORIES, HabitSession
from habithub.tasks import TaskBoard
from habithub.ticker import IDLE_TIMEOUT_SECONDS, TickerRegistry
from habithub.timeutils import format_elapsed, format_minutes, parse_duration

settings = load_settings()
setup_logging(settings)
logger = logging.getLogger("habithub.dashboard")

API_URL = settings.api_url
PERIODS = {
    "This week": "this-week",
    "Last week": "last-week",
    "Last month": "last-month",
    "All time": "all-time",
}

# Set page config must be the first Streamlit command
st.set_page_config(
    page_title="HabitHub",
    layout="wide",
    page_icon="🎯",
    initial_sidebar_state="expanded"
)

# -------------------------------
# SESSION STATE INIT
# -------------------------------
@st.cache_resource
def shared_scheduler():
    """One ticker thread for every browser session of this server."""
    scheduler = BackgroundScheduler()
    scheduler.start()
    return scheduler


def new_ticker_registry():
    return TickerRegistry(shared_scheduler(), idle_timeout=IDLE_TIMEOUT_SECONDS)


if "user" not in st.session_state:
    st.session_state.user = None
if "tickers" not in st.session_state:
    st.session_state.tickers = new_ticker_registry()
if "calendar_day" not in st.session_state:
    st.session_state.calendar_day = date.today()
if "elapsed" not in st.session_state:
    st.session_state.elapsed = {}
if "task_board" not in st.session_state:
    st.session_state.task_board = TaskBoard()
if "flash" not in st.session_state:
    st.session_state.flash = None


# -------------------------------
# API HELPERS
# -------------------------------
def call_api(path, **payload):
    """POST to the API with the signed-in user; errors come back as {'success': False}."""
    payload["user_id"] = st.session_state.user["user_id"] if st.session_state.user else None
    try:
        resp = requests.post(f"{API_URL}{path}", json=payload, timeout=10)
    except requests.RequestException as e:
        logger.error("API %s unreachable: %s", path, e)
        return {"success": False, "error": f"API unreachable: {e}"}
    try:
        data = resp.json()
    except ValueError:
        return {"success": False, "error": f"Unexpected response ({resp.status_code})"}
    if resp.status_code == 422 and "detail" in data:
        return {"success": False, "error": str(data["detail"])}
    return data


def flash_result(result, success_text=None):
    if result.get("success"):
        st.session_state.flash = ("success", success_text or result.get("message", "Done"))
    else:
        st.session_state.flash = ("error", result.get("error", "Something went wrong"))


def render_flash():
    if st.session_state.flash:
        kind, text = st.session_state.flash
        (st.success if kind == "success" else st.error)(text)
        st.session_state.flash = None


# -------------------------------
# LIVE TIMERS
# -------------------------------
def sync_tickers(sessions):
    """Keep exactly one ticker per active session; returns sessions by habit id."""
    elapsed = st.session_state.elapsed

    def on_tick_for(habit_id):
        return lambda secs: elapsed.__setitem__(habit_id, secs)

    active = st.session_state.tickers.sync([HabitSession(**row) for row in sessions], on_tick_for)
    for habit_id in list(elapsed):
        if habit_id not in active:
            elapsed.pop(habit_id, None)
    return active


def stop_all_tickers():
    st.session_state.tickers.cancel_all()
    st.session_state.elapsed.clear()


@st.fragment(run_every=1)
def elapsed_display(habit_id):
    st.session_state.tickers.touch(habit_id)
    st.markdown(f"### ⏱️ {format_elapsed(st.session_state.elapsed.get(habit_id, 0))}")


def stop_tracking(habit_id, session_id):
    result = call_api("/session/stop", session_id=session_id)
    st.session_state.tickers.cancel(habit_id)
    st.session_state.elapsed.pop(habit_id, None)
    flash_result(result)


# -------------------------------
# SIGN IN
# -------------------------------
def sign_in_page():
    st.markdown("# 🎯 HabitHub")
    st.caption("Accounts are managed by the backend; enter your user id to continue.")
    with st.form("sign_in"):
        user_id = st.text_input("User ID")
        if st.form_submit_button("Continue", use_container_width=True) and user_id.strip():
            st.session_state.user = {"user_id": user_id.strip()}
            st.rerun()


# -------------------------------
# DASHBOARD
# -------------------------------
def dashboard_page():
    data = call_api("/stats/daily")
    if not data.get("success"):
        st.error(f"❌ Could not load today's stats: {data.get('error')}")
        return
    stats = data["stats"]

    st.markdown(f"# {datetime.now().strftime('%A, %B %d, %Y')}")
    quote = data["quote"]
    st.info(f"“{quote['text']}” — {quote['author']}")

    cols = st.columns(3)
    cols[0].metric("Time today", data["total_time_text"])
    cols[1].metric("Completed", f"{stats['completed_habits']}/{stats['total_habits']}")
    cols[2].metric("Today's progress", f"{stats['progress']}%")
    st.progress(min(stats["progress"], 100) / 100)

    if not data["habits"]:
        st.info("🌟 Add your first habit to start your daily journey!")
        if st.button("Add sample habits"):
            flash_result(call_api("/habit/seed"), "Sample habits added")
            st.rerun()
        return

    for habit in data["habits"]:
        with st.container(border=True):
            left, right = st.columns([3, 2])
            with left:
                st.markdown(f"**{habit['name']}**  ·  🔥 {habit['streak']} day streak")
                target = habit["target_minutes"]
                target_text = f" of {format_minutes(target)}" if target else ""
                st.progress(habit["bar"], text=f"{habit['time_spent_text']}{target_text} ({habit['progress']}%)")
            with right:
                with st.form(f"log_{habit['habit_id']}", clear_on_submit=True):
                    spent = st.text_input("Time", value="30m", help="e.g. 45m, 1h 30m or 90")
                    notes = st.text_input("Notes", placeholder="optional")
                    if st.form_submit_button("Log time"):
                        minutes = parse_duration(spent)
                        if minutes:
                            flash_result(call_api("/habit/log", habit_id=habit["habit_id"],
                                                  duration_minutes=minutes, notes=notes))
                        else:
                            st.session_state.flash = ("error", f"Could not read a duration from '{spent}'")
                        st.rerun()

    if st.button("🧹 Clear today's data"):
        # today's sessions are gone, running ones included
        stop_all_tickers()
        flash_result(call_api("/data/clear-today"))
        st.rerun()


# -------------------------------
# TIME TRACKER
# -------------------------------
def time_tracker_page():
    st.markdown("# ⏱️ Time Tracker")
    habits = call_api("/habit/list").get("habits", [])
    active = sync_tickers(call_api("/session/active").get("sessions", []))

    if not habits:
        st.info("No habits yet. Create one first.")
        return

    for habit in habits:
        with st.container(border=True):
            st.markdown(f"**{habit['name']}**")
            session = active.get(habit["id"])
            if session:
                elapsed_display(habit["id"])
                if st.button("⏹️ Stop", key=f"stop_{habit['id']}"):
                    stop_tracking(habit["id"], session.id)
                    st.rerun()
            elif st.button("▶️ Start", key=f"start_{habit['id']}"):
                flash_result(call_api("/session/start", habit_id=habit["id"]), f"Tracking {habit['name']}")
                st.rerun()
    st.caption("Tracked time counts toward today's totals; log it to mark the habit completed.")


# -------------------------------
# HABITS
# -------------------------------
def habits_page():
    st.markdown("# 📝 Habits")
    with st.form("create_habit", clear_on_submit=True):
        name = st.text_input("Habit name")
        description = st.text_area("Description")
        category = st.selectbox("Category", CATEGORIES, index=len(CATEGORIES) - 1)
        target = st.number_input("Daily target (minutes)", min_value=0, max_value=1440, value=30)
        color = st.color_picker("Color", "#3B82F6")
        if st.form_submit_button("➕ Create habit", use_container_width=True):
            flash_result(call_api("/habit/add", name=name, description=description,
                                  category=category, target_minutes=int(target), color=color))
            st.rerun()

    for habit in call_api("/habit/list").get("habits", []):
        cols = st.columns([4, 1, 1])
        cols[0].markdown(f"**{habit['name']}** · {habit['category']} · "
                         f"{format_minutes(habit.get('target_duration_minutes') or 0)}")
        if cols[1].button("Archive", key=f"archive_{habit['id']}"):
            flash_result(call_api("/habit/archive", habit_id=habit["id"]), "Habit archived")
            st.rerun()
        if cols[2].button("Delete", key=f"delete_{habit['id']}"):
            flash_result(call_api("/habit/remove", habit_id=habit["id"]))
            st.rerun()


# -------------------------------
# ANALYTICS
# -------------------------------
def analytics_page():
    st.markdown("# 📊 Analytics")
    weekly = call_api("/stats/weekly")
    if weekly.get("success"):
        st.markdown("### This week")
        df = pd.DataFrame(weekly["days"]).set_index("day")
        st.dataframe(df[["date", "completed", "total", "total_hours"]], use_container_width=True)

    label = st.selectbox("Period", list(PERIODS))
    data = call_api("/stats/analytics", period=PERIODS[label])
    if not data.get("success"):
        st.error(data.get("error"))
        return
    cols = st.columns(2)
    cols[0].metric("Total hours tracked", data["total_hours"])
    cols[1].metric("Active habits", data["active_habits"])
    if data["habits"]:
        df = pd.DataFrame(data["habits"])[["habit", "hours", "percentage"]]
        st.dataframe(df, hide_index=True, use_container_width=True)


# -------------------------------
# CALENDAR
# -------------------------------
STATUS_DOTS = {"none": "", "pending": " 🟠", "done": " 🟢"}


def shift_month(day, months):
    first = day.replace(day=1)
    if months < 0:
        return (first - timedelta(days=1)).replace(day=1)
    return (first + timedelta(days=32)).replace(day=1)


def month_grid(board, selected):
    """Month view, Sunday first, with a dot for days that have tasks."""
    prev_col, title_col, next_col = st.columns([1, 3, 1])
    if prev_col.button("◀", use_container_width=True):
        st.session_state.calendar_day = shift_month(selected, -1)
        st.rerun()
    title_col.markdown(f"### {selected.strftime('%B %Y')}")
    if next_col.button("▶", use_container_width=True):
        st.session_state.calendar_day = shift_month(selected, 1)
        st.rerun()

    header = st.columns(7)
    for col, name in zip(header, ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]):
        col.caption(name)
    weeks = calendar.Calendar(firstweekday=6).monthdatescalendar(selected.year, selected.month)
    for week in weeks:
        for col, day in zip(st.columns(7), week):
            if day.month != selected.month:
                col.write("")
                continue
            label = f"{day.day}{STATUS_DOTS[board.day_status(day)]}"
            kind = "primary" if day == selected else "secondary"
            if col.button(label, key=f"cal_{day.isoformat()}", type=kind, use_container_width=True):
                st.session_state.calendar_day = day
                st.rerun()


def day_activity_panel(day):
    st.markdown(f"### {day.strftime('%A, %B %d, %Y')}")
    data = call_api("/stats/activity", day=day.isoformat())
    if not data.get("success"):
        st.error(data.get("error"))
        return
    if not data["activity"]:
        st.caption("No activity recorded for this date")
        return
    for entry in data["activity"]:
        with st.container(border=True):
            icon = "⏱️" if entry["kind"] == "session" else "📝"
            running = " (running)" if entry.get("is_active") else ""
            st.markdown(f"{icon} **{entry['habit']}** · {format_minutes(entry['minutes'])}{running}")
            if entry["notes"]:
                st.caption(entry["notes"])


def calendar_page():
    st.markdown("# 📅 Calendar")
    board = st.session_state.task_board
    day = st.session_state.calendar_day
    grid_col, side_col = st.columns([3, 2])

    with grid_col:
        month_grid(board, day)

    with side_col:
        day_activity_panel(day)

        st.markdown("### Tasks")
        with st.form("add_task", clear_on_submit=True):
            text = st.text_input("Add a new task...")
            priority = st.radio("Priority", ["low", "medium", "high"], index=1, horizontal=True)
            if st.form_submit_button("Add") and text.strip():
                board.add(day, text, priority)
                st.rerun()

        tasks = board.tasks_for(day)
        if not tasks:
            st.caption("No tasks for this date. Add one above!")
        for task in tasks:
            cols = st.columns([5, 1])
            label = f"~~{task.text}~~" if task.completed else task.text
            if cols[0].checkbox(f"[{task.priority}] {label}", value=task.completed,
                                key=f"task_{task.id}") != task.completed:
                board.toggle(day, task.id)
                st.rerun()
            if cols[1].button("🗑️", key=f"del_{task.id}"):
                board.delete(day, task.id)
                st.rerun()


# -------------------------------
# MAIN APP
# -------------------------------
def logout():
    st.session_state.tickers.close()
    st.session_state.tickers = new_ticker_registry()
    st.session_state.elapsed = {}
    st.session_state.task_board = TaskBoard()
    st.session_state.calendar_day = date.today()
    st.session_state.user = None
    st.rerun()


def main():
    if st.session_state.user is None:
        sign_in_page()
        return

    st.sidebar.markdown(f"### 👋 Hello, {st.session_state.user['user_id']}!")

    pages = {
        "🏠 Dashboard": dashboard_page,
        "⏱️ Time Tracker": time_tracker_page,
        "📝 Habits": habits_page,
        "📊 Analytics": analytics_page,
        "📅 Calendar": calendar_page,
    }
    choice = st.sidebar.radio("Go to:", list(pages.keys()))
    if choice != "⏱️ Time Tracker":
        # live timers only run while the tracker page is on screen
        stop_all_tickers()
    render_flash()
    pages[choice]()

    if st.sidebar.button("🚪 Logout", use_container_width=True):
        logout()


if __name__ == "__main__":
    main()
