import streamlit as st
import asyncio
import sys
import os
from pathlib import Path

# Get the project directory (parent of dashboard)
project_dir = str(Path(__file__).parent.parent)
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

os.chdir(project_dir)

from ministry_scanner.analytics.growth import GrowthMetrics
from ministry_scanner.config.settings import CHURCH_NAME, PROFILE_SOURCE
from ministry_scanner.core.decoder import QRDecoder
from ministry_scanner.core.capture import CaptureSession
from ministry_scanner.database.db_manager import DatabaseManager
from ministry_scanner.services.actions import ActionUnavailableError
from ministry_scanner.services.resolver import ResolutionStatus
from ministry_scanner.services.scan_service import ScanService
from ministry_scanner.services.stores import ProfileStoreError, http_stores, sqlite_stores

# Page configuration
st.set_page_config(
    page_title="Ministry QR Scanner",
    page_icon="📷",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_database():
    """Cache the database manager and make sure the tables exist."""
    db_manager = DatabaseManager()
    db_manager.ensure_schema()
    return db_manager


def get_workflow():
    """
    One scan workflow per browser session.
    The event loop is kept with it so async HTTP clients stay on one loop.
    """
    if 'workflow' not in st.session_state:
        db_manager = get_database()
        stores = http_stores() if PROFILE_SOURCE == "http" else sqlite_stores(db_manager)
        # The browser camera delivers snapshots; no local capture device is opened here
        service = ScanService(stores, session=CaptureSession(decoder=QRDecoder()))
        st.session_state['workflow'] = {
            'service': service,
            'loop': asyncio.new_event_loop(),
        }
    return st.session_state['workflow']


workflow = get_workflow()
service = workflow['service']


def run(coro):
    return workflow['loop'].run_until_complete(coro)


def show_notice(outcome):
    if not outcome.ok:
        st.warning(f"⚠️ {outcome.notice}")


st.title("📷 Ministry QR Scanner")
st.markdown("---")

# Sidebar: growth
with st.sidebar:
    st.header("📈 Growth")
    if PROFILE_SOURCE == "http":
        st.info("Growth figures are available for the local database only.")
    else:
        days = st.selectbox("Period", [7, 30, 90], index=1, format_func=lambda d: f"Last {d} days")
        metrics = GrowthMetrics(get_database())
        summary = metrics.summary(days=days)
        growth = metrics.daily_growth(days=days)

        col1, col2 = st.columns(2)
        col1.metric("Members", summary['total_members'], f"+{int(growth['members'].sum())}")
        col2.metric("Ministers", summary['total_ministers'], f"+{int(growth['ministers'].sum())}")
        st.dataframe(
            growth[['date_formatted', 'members', 'ministers', 'members_cumulative', 'ministers_cumulative']],
            hide_index=True,
            use_container_width=True,
        )

# Input: camera snapshot, image upload or name search
camera_tab, upload_tab, search_tab = st.tabs(["📷 Camera", "🖼️ Upload", "🔍 Search"])

with camera_tab:
    snapshot = st.camera_input("Point the camera at a QR code")
    if snapshot is not None and st.session_state.get('last_snapshot') != snapshot.file_id:
        st.session_state['last_snapshot'] = snapshot.file_id
        show_notice(run(service.scan_upload(snapshot.getvalue())))

with upload_tab:
    uploaded = st.file_uploader("Upload a QR code image", type=['png', 'jpg', 'jpeg', 'webp'])
    if uploaded is not None and st.session_state.get('last_upload') != uploaded.file_id:
        st.session_state['last_upload'] = uploaded.file_id
        show_notice(run(service.scan_upload(uploaded.getvalue())))

with search_tab:
    query = st.text_input("Search by name", placeholder="At least 2 characters")
    if query:
        hits = run(service.search(query))
        for person_type, error in service.directory.errors.items():
            st.error(f"Error searching {person_type.value}s: {error}")
        if not hits:
            st.info("No matches.")
        for index, hit in enumerate(hits):
            if st.button(str(hit), key=f"hit-{hit.type.value}-{hit.id}-{index}", use_container_width=True):
                run(service.select_search_hit(hit))

st.markdown("---")

# Result
resolution = service.resolver.current
actions = service.actions

if resolution is None:
    st.info("Scan a QR code, upload an image or search by name to look someone up.")
    st.stop()

if resolution.status == ResolutionStatus.LOADING:
    st.info(f"Loading {resolution.display_name}...")
    st.stop()

if resolution.status == ResolutionStatus.FAILED:
    st.error(f"❌ Failed to load {resolution.display_name}: {resolution.error}")
    if st.button("🔄 Retry"):
        run(service.resolver.refetch())
        st.rerun()

elif resolution.status == ResolutionStatus.ABSENT:
    st.warning(f"⚠️ {resolution.payload.type.label} not found (ID {resolution.payload.id}).")

else:
    profile = resolution.profile
    header_col, image_col = st.columns([4, 1])
    with header_col:
        st.subheader(f"{profile.full_name}")
        st.caption(f"{profile.type.label} #{profile.id}")
    with image_col:
        if profile.image:
            st.image(profile.image, width=96)
        else:
            st.markdown(f"### {profile.initials}")

    grid = st.columns(4)
    for col, (label, value) in zip(grid, profile.summary().items()):
        col.metric(label, value)

    with st.expander("📋 View details"):
        details = actions.view()
        for section, values in details.sections.items():
            present = {label: value for label, value in values.items() if value not in (None, "")}
            if present:
                st.markdown(f"**{section}**")
                for label, value in present.items():
                    st.write(f"{label}: {value}")

    with st.expander("✏️ Edit profile"):
        with st.form("edit_form"):
            seed = actions.edit()
            changes = {}
            for name, current in seed.items():
                label = name.replace('_', ' ').capitalize()
                value = st.text_input(label, value="" if current is None else str(current))
                if value != ("" if current is None else str(current)):
                    changes[name] = int(value) if isinstance(current, int) and value.isdigit() else (value or None)
            if st.form_submit_button("Save changes", use_container_width=True):
                try:
                    run(actions.submit_edit(changes))
                    st.success("✅ Profile updated")
                    st.rerun()
                except ProfileStoreError as e:
                    st.error(f"❌ {e}")

    # Files are only written when asked for; reruns reuse the same export
    if st.button("📄 Export PDF"):
        st.session_state.pdf_for = resolution.payload
    if st.session_state.get("pdf_for") == resolution.payload:
        try:
            pdf_path = Path(actions.export_pdf())
            st.download_button(
                "⬇️ Download PDF",
                data=pdf_path.read_bytes(),
                file_name=pdf_path.name,
                mime="application/pdf",
            )
        except ActionUnavailableError as e:
            st.warning(str(e))

# QR works from the payload, so it is offered for absent records too
if resolution.status != ResolutionStatus.FAILED:
    if st.button("🔳 Generate QR code"):
        payload_text, qr_path = actions.regenerate_qr()
        st.session_state.qr_for = (resolution.payload, payload_text, str(qr_path))
    generated = st.session_state.get("qr_for")
    if generated and generated[0] == resolution.payload and Path(generated[2]).exists():
        _, payload_text, qr_path = generated
        st.download_button(
            "⬇️ Download QR code",
            data=Path(qr_path).read_bytes(),
            file_name=Path(qr_path).name,
            mime="image/png",
        )
        st.caption(f"Payload: `{payload_text}`")

if st.button("🧹 Clear"):
    run(actions.reset())
    st.session_state.pdf_for = None
    st.session_state.qr_for = None
    st.rerun()

# Footer
st.markdown("---")
st.markdown(
    f"""
    <div style='text-align: center; color: gray;'>
        <small>{CHURCH_NAME} | Ministry QR Scanner</small>
    </div>
    """,
    unsafe_allow_html=True
)
