"""
UI layer
Purpose: Streamlit-only glue. Renders the header, the post form and the post
list, collects user intents, and delegates all work to the controllers. Keeps
UI concerns (layout/widget state) separate from business logic so the logic
can be unit tested without Streamlit.
"""

import streamlit as st
from streamlit import runtime
from streamlit.runtime.scriptrunner import get_script_run_ctx

from blogosphere.config import configure_locale, configure_logging, get_settings
from blogosphere.dependencies import BlogApp, create_blog_app, register_app, sweep_apps
from blogosphere.errors import ConfigurationError, ValidationError, WriteError
from blogosphere.models import Post, SessionStatus, TEXT_FIELDS
from blogosphere.utils.timestamps import format_timestamp


# ---------------------------
# Page config
# ---------------------------
st.set_page_config(
    page_title="My Blogosphere",
    page_icon="📝",
    layout="centered",
    initial_sidebar_state="collapsed",
)

settings = get_settings()
configure_logging(settings.log_level)
configure_locale()

# ---------------------------
# Session state init
# ---------------------------
st_session = st.session_state
st_session.setdefault("blog_app", None)
st_session.setdefault("form_error", None)
st_session.setdefault("list_error", None)
st_session.setdefault("needs_full_rerun", False)
for _name in TEXT_FIELDS:
    st_session.setdefault(f"draft_{_name}", "")


# ---------------------------
# Helpers
# ---------------------------
def get_blog_app() -> BlogApp:
    """Build and start the per-session controllers once; stop the page on bad config."""
    app = st_session.get("blog_app")
    if app is not None:
        return app
    try:
        app = create_blog_app(settings)
        app.start()
    except ConfigurationError as e:
        st.error(f"Configuration error: {e}")
        st.stop()
    st_session.blog_app = app
    track_blog_app(app)
    return app


def track_blog_app(app: BlogApp) -> None:
    """Register the app under this browser session and release closed sessions."""
    ctx = get_script_run_ctx()
    if ctx is None or not runtime.exists():
        return
    register_app(ctx.session_id, app)
    sweep_apps(runtime.get_instance().is_active_session)


def sync_draft_widgets() -> None:
    """Copy the controller's Draft into the form widgets."""
    draft = get_blog_app().form.draft
    for name, value in draft.fields().items():
        st_session[f"draft_{name}"] = value


def on_submit():
    """Push widget values into the Draft and submit it."""
    form = get_blog_app().form
    for name in TEXT_FIELDS:
        form.set_field(name, st_session.get(f"draft_{name}", ""))
    try:
        form.submit()
    except (ValidationError, WriteError) as e:
        st_session.form_error = str(e)
        return
    st_session.form_error = None
    sync_draft_widgets()
    st.toast("Post saved.")


def on_cancel():
    """Drop the Draft and leave edit mode."""
    get_blog_app().form.cancel()
    st_session.form_error = None
    sync_draft_widgets()


def on_edit(post: Post):
    """Load a post into the form. The form lives outside the list fragment."""
    get_blog_app().form.start_edit(post)
    st_session.form_error = None
    sync_draft_widgets()
    st_session.needs_full_rerun = True


def on_delete(post_id: str):
    try:
        get_blog_app().form.delete(post_id)
    except (ValidationError, WriteError) as e:
        st_session.list_error = str(e)
        return
    st_session.list_error = None


def on_sign_out():
    form = get_blog_app().form
    form.cancel()
    sync_draft_widgets()
    get_blog_app().session.sign_out()


def render_post(post: Post) -> None:
    """One post card with its Edit/Delete buttons."""
    with st.container(border=True):
        body, actions = st.columns([4, 1])
        with body:
            st.subheader(post.title)
            st.write(post.description)
            st.caption(f"By {post.author} on {format_timestamp(post)}")
        with actions:
            st.button(
                "Edit",
                key=f"edit-{post.id}",
                on_click=on_edit,
                args=(post,),
                use_container_width=True,
            )
            st.button(
                "Delete",
                key=f"delete-{post.id}",
                type="primary",
                on_click=on_delete,
                args=(post.id,),
                use_container_width=True,
            )


@st.fragment(run_every=settings.list_refresh_seconds)
def render_posts():
    """Re-read the list on a timer: snapshots arrive on the listener thread."""
    if st_session.needs_full_rerun:
        st_session.needs_full_rerun = False
        st.rerun()

    app = get_blog_app()
    st.header("Your Posts")

    if st_session.list_error:
        st.error(st_session.list_error)

    loading = app.posts.is_loading()
    error = app.posts.last_error
    posts = app.posts.current_list()

    if error is not None and app.session.session.status != SessionStatus.FAILED:
        st.warning(f"Live updates unavailable: {error}")

    if loading:
        st.info("Loading posts...")
    elif not posts:
        st.info("No posts yet! Create one above.")
    else:
        for post in posts:
            render_post(post)


# ---------------------------
# Page
# ---------------------------
blog_app = get_blog_app()
session = blog_app.session.session
form = blog_app.form

with st.sidebar:
    st.subheader("Session")
    st.caption(f"App: `{settings.app_id}`")
    st.caption(f"Status: **{session.status.value}**")
    st.button(
        "Sign out",
        on_click=on_sign_out,
        disabled=not session.is_authenticated,
    )

st.title("My Blogosphere")
st.caption("A simple and elegant blog management app.")
st.caption(f"User ID: `{session.user_id or ''}`")

if session.status == SessionStatus.FAILED:
    st.warning(f"Could not sign in: {session.error}")

with st.container(border=True):
    st.subheader(form.heading)
    with st.form("post_form", clear_on_submit=False):
        st.text_input("Title", key="draft_title", placeholder="Enter title")
        st.text_input("Author", key="draft_author", placeholder="Your name")
        st.text_area(
            "Description",
            key="draft_description",
            height=120,
            placeholder="Write your blog content here...",
        )
        c1, c2, _ = st.columns([1, 1, 3])
        with c1:
            st.form_submit_button(form.submit_label, type="primary", on_click=on_submit)
        with c2:
            if form.is_editing:
                st.form_submit_button("Cancel", on_click=on_cancel)

    if st_session.form_error:
        st.error(st_session.form_error)

render_posts()
