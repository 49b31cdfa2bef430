# app/routers/pages.py
"""
Browser pages, served as JSON view payloads.

Every page records the visit on the browser's auth provider (which
re-resolves the session), then applies the page's guard: spinner while
the first session check is running, a 303 redirect when the guard or
the session listener asked for one, the view otherwise.
"""

import uuid
from typing import Iterable

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from app.core.browser_session import BrowserSession, get_browser_session, redirect_to, render
from app.database import get_session
from app.repositories.curso_repo import CursoRepository
from app.repositories.profile_repo import ProfileRepository
from app.routers.courses import service as course_service
from app.routers.users import service as user_service
from app.schemas.profile import ProfileRead
from app.session.guard import GuardOutcome, enforce, evaluate_guard, evaluate_role_guard
from app.session.navigation import LANDING_PATH, PENDING_APPROVAL_PATH
from app.session.roles import INSTRUCTOR_ROLES

router = APIRouter(tags=["Pages"])

curso_repo = CursoRepository()
profile_repo = ProfileRepository()

SPINNER_RETRY_SECONDS = 1


def _user_payload(browser: BrowserSession) -> dict | None:
    user = browser.provider.user
    return user.model_dump(mode="json") if user else None


def _spinner(browser: BrowserSession) -> Response:
    response = render(browser, {"view": "spinner"})
    response.headers["Refresh"] = str(SPINNER_RETRY_SECONDS)
    return response


async def _open_guarded(
    browser: BrowserSession,
    path: str,
    roles: Iterable[str] | None = None,
) -> Response | None:
    """
    Visit a protected page and apply its guard.

    Returns:
        The spinner or redirect response, or None when the page may render.
    """
    provider = browser.provider
    state = await provider.visit(path)
    decision = evaluate_role_guard(state, roles) if roles is not None else evaluate_guard(state)
    enforce(decision, provider.navigator)

    if decision.outcome is GuardOutcome.SPINNER:
        return _spinner(browser)
    location = provider.take_redirect()
    if location:
        return redirect_to(browser, location)
    return None


# -------- Public pages --------


@router.get("/")
async def landing(browser: BrowserSession = Depends(get_browser_session)):
    """
    Landing page (login/register forms).

    A signed-in visitor is forwarded to /dashboard or /pending-approval.
    """
    await browser.provider.visit(LANDING_PATH)
    location = browser.provider.take_redirect()
    if location:
        return redirect_to(browser, location)
    return render(browser, {"view": "landing", "user": _user_payload(browser)})


@router.get("/pending-approval")
async def pending_approval(browser: BrowserSession = Depends(get_browser_session)):
    """
    Waiting room for accounts not yet approved.

    Anonymous visitors go back to "/"; approved accounts are forwarded
    to /dashboard as soon as the session sees the approval.
    """
    provider = browser.provider
    state = await provider.visit(PENDING_APPROVAL_PATH)
    if state.loading:
        return _spinner(browser)
    if state.user is None:
        return redirect_to(browser, LANDING_PATH)

    location = provider.take_redirect()
    if location:
        return redirect_to(browser, location)
    return render(browser, {"view": "pending-approval", "user": _user_payload(browser)})


@router.get("/forgot-password")
async def forgot_password_page(browser: BrowserSession = Depends(get_browser_session)):
    return render(browser, {"view": "forgot-password"})


@router.get("/reset-password")
async def reset_password_page(code: str | None = None, browser: BrowserSession = Depends(get_browser_session)):
    """
    Target of the reset email link.

    Exchanges the recovery code for a session; `ready` tells the client
    whether the new password form can be submitted.
    """
    provider = browser.provider
    if code:
        await provider.credentials.complete_federated_login(code)
        await provider.settle()
        provider.take_redirect()
    session = await provider.listener.current_session()
    return render(browser, {"view": "reset-password", "ready": session is not None})


# -------- Dashboard --------


@router.get("/dashboard")
async def dashboard(
    browser: BrowserSession = Depends(get_browser_session),
    session: Session = Depends(get_session),
):
    """
    Role-specific dashboard.

    - Estudiante: published courses with instructor
    - Barbero / Administrador: own courses
    """
    blocked = await _open_guarded(browser, "/dashboard")
    if blocked is not None:
        return blocked

    user = browser.provider.user
    if user.role in INSTRUCTOR_ROLES:
        rows = await run_in_threadpool(curso_repo.list_by_barbero, session, uuid.UUID(user.id))
        courses = [course_service.to_read(c).model_dump(mode="json") for c in rows]
        view = "instructor-dashboard"
    else:
        listing = await run_in_threadpool(course_service.list_published, session)
        courses = [c.model_dump(mode="json") for c in listing]
        view = "student-dashboard"

    return render(browser, {"view": view, "user": _user_payload(browser), "courses": courses})


@router.get("/dashboard/admin")
async def admin_dashboard(
    browser: BrowserSession = Depends(get_browser_session),
    session: Session = Depends(get_session),
):
    """Studio overview for staff (Barbero / Administrador): users, student count and every course."""
    blocked = await _open_guarded(browser, "/dashboard/admin", roles=INSTRUCTOR_ROLES)
    if blocked is not None:
        return blocked

    profiles = await run_in_threadpool(user_service.list_profiles, session)
    users = [ProfileRead.model_validate(p).model_dump(mode="json") for p in profiles]
    courses = await run_in_threadpool(course_service.list_all, session)

    return render(
        browser,
        {
            "view": "admin-dashboard",
            "user": _user_payload(browser),
            "users": users,
            "student_count": sum(1 for u in users if u["rol"] == "Estudiante"),
            "courses": [c.model_dump(mode="json") for c in courses],
        },
    )


@router.get("/dashboard/users")
async def users_page(
    browser: BrowserSession = Depends(get_browser_session),
    session: Session = Depends(get_session),
):
    """User management table (Barbero / Administrador)."""
    blocked = await _open_guarded(browser, "/dashboard/users", roles=INSTRUCTOR_ROLES)
    if blocked is not None:
        return blocked

    profiles = await run_in_threadpool(user_service.list_profiles, session)
    return render(
        browser,
        {
            "view": "users",
            "user": _user_payload(browser),
            "users": [ProfileRead.model_validate(p).model_dump(mode="json") for p in profiles],
        },
    )


@router.get("/dashboard/courses/{curso_id}")
async def course_page(
    curso_id: uuid.UUID,
    browser: BrowserSession = Depends(get_browser_session),
    session: Session = Depends(get_session),
):
    """Course detail (video, material, instructor)."""
    blocked = await _open_guarded(browser, f"/dashboard/courses/{curso_id}")
    if blocked is not None:
        return blocked

    user = browser.provider.user
    curso = await run_in_threadpool(
        course_service.get_visible_course, session, curso_id, uuid.UUID(user.id), user.role
    )
    barbero = await run_in_threadpool(profile_repo.get_by_id, session, curso.barbero_id)

    return render(
        browser,
        {
            "view": "course",
            "user": _user_payload(browser),
            "course": course_service.to_listing(curso, barbero).model_dump(mode="json"),
            "can_manage": user.role == "Administrador" or str(curso.barbero_id) == user.id,
        },
    )
