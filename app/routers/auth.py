# app/routers/auth.py
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.core.browser_session import BrowserSession, get_browser_session, redirect_to, render
from app.schemas.auth import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest
from app.session.credentials import auth_error_location
from app.session.navigation import DASHBOARD_PATH, LANDING_PATH

router = APIRouter(prefix="/auth", tags=["Auth"])


async def _after_action(browser: BrowserSession, fallback: dict) -> Response:
    """
    Finish a credential operation: let pending auth events settle, then
    follow the navigation it requested (303) or return `fallback`.
    """
    provider = browser.provider
    await provider.settle()
    location = provider.take_redirect()
    if location:
        return redirect_to(browser, location)
    return render(browser, fallback)


@router.post("/login")
async def login(payload: LoginRequest, browser: BrowserSession = Depends(get_browser_session)):
    """
    Email/password sign-in.

    Redirects to /dashboard (approved or Barbero), /pending-approval, or
    /auth/error when the profile is missing. A rejected sign-in returns
    400 with the identity service's message.
    """
    user = await browser.provider.login(payload.email, payload.password)
    return await _after_action(browser, {"user": user.model_dump(mode="json") if user else None})


@router.post("/register")
async def register(payload: RegisterRequest, browser: BrowserSession = Depends(get_browser_session)):
    """
    Create the account and its profile (Estudiante, pending approval).

    Redirects to /pending-approval.
    """
    principal = await browser.provider.register(payload.nombre, payload.email, payload.password)
    return await _after_action(browser, {"id": principal.id, "email": principal.email})


@router.get("/google")
async def login_with_google(browser: BrowserSession = Depends(get_browser_session)):
    """Start Google sign-in: redirect to the provider's consent page."""
    url = await browser.provider.login_with_google()
    return redirect_to(browser, url)


@router.get("/callback")
async def auth_callback(
    code: str | None = None,
    error_description: str | None = None,
    browser: BrowserSession = Depends(get_browser_session),
):
    """
    Return point of the OAuth flow.

    Exchanges the code; the resulting auth event establishes the session.
    Signed in -> /dashboard (the dashboard guard routes pending users),
    otherwise back to "/".
    """
    if error_description:
        return redirect_to(browser, auth_error_location(error_description))

    provider = browser.provider
    if code:
        await provider.credentials.complete_federated_login(code)
    await provider.visit("/auth/callback")
    provider.take_redirect()

    return redirect_to(browser, DASHBOARD_PATH if provider.user is not None else LANDING_PATH)


@router.post("/logout")
async def logout(browser: BrowserSession = Depends(get_browser_session)):
    """Sign out and go back to "/"."""
    await browser.provider.logout()
    return await _after_action(browser, {"user": None})


@router.post("/forgot-password")
async def forgot_password(payload: ForgotPasswordRequest, browser: BrowserSession = Depends(get_browser_session)):
    """Send the password reset email (link back to /reset-password)."""
    await browser.provider.credentials.request_password_reset(payload.email)
    return render(browser, {"message": "Te enviamos un correo con el enlace para restablecer tu contraseña."})


@router.post("/reset-password")
async def reset_password(payload: ResetPasswordRequest, browser: BrowserSession = Depends(get_browser_session)):
    """
    Set the new password for the recovery session, then go to /dashboard.
    """
    await browser.provider.credentials.complete_password_reset(payload.password, payload.confirm_password)
    return await _after_action(browser, {"message": "Contraseña actualizada"})


@router.get("/error")
def auth_error(message: str | None = None):
    """Error page shown when sign-in could not be completed."""
    return {
        "view": "auth-error",
        "message": message or "Ocurrió un error durante la autenticación",
    }
