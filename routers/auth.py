from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

import config
from identity import IdentityGateway
from loader import SessionContext, StateLoader, landing_for
from schemas import FederatedLogin, LoginData, Notice, RoleSelection, SignUpData
from store import DocumentStore, StoreDep

router = APIRouter(tags=["auth"])

SESSION_COOKIE = "session"


@dataclass
class SessionState:
    """Everything a request needs: the store, the identity gateway and the loaded state."""

    store: DocumentStore
    identity: IdentityGateway
    ctx: SessionContext


def get_session_state(
    store: StoreDep,
    session_token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
) -> SessionState:
    """
    Resolve the 'session' cookie. The loader observes the gateway, so the
    context is filled for the identity's role before the route runs.
    """
    gateway = IdentityGateway(store)
    ctx = SessionContext()
    gateway.observe_session(StateLoader(store).bind(ctx))
    gateway.resolve_session(session_token)
    return SessionState(store=store, identity=gateway, ctx=ctx)


SessionStateDep = Annotated[SessionState, Depends(get_session_state)]


def require_auth(state: SessionStateDep) -> SessionState:
    if state.ctx.identity is None:
        raise HTTPException(status_code=401, detail="Not logged in")
    return state


CurrentStateDep = Annotated[SessionState, Depends(require_auth)]


def _set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=config.SESSION_MAX_AGE,
    )


def _is_json(request: Request) -> bool:
    return request.headers.get("content-type", "").startswith("application/json")


async def _read_payload(request: Request) -> dict:
    """Accept either JSON (API clients) or form-data (HTML forms)."""
    if _is_json(request):
        return await request.json()
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


def _signed_in_response(request: Request, state: SessionState, identity, notice: Notice, **extra):
    token = state.identity.issue_session_token(identity)
    redirect = landing_for(identity)

    if _is_json(request):
        resp = JSONResponse(
            {
                "message": notice.text,
                "notice": notice.model_dump(),
                "user": identity.model_dump(by_alias=True),
                "redirect": redirect,
                **extra,
            }
        )
    else:
        resp = RedirectResponse(url=redirect, status_code=303)

    _set_session_cookie(resp, token)
    return resp


@router.get("/login")
def login_page(state: SessionStateDep):
    if state.ctx.identity is not None:
        return RedirectResponse(url=landing_for(state.ctx.identity), status_code=303)
    return {"message": "Please sign in", "federated": True}


@router.post("/register")
async def register(request: Request, state: SessionStateDep):
    """
    Create an account with email + password and sign it in.
    Accepts either JSON (API/Swagger) or form-data (from HTML form).
    """
    data = SignUpData(**await _read_payload(request))
    identity = state.identity.sign_up(data)
    return _signed_in_response(
        request, state, identity, Notice(text="Account created successfully!")
    )


@router.post("/login")
async def login(request: Request, state: SessionStateDep):
    """
    Log in with email + password and set a signed cookie.
    The role comes from the stored profile.
    """
    data = LoginData(**await _read_payload(request))
    identity = state.identity.sign_in_password(data)
    return _signed_in_response(request, state, identity, Notice(text="Login successful!"))


@router.post("/login/federated")
def federated_login(request: Request, payload: FederatedLogin, state: SessionStateDep):
    """
    Finish a federated sign-in with the broker's signed assertion, or report
    the popup's failure code. New identities must pick a role next.
    """
    identity, is_new_identity = state.identity.sign_in_federated(payload)
    if is_new_identity:
        notice = Notice(kind="info", text="Please select your primary role to continue")
    else:
        notice = Notice(text="Welcome back!")
    return _signed_in_response(request, state, identity, notice, isNewUser=is_new_identity)


@router.post("/me/role")
def select_role(selection: RoleSelection, state: CurrentStateDep):
    identity = state.identity.select_role(state.ctx.identity, selection.role)
    return {
        "notice": Notice(text="Role selected successfully!").model_dump(),
        "user": identity.model_dump(by_alias=True),
        "redirect": landing_for(identity),
    }


@router.post("/logout")
def logout(state: SessionStateDep):
    """
    Clear the session cookie and redirect to home.
    """
    state.identity.sign_out()
    response = RedirectResponse(url="/", status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/me")
def read_me(state: CurrentStateDep):
    """
    Get info about the currently logged-in user.
    """
    return state.ctx.identity.model_dump(by_alias=True)
