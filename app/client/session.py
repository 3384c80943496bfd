"""Client-side identity: session tokens, profile calls and auth-state events"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx
import structlog

from app.identity import AuthErrorCode, GENERIC_AUTH_ERROR, auth_error_message
from app.schemas.auth import AuthResult, UserInfo
from app.schemas.profile import ProfileResult

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuthState:
    """What auth-state listeners receive.

    ``user`` holds the auth record fields merged with the stored profile
    when signed in, and is None when signed out.
    """
    is_authenticated: bool = False
    user: Optional[Dict[str, Any]] = None

    @property
    def is_admin(self) -> bool:
        """Reflects the server-side role; the server still checks every write"""
        return bool(self.user) and self.user.get("role") == "admin"


AuthListener = Callable[[AuthState], Union[None, Awaitable[None]]]


class AuthStateStream:
    """Observable auth state.

    A new subscriber is called once right away with the current state, then
    on every change. Listeners may be plain functions or coroutines.
    """

    def __init__(self) -> None:
        self._state = AuthState()
        self._listeners: List[AuthListener] = []

    @property
    def current(self) -> AuthState:
        return self._state

    async def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        await self._deliver(listener, self._state)
        return unsubscribe

    async def emit(self, state: AuthState) -> None:
        self._state = state
        for listener in list(self._listeners):
            await self._deliver(listener, state)

    @staticmethod
    async def _deliver(listener: AuthListener, state: AuthState) -> None:
        result = listener(state)
        if inspect.isawaitable(result):
            await result


def network_failure() -> AuthResult:
    code = AuthErrorCode.NETWORK_REQUEST_FAILED
    return AuthResult(success=False, error=auth_error_message(code), code=code.value)


def _parse_result(response: httpx.Response, model):
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and "success" in data:
        return model.model_validate(data)
    logger.warning("Unexpected response", status_code=response.status_code)
    return model(success=False, error=GENERIC_AUTH_ERROR)


class IdentityGateway:
    """Account operations against the API.

    Every method returns a result object with ``success`` and, on failure,
    ``error``; none of them raise on HTTP or transport errors.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.base_url = str(self._http.base_url)
        self.auth_state = AuthStateStream()
        self.current_user: Optional[UserInfo] = None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def auth_headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Authenticated request; refreshes the access token once on a 401.

        Transport errors propagate as httpx exceptions.
        """
        response = await self._http.request(method, url, headers=self.auth_headers, **kwargs)
        if response.status_code == 401 and self.refresh_token:
            if await self.refresh():
                response = await self._http.request(
                    method, url, headers=self.auth_headers, **kwargs
                )
        return response

    async def refresh(self) -> bool:
        try:
            response = await self._http.post(
                "/auth/refresh", json={"refresh_token": self.refresh_token}
            )
        except httpx.HTTPError:
            logger.warning("Token refresh failed", exc_info=True)
            return False
        if response.status_code != 200:
            return False
        self._start_session(AuthResult.model_validate(response.json()))
        return True

    def _start_session(self, result: AuthResult) -> None:
        self.current_user = result.user
        self.access_token = result.access_token
        self.refresh_token = result.refresh_token

    def _end_session(self) -> None:
        self.current_user = None
        self.access_token = None
        self.refresh_token = None

    async def _post_auth(self, path: str, payload: dict) -> AuthResult:
        try:
            response = await self._http.post(path, json=payload)
        except httpx.HTTPError:
            logger.warning("Auth request failed", path=path, exc_info=True)
            return network_failure()
        return _parse_result(response, AuthResult)

    async def _signed_in(self, result: AuthResult) -> None:
        self._start_session(result)
        user = result.user.model_dump(mode="json")
        profile = await self.get_user_data(str(result.user.uid))
        if profile.success:
            user.update(profile.data.model_dump(mode="json"))
        else:
            logger.warning("Profile unavailable after sign in", uid=user["uid"], error=profile.error)
        await self.auth_state.emit(AuthState(is_authenticated=True, user=user))

    async def sign_up(self, email: str, password: str, name: str) -> AuthResult:
        result = await self._post_auth(
            "/auth/signup", {"email": email, "password": password, "name": name}
        )
        if result.success:
            logger.info("User account created", uid=str(result.user.uid))
            await self._signed_in(result)
        return result

    async def sign_in(self, email: str, password: str) -> AuthResult:
        result = await self._post_auth("/auth/signin", {"email": email, "password": password})
        if result.success:
            logger.info("User signed in", uid=str(result.user.uid))
            await self._signed_in(result)
        return result

    async def sign_out(self) -> AuthResult:
        """The local session always ends, even if the server can't be reached"""
        if self.access_token:
            try:
                await self._http.post("/auth/signout", headers=self.auth_headers)
            except httpx.HTTPError:
                logger.warning("Sign out request failed", exc_info=True)
        self._end_session()
        await self.auth_state.emit(AuthState(is_authenticated=False, user=None))
        return AuthResult(success=True)

    async def reset_password(self, email: str) -> AuthResult:
        return await self._post_auth("/auth/password-reset", {"email": email})

    async def confirm_password_reset(self, token: str, new_password: str) -> AuthResult:
        return await self._post_auth(
            "/auth/password-reset/confirm", {"token": token, "new_password": new_password}
        )

    async def get_user_data(self, uid: str) -> ProfileResult:
        try:
            response = await self.request("GET", f"/users/{uid}")
        except httpx.HTTPError:
            logger.warning("Profile read failed", uid=uid, exc_info=True)
            return ProfileResult(success=False, error=network_failure().error)
        return _parse_result(response, ProfileResult)

    async def update_user_profile(self, uid: str, **updates) -> ProfileResult:
        try:
            response = await self.request("PATCH", f"/users/{uid}", json=updates)
        except httpx.HTTPError:
            logger.warning("Profile update failed", uid=uid, exc_info=True)
            return ProfileResult(success=False, error=network_failure().error)
        return _parse_result(response, ProfileResult)

    async def on_auth_state_changed(self, listener: AuthListener) -> Callable[[], None]:
        """Subscribe to sign-in/sign-out; returns the unsubscribe function"""
        return await self.auth_state.subscribe(listener)
