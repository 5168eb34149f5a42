import logging
from typing import Any, Dict, Optional

from infrastructure.gateway.api_client import ApiClient, ApiError, UnauthorizedError

log = logging.getLogger(__name__)


class BackendGateway:
    """Auth endpoints of the community app backend."""

    def __init__(self, client: ApiClient):
        self.client = client

    def _post_reporting_status(self, path: str, body: Dict[str, Any], **kwargs) -> Dict[str, Any]:
        # Signup and legacy login report pending/rejected accounts as 4xx with a JSON body.
        try:
            return self.client.post(path, json=body, **kwargs)
        except UnauthorizedError:
            raise
        except ApiError as e:
            if e.payload:
                return e.payload
            raise

    def signup(self, data: Dict[str, Any]) -> Dict[str, Any]:
        body = {
            "name": data.get("name"),
            "email": data.get("email"),
            "password": data.get("password"),
            "phone": data.get("phone"),
            "memberId": data.get("member_id") or data.get("memberId"),
        }
        return self._post_reporting_status("/auth/signup", body)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        # A 401 here is a wrong legacy password, not a revoked session of whoever is signed in.
        return self._post_reporting_status(
            "/auth/login", {"email": email, "password": password}, purge_on_unauthorized=False
        )

    def get_me(self) -> Dict[str, Any]:
        return self.client.get("/auth/me")

    def update_profile(self, member_id: Optional[str] = None, phone: Optional[str] = None) -> Dict[str, Any]:
        body = {}
        if member_id is not None:
            body["memberId"] = member_id
        if phone is not None:
            body["phone"] = phone
        return self.client.put("/auth/profile", json=body)

    def forgot_password(self, email: str) -> Dict[str, Any]:
        return self.client.post("/auth/forgot-password", json={"email": email})

    def reset_password(self, reset_token: str, password: str, confirm_password: str) -> Dict[str, Any]:
        return self.client.post(
            f"/auth/reset-password/{reset_token}",
            json={"password": password, "confirmPassword": confirm_password},
        )

    def logout(self) -> Dict[str, Any]:
        return self.client.post("/auth/logout")
