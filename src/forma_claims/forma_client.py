"""HTTP client for the Forma REST API."""

import json
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from types import TracebackType
from typing import TYPE_CHECKING, Any

import httpx

from forma_claims.config import DEFAULT_API_BASE_URL, DEFAULT_HTTP_TIMEOUT
from forma_claims.errors import AuthTokenInvalidError, HttpStatusError, UnexpectedResponseError

if TYPE_CHECKING:
    from forma_claims.submission import ClaimPayload

logger = logging.getLogger(__name__)

PROFILE_PATH = "/client/api/v3/settings/profile"
CLAIMS_PATH = "/client/api/v2/claims"
MAGIC_LINK_PATH = "/client/auth/v2/login/magic"

IS_MOBILE = {"is_mobile": "true"}
AUTH_ERROR_STATUSES = frozenset({401, 403})


@dataclass(frozen=True)
class ClaimSummary:
    id: str
    status: str
    reimbursement_status: str
    payout_status: str | None
    amount: float
    category: str
    subcategory: str
    reimbursement_vendor: str
    date_processed: str | None
    note: str
    employee_note: str


class FormaClient:
    """Thin synchronous wrapper around the Forma endpoints used by the CLI.

    No call is retried. A status other than the expected one raises
    HttpStatusError (AuthTokenInvalidError for 401/403), and a success status
    whose body reports `success: false` raises UnexpectedResponseError.
    """

    def __init__(
        self,
        access_token: str | None = None,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"x-auth-token": access_token} if access_token else {}
        self._http = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def __enter__(self) -> "FormaClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def get_profile(self) -> dict[str, Any]:
        """Fetch the employee profile holding wallets and the company category tree."""
        logger.info("Fetching Forma profile")
        response = self._http.get(PROFILE_PATH, params=IS_MOBILE)
        _expect_status(response, 200, "fetching profile")
        profile: dict[str, Any] = response.json()
        return profile

    def list_claims(self, status: str | None = None) -> list[ClaimSummary]:
        params = {"page": "0"}
        if status:
            params["status"] = status

        logger.info("Listing claims: status=%s", status)
        response = self._http.get(CLAIMS_PATH, params=params)
        _expect_status(response, 200, "fetching claims")

        summaries: list[ClaimSummary] = []
        for claim in response.json()["data"]["claims"]:
            reimbursement = claim["reimbursement"]
            summaries.append(
                ClaimSummary(
                    id=str(claim["id"]),
                    status=str(claim["status"]),
                    reimbursement_status=str(reimbursement["status"]),
                    payout_status=reimbursement.get("payout_status"),
                    amount=float(reimbursement["amount"]),
                    category=str(reimbursement["category"]),
                    subcategory=str(reimbursement["subcategory"]),
                    reimbursement_vendor=str(reimbursement["reimbursement_vendor"]),
                    date_processed=reimbursement.get("date_processed"),
                    note=str(reimbursement.get("note") or ""),
                    employee_note=str(reimbursement.get("employee_note") or ""),
                )
            )
        return summaries

    def create_claim(self, payload: "ClaimPayload") -> None:
        """POST a claim as multipart form data, one `file[]` part per receipt."""
        logger.info(
            "Submitting claim: amount=%s, vendor=%s, receipts=%d",
            payload.fields.get("amount"),
            payload.fields.get("reimbursement_vendor"),
            len(payload.receipts),
        )
        with ExitStack() as stack:
            files = [
                ("file[]", (receipt.filename, stack.enter_context(open(receipt.path, "rb")), receipt.content_type))
                for receipt in payload.receipts
            ]
            response = self._http.post(CLAIMS_PATH, params=IS_MOBILE, data=payload.fields, files=files)

        _expect_status(response, 201, "submitting claim")
        _expect_success(response, "submitting claim")

    def request_magic_link(self, email: str) -> None:
        logger.info("Requesting magic link for %s", email)
        response = self._http.post(MAGIC_LINK_PATH, params=IS_MOBILE, json={"email": email})
        _expect_status(response, 200, "requesting magic link")
        _expect_success(response, "requesting magic link")

    def exchange_magic_link(self, link_id: str, link_token: str) -> str:
        """Trade the `id`/`tk` pair from a magic link for an access token."""
        logger.info("Exchanging magic link for access token")
        params = {"id": link_id, "tk": link_token, "return_token": "true", **IS_MOBILE}
        response = self._http.get(MAGIC_LINK_PATH, params=params)
        _expect_status(response, 200, "exchanging magic link for token")
        body = _expect_success(response, "exchanging magic link for token")
        return str(body["data"]["auth_token"])


def _expect_status(response: httpx.Response, expected: int, action: str) -> None:
    if response.status_code == expected:
        return

    detail = _error_detail(response)
    logger.warning("Forma returned %d while %s: %s", response.status_code, action, detail)
    if response.status_code in AUTH_ERROR_STATUSES:
        raise AuthTokenInvalidError(action, response.status_code, response.reason_phrase, detail)
    raise HttpStatusError(action, response.status_code, response.reason_phrase, detail)


def _expect_success(response: httpx.Response, action: str) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as e:
        raise UnexpectedResponseError(
            f"Something went wrong while {action}. Received a `{response.status_code} {response.reason_phrase}` "
            f"response that wasn't valid JSON: {response.text}"
        ) from e
    if not isinstance(body, dict) or not body.get("success"):
        raise UnexpectedResponseError(
            f"Something went wrong while {action}. Received a `{response.status_code} {response.reason_phrase}` "
            f"response, but the response body indicated that the request was not successful: {json.dumps(body)}"
        )
    return body


def _error_detail(response: httpx.Response) -> str | None:
    """Pull the server's error message out of a failed response, if it sent one."""
    try:
        body = response.json()
    except ValueError:
        return response.text or None

    if isinstance(body, dict):
        errors = body.get("errors")
        message = body.get("message") or (errors.get("message") if isinstance(errors, dict) else None)
        if message:
            return str(message)
    return json.dumps(body)
