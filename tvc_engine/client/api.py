"""HTTP client for the grading authority."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx
from pydantic import ValidationError

from tvc_engine.client.config import client_settings
from tvc_engine.core.errors import (
    AlreadySubmitted,
    GradingError,
    InvalidAnswerShape,
    NotFound,
    TransientFailure,
)
from tvc_engine.schemas.grading import (
    GradingResult,
    GradingResultBody,
    MultiSubjectGradingRequest,
    MultiSubjectGradingResult,
    SingleGradingRequest,
)
from tvc_engine.schemas.material import MaterialStudentView, QuestionCountResponse

logger = logging.getLogger(__name__)


def _detail(response: httpx.Response) -> tuple[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None
    if isinstance(body, dict):
        detail = body.get("detail")
        return str(detail) if detail else response.reason_phrase, body
    return response.reason_phrase, body


def _parse_result(data: Any) -> GradingResult | MultiSubjectGradingResult:
    return GradingResultBody.model_validate(data).root


class GradingClient:
    """Talks to ``/grading`` and ``/materials`` with the student's bearer token.

    Failures come back as the grading error taxonomy: transport errors,
    timeouts and 5xx responses become :class:`TransientFailure`.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = client_settings.GRADING_API_URL,
        timeout: float = client_settings.GRADING_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Grading service unreachable", extra={"url": url, "error": str(exc)})
            raise TransientFailure(f"Grading service unreachable: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        message, body = _detail(response)
        code = response.status_code
        if code == 404:
            raise NotFound(message)
        if code in (400, 422):
            raise InvalidAnswerShape(message)
        if code == 409:
            result = None
            if isinstance(body, dict) and body.get("result"):
                try:
                    result = _parse_result(body["result"])
                except ValidationError:
                    logger.warning("Unparseable result on 409", extra={"body": body})
            raise AlreadySubmitted(message, result=result)
        if code >= 500:
            raise TransientFailure(message)
        raise GradingError(message)

    async def verify(
        self, request: SingleGradingRequest | MultiSubjectGradingRequest
    ) -> GradingResult | MultiSubjectGradingResult:
        response = await self._request(
            "POST", "/grading/verify", json=request.model_dump(mode="json", by_alias=True)
        )
        self._raise_for_status(response)
        try:
            return _parse_result(response.json())
        except (ValueError, ValidationError) as exc:
            raise TransientFailure("Malformed grading response") from exc

    async def question_count(self, material_id: uuid.UUID | str) -> int:
        response = await self._request("GET", f"/materials/{material_id}/question-count")
        self._raise_for_status(response)
        return QuestionCountResponse.model_validate(response.json()).question_count

    async def get_material(self, material_id: uuid.UUID | str) -> MaterialStudentView:
        response = await self._request("GET", f"/materials/{material_id}")
        self._raise_for_status(response)
        return MaterialStudentView.model_validate(response.json())

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GradingClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
