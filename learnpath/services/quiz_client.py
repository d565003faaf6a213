import logging

import httpx
from pydantic import ValidationError

from learnpath.core.config import settings
from learnpath.core.exceptions import QuizFetchError
from learnpath.schemas.course_schema import QuizPayload

logger = logging.getLogger(__name__)

# Quiz content lives in a separate service. Navigation never waits on this call.


async def fetch_quiz(section_id: int, client: httpx.AsyncClient | None = None) -> QuizPayload:
    """
    Fetches the quiz content of a section from the quiz service.
    Raises QuizFetchError on transport errors, non-2xx responses or malformed payloads.
    """
    url = f"{settings.QUIZ_SERVICE_URL.rstrip('/')}/sections/{section_id}/quiz"
    logger.debug(f"Fetching quiz for section {section_id} from {url}")
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.QUIZ_FETCH_TIMEOUT_SECONDS) as own_client:
                response = await own_client.get(url)
        else:
            response = await client.get(url)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        raise QuizFetchError(section_id, f"quiz service returned {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise QuizFetchError(section_id, str(e) or e.__class__.__name__) from e

    if isinstance(data, dict):
        data.setdefault("section_id", section_id)
    try:
        payload = QuizPayload.model_validate(data)
    except ValidationError as e:
        raise QuizFetchError(section_id, "malformed quiz payload") from e

    if payload.section_id != section_id:
        raise QuizFetchError(section_id, f"payload belongs to section {payload.section_id}")
    logger.info(f"Quiz for section {section_id} fetched ({len(payload.questions)} questions).")
    return payload
