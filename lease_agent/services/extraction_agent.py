"""HTTP client for the external document extraction agent."""

import uuid
from typing import Any, Dict, List, Optional

import httpx
from httpx import HTTPStatusError, RequestError, TimeoutException
from pydantic import BaseModel

from lease_agent.config import settings
from lease_agent.core.exceptions import AgentTimeout, AgentUnavailable
from lease_agent.models.lease_request import LeaseDocument
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)

EXTRACTION_INSTRUCTION = "Extract the attached documents"


class AgentDocument(BaseModel):
    """Document entry of an agent run. ``data`` is the base64 payload or a payload reference."""

    id: str
    name: str
    type: str
    mimetype: Optional[str] = None
    data: Optional[str] = None

    @classmethod
    def from_document(cls, document: LeaseDocument, content: Optional[str] = None) -> "AgentDocument":
        return cls(
            id=document.id,
            name=document.name,
            type=document.type.value,
            mimetype=document.mime_type,
            data=content if content is not None else document.url,
        )


class ExtractionAgentClient:
    """Starts extraction runs on the agent.

    The agent reports results later through the extraction-results endpoint, so a
    successful submit only means the run was accepted. No retries happen here; a
    failed or timed-out submit leaves the workflow where it was.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        assistant_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or settings.agent.url
        self.assistant_id = assistant_id or settings.agent.assistant_id
        self.timeout = timeout if timeout is not None else settings.agent.timeout_seconds
        self.logger = LOGGER

    def build_payload(self, request_id: str, documents: List[AgentDocument]) -> Dict[str, Any]:
        message = {
            "id": str(uuid.uuid4()),
            "role": "human",
            "content": EXTRACTION_INSTRUCTION,
        }
        return {
            "assistant_id": self.assistant_id,
            "input": {
                "requestid": request_id,
                "messages": [message],
                "documents": [doc.model_dump(exclude_none=True) for doc in documents],
            },
            "stream_mode": ["values"],
        }

    async def submit(self, request_id: str, documents: List[AgentDocument]) -> int:
        """Submit documents for extraction and return the agent's HTTP status code.

        Raises:
            AgentTimeout: If the agent does not answer within the timeout
            AgentUnavailable: If the agent cannot be reached or rejects the run
        """
        payload = self.build_payload(request_id, documents)
        self.logger.debug(
            f"Submitting extraction run: {self.url}",
            extra={"request_id": request_id, "documents": len(documents), "timeout": self.timeout},
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
        except TimeoutException as e:
            self.logger.error(
                "Extraction agent timed out",
                exc_info=True,
                extra={"request_id": request_id, "url": self.url},
            )
            raise AgentTimeout(
                f"Extraction agent did not answer within {self.timeout}s", original_error=e
            ) from e
        except HTTPStatusError as e:
            status_code = e.response.status_code
            self.logger.error(
                f"Extraction agent rejected run with status {status_code}",
                exc_info=True,
                extra={"request_id": request_id, "url": self.url, "status_code": status_code},
            )
            raise AgentUnavailable(
                f"Extraction agent call failed with status: {status_code}", original_error=e
            ) from e
        except RequestError as e:
            self.logger.error(
                f"Extraction agent unreachable: {str(e)}",
                exc_info=True,
                extra={"request_id": request_id, "url": self.url},
            )
            raise AgentUnavailable(f"Extraction agent unreachable: {str(e)}", original_error=e) from e

        self.logger.info(
            "Extraction run submitted",
            extra={"request_id": request_id, "documents": len(documents), "status_code": response.status_code},
        )
        return response.status_code
