"""Requêtes de crawl: target-request (pagination) et extraction-request (détail)."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from jobharvest.core.exceptions import RequestValidationError
from jobharvest.services.delegator.models import Tool, ToolTarget

# URL factice des target-requests: la target construit elle-même ses URLs
PLACEHOLDER_URL = "https://www.placeholder-url.com"


class RequestLabel(str, Enum):
    TARGET_REQUEST = "target-request"
    EXTRACTION_REQUEST = "extraction-request"


class RequestUserData(BaseModel):
    """Payload validé de chaque requête avant de la confier à une target."""
    label: RequestLabel
    target_id: str = Field(min_length=1)
    target: str = Field(min_length=1)
    keywords: List[str]
    max_pages: int = Field(ge=1)


@dataclass
class CrawlRequest:
    url: str
    user_data: Dict[str, Any] = field(default_factory=dict)
    unique_key: str = ""
    # Target propriétaire, fixée à la mise en file
    target_id: str = ""

    def __post_init__(self):
        if not self.unique_key:
            self.unique_key = self.url
        if not self.target_id:
            self.target_id = str(self.user_data.get("target_id") or "")

    @property
    def label(self) -> Optional[str]:
        return self.user_data.get("label")

    @property
    def is_target_request(self) -> bool:
        return self.label == RequestLabel.TARGET_REQUEST.value

    @classmethod
    def for_target(cls, tool: Tool, target: ToolTarget) -> "CrawlRequest":
        """Seed request of a target, with per-target keyword / page overrides applied."""
        keywords, max_pages = tool.settings_for(target)
        return cls(
            url=PLACEHOLDER_URL,
            unique_key=f"{PLACEHOLDER_URL}#{target.target_id}",
            target_id=target.target_id,
            user_data={
                "label": RequestLabel.TARGET_REQUEST.value,
                "target_id": target.target_id,
                "target": target.target,
                "keywords": list(keywords),
                "max_pages": max_pages,
            },
        )

    def derive(
        self,
        url: str,
        label: RequestLabel = RequestLabel.EXTRACTION_REQUEST,
        unique_key: Optional[str] = None,
    ) -> "CrawlRequest":
        """New request for the same target carrying this request's user data."""
        user_data = dict(self.user_data)
        user_data["label"] = label.value
        return CrawlRequest(url=url, user_data=user_data, unique_key=unique_key or url, target_id=self.target_id)


def validate_user_data(request: CrawlRequest) -> RequestUserData:
    """
    Raises:
        RequestValidationError: missing or malformed fields in request.user_data
    """
    try:
        return RequestUserData.model_validate(request.user_data)
    except ValidationError as e:
        raise RequestValidationError(
            f"Invalid request payload for {request.url}: {e.error_count()} validation errors"
        ) from e
