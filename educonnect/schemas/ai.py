from typing import Literal

from pydantic import BaseModel


class SuggestionRequest(BaseModel):
    message_title: str = ""
    message_content: str = ""
    language: Literal["ja", "vi"] | None = None


class ReplySuggestions(BaseModel):
    replies: list[str]
    reactions: list[str]


class SuggestionResponse(BaseModel):
    suggestions: ReplySuggestions
