from pydantic import BaseModel


class UploadResponse(BaseModel):
    message: str
    urls: list[str]
