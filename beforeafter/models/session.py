from dataclasses import dataclass


@dataclass(frozen=True)
class UploadSession:
    """Who is uploading. Passed explicitly to every call that writes to storage."""
    user_id: str
    access_token: str | None = None      # user JWT when acting on the user's behalf
