# error types shared by the services and the api layer
from typing import Optional


class ResearchCoachError(Exception):
    """Base error; carries the http status the api layer should answer with"""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# missing or blank required field in the request body
class ClientInputError(ResearchCoachError):
    status_code = 400
    default_message = "Missing data"


class MethodNotAllowedError(ResearchCoachError):
    status_code = 405
    default_message = "Method not allowed"


class TopicNotFoundError(ResearchCoachError):
    status_code = 404
    default_message = "Topic not found"


# a credential or environment value the call needs is absent
class ServerConfigurationError(ResearchCoachError):
    status_code = 500
    default_message = "Server is not configured"


# upstream call failed or answered with a non-success status
class ProviderError(ResearchCoachError):
    status_code = 500
    default_message = "Server error talking to the AI provider"


# a stored topic row could not be read back
class StorageError(ResearchCoachError):
    status_code = 500
    default_message = "Stored topic could not be read"
