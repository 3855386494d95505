from typing import Any, Dict


class SubmissionError(Exception):
    status_code = 400
    default_message = "Submission rejected."

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class SubmissionValidationError(SubmissionError):
    status_code = 400
    default_message = "Invalid flag submission."


class RateLimitedError(SubmissionError):
    status_code = 429

    def __init__(self, wait_seconds: int) -> None:
        self.wait_seconds = wait_seconds
        super().__init__(f"Rate limited. Try again in {wait_seconds} seconds.")

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "wait_seconds": self.wait_seconds}


class AlreadySolvedError(SubmissionError):
    status_code = 409
    default_message = "You have already solved this challenge."


class ChallengeNotFoundError(SubmissionError):
    status_code = 404
    default_message = "Challenge not found."


class ChallengeInactiveError(ChallengeNotFoundError):
    default_message = "Challenge is not active."


class HintNotFoundError(SubmissionError):
    status_code = 404
    default_message = "Hint not found."


class PersistenceError(SubmissionError):
    status_code = 500
    default_message = "Error submitting flag, please try again later."
