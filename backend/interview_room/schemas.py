from pydantic import BaseModel, ConfigDict, Field


class AnswerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(default="", alias="sessionId")
    answer: str = ""


class SpeechRequest(BaseModel):
    text: str = ""
    voice: str | None = None


class SessionCreatedResponse(BaseModel):
    sessionId: str
    summary: str
    question: str


class NextQuestionResponse(BaseModel):
    question: str
    done: bool


class AudioAnswerResponse(NextQuestionResponse):
    transcript: str


class RepeatResponse(BaseModel):
    question: str
