from pydantic import AliasChoices, BaseModel, ConfigDict, Field, RootModel, ValidationInfo, field_validator
from typing import Any, List, Literal, Optional, Union
from enum import Enum


OPTION_COUNT = 4
MAX_QUESTIONS = 20
NO_ANSWER = "No answer"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


# ── Request ──────────────────────────────────────────────────────────────────

class EncodedDocument(BaseModel):
    """An uploaded file ready to be embedded in a prompt."""
    model_config = ConfigDict(frozen=True)

    name: str
    media_type: str
    payload: str = Field(..., description="Standard base64 encoding of the raw bytes")


class GenerationRequest(BaseModel):
    """Everything needed to ask the model for one quiz."""
    model_config = ConfigDict(frozen=True)

    document: EncodedDocument
    question_count: int = Field(..., ge=1, le=MAX_QUESTIONS, description="Exact number of questions")
    difficulty: Difficulty = Field(default=Difficulty.medium)

    @field_validator("difficulty", mode="before")
    @classmethod
    def default_unknown_difficulty(cls, v: Any) -> Any:
        if isinstance(v, Difficulty):
            return v
        if isinstance(v, str) and v.lower() in Difficulty.__members__:
            return v.lower()
        return Difficulty.medium


# ── Quiz ─────────────────────────────────────────────────────────────────────

class Question(BaseModel):
    """A multiple-choice question with exactly four options."""
    model_config = ConfigDict(frozen=True)

    question: str
    options: List[str] = Field(..., min_length=OPTION_COUNT, max_length=OPTION_COUNT)
    answer: str

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("question text is empty")
        return v

    @field_validator("answer")
    @classmethod
    def answer_is_an_option(cls, v: str, info: ValidationInfo) -> str:
        options = info.data.get("options")
        # options already failed on its own; that error is reported instead
        if options is not None and v not in options:
            raise ValueError(f"answer {v!r} is not one of the options")
        return v


class Quiz(RootModel[List[Question]]):
    """A complete, validated quiz. Never partially valid."""
    model_config = ConfigDict(frozen=True)

    def __len__(self) -> int:
        return len(self.root)

    def __iter__(self):
        return iter(self.root)

    def __getitem__(self, index: int) -> Question:
        return self.root[index]


# ── Review ───────────────────────────────────────────────────────────────────

class ReviewRequest(BaseModel):
    """Answered quiz submitted for a personalised review."""
    model_config = ConfigDict(frozen=True)

    questions: List[Question]
    user_answers: List[Optional[str]] = Field(
        default_factory=list,
        validate_default=True,
        validation_alias=AliasChoices("user_answers", "userAnswers"),
    )

    @field_validator("user_answers")
    @classmethod
    def pad_missing_answers(cls, v: List[Optional[str]], info: ValidationInfo) -> List[str]:
        questions = info.data.get("questions")
        if questions is None:
            return v
        if len(v) > len(questions):
            raise ValueError(
                f"Got {len(v)} answers for {len(questions)} questions"
            )
        answers = [a if a and a.strip() else NO_ANSWER for a in v]
        return answers + [NO_ANSWER] * (len(questions) - len(answers))


class Review(BaseModel):
    """Free-text feedback produced by the review pass."""
    model_config = ConfigDict(frozen=True)

    review: str
    recommendations: str

    @field_validator("review", "recommendations")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


FALLBACK_REVIEW = Review(
    review="Could not parse OpenAI's response.",
    recommendations="Try again.",
)


class AnswerScore(BaseModel):
    """Local scoring of a submitted quiz; no model call involved."""
    correct: int
    total: int
    missed: List[int] = Field(default_factory=list, description="Indices of missed questions")
    missed_topics: List[str] = Field(default_factory=list)
    topics_left: List[str] = Field(default_factory=list)


# ── Pipeline results ─────────────────────────────────────────────────────────

FailureStage = Literal["transport", "extraction", "cardinality-mismatch", "schema-mismatch"]


class PipelineFailure(BaseModel):
    """Why a generation run ended without a quiz."""
    model_config = ConfigDict(frozen=True)

    stage: FailureStage
    message: str
    expected: Optional[int] = None
    actual: Optional[int] = None
    index: Optional[int] = None
    field: Optional[str] = None


class QuizPartial(BaseModel):
    """Transient streaming state: a growing prefix of the eventual quiz."""
    model_config = ConfigDict(frozen=True)

    type: Literal["partial"] = "partial"
    questions: List[Question]
    expected: int


class QuizValidated(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["validated"] = "validated"
    quiz: Quiz


class QuizFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["failed"] = "failed"
    failure: PipelineFailure


QuizEvent = Union[QuizPartial, QuizValidated, QuizFailed]
