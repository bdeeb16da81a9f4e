from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from schema.study_plans import CamelModel


class GeneratedSchedule(BaseModel):
    schedule_text: str
    summary: Optional[str] = None


class QuizQuestion(CamelModel):
    id: str
    question_text: str
    options: List[str] = Field(min_length=3, max_length=5)
    correct_option_index: int = Field(ge=0)

    @model_validator(mode="after")
    def check_answer_index(self):
        if self.correct_option_index >= len(self.options):
            raise ValueError("correct option index is out of range")
        return self


class TaskQuizOut(CamelModel):
    task_id: str
    questions: List[QuizQuestion]
