from app.models.customer import Customer
from app.models.question import Question
from app.models.response import Answer, SurveyResponse

__all__ = ["Answer", "Customer", "Question", "SurveyResponse"]
