from pathlib import Path

from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def question_input_type(question) -> str:
    if question.type == "long_text":
        return "textarea"
    if question.type == "single_choice":
        return "radio"
    if question.type == "multiple_choice":
        return "checkbox"
    if question.type == "rating":
        return "rating"
    return "text"


templates.env.globals["question_input_type"] = question_input_type
