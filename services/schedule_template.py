"""Weekly lesson template installed for every new user."""

from typing import Sequence, Tuple

# (day name, subjects in lesson order). Tuesday and Sunday carry no lessons.
DEFAULT_TEMPLATE: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Monday", (
        "Русский",
        "История",
        "Геометрия",
        "Английский",
        "ИЗО",
        "Литература",
    )),
    ("Wednesday", (
        "Физика",
        "Информатика",
        "Физкультура",
        "Алгебра",
        "Английский",
        "Общество",
    )),
    ("Thursday", (
        "География",
        "Алгебра",
        "Биология",
        "Вероятность и статистика",
        "История",
        "Русский",
        "Литература",
        "Россия мои горизонты",
    )),
    ("Friday", (
        "Труд",
        "Физкультура",
        "Алгебра",
        "Геометрия",
        "Английский",
    )),
    ("Saturday", (
        "Физика",
        "Алгебра",
        "Русский",
        "Английский",
        "Русский",
        "География",
        "Музыка",
    )),
)

ScheduleTemplate = Sequence[Tuple[str, Sequence[str]]]


def normalize_subject(name: str) -> str:
    """Key used to compare subject names: trimmed and case-folded."""
    return " ".join(name.split()).casefold()
