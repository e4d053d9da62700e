import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import IbadahEvent

TEMPLATE_DIR = Path(__file__).parent / "templates"

PRAYER_NAMES_ARABIC = {
    "fajr": "الفجر",
    "dhuhr": "الظهر",
    "asr": "العصر",
    "maghrib": "المغرب",
    "isha": "العشاء",
}


class MessageRenderer:
    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(),
        )

    def render(self, template_name: str, context: dict) -> str:
        template = self.env.get_template(template_name)
        return template.render(**context).strip()

    def reminder_title(self, event: IbadahEvent, language: str, day: Optional[datetime.date] = None) -> str:
        return self.render("reminder_title.j2", {"event": event, "language": language, "day": day})

    def reminder_body(self, event: IbadahEvent, language: str, day: Optional[datetime.date] = None) -> str:
        return self.render("reminder_body.j2", {"event": event, "language": language, "day": day})

    def takbeer_title(self, language: str) -> str:
        return self.render("takbeer_title.j2", {"language": language})

    def takbeer_body(self, prayer: str, language: str) -> str:
        return self.render("takbeer_body.j2", {
            "language": language,
            "prayer": prayer,
            "prayer_arabic": PRAYER_NAMES_ARABIC.get(prayer, prayer),
        })
