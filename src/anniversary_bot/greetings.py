from __future__ import annotations

import hashlib

from anniversary_bot.models import normalize_code

RU_FORMAL = (
    "Уважаемый(ая) {name}, примите наилучшие поздравления с днём рождения! Пусть {age}-й год принесёт успех и здоровье.",
    "{name}, поздравляю с днём рождения! Желаю стабильности, благополучия и гармонии на {age}-м году.",
    "С днём рождения, {name}! Пусть новые достижения и крепкое здоровье сопровождают вас в {age}-й год жизни.",
    "{name}, искренне желаю сил, вдохновения и удачи. С {age}-м днём рождения!",
)

RU_FRIENDLY = (
    "{name}, с днём варенья! Пусть {age}-й год принесёт драйв и классные приключения!",
    "{name}, обнимаю! Пусть {age}-й год будет лёгким и тёплым!",
    "{name}, здоровья, смеха и друзей рядом! С {age}-м днём рождения!",
    "{name}, пусть всё получается! На {age}-й год смелости и ярких побед!",
)

PL_FORMAL = (
    "Szanowny/a {name}, najlepsze życzenia z okazji urodzin! Niech {age}. rok przyniesie sukces i zdrowie.",
    "{name}, gratulacje z okazji urodzin! Życzę pomyślności i harmonii w {age}. roku.",
    "Wszystkiego najlepszego, {name}! Niech {age}. rok będzie pełen osiągnięć.",
    "Gratulacje, {name}! Niech każdy dzień {age}. roku będzie owocny i radosny.",
)

PL_FRIENDLY = (
    "{name}, sto lat! Niech {age}. rok będzie pełen przygód!",
    "Happy B-Day, {name}! Na {age}. rok dużo uśmiechu i super chwil!",
    "{name}, wszystkiego najlepszego! Niech {age}. rok będzie lekki i ciepły!",
    "{name}, niech się udaje! Na {age}. rok odwagi i kolorowych zwycięstw!",
)

EN_FORMAL = (
    "Dear {name}, warmest congratulations on your birthday! May year {age} bring success and good health.",
    "{name}, happy birthday! Wishing you prosperity and harmony as you turn {age}.",
    "Happy birthday, {name}! May {age} be a year filled with achievements.",
    "Congratulations, {name}! May every day after turning {age} be productive and joyful.",
)

EN_FRIENDLY = (
    "{name}, happy b-day! May {age} be full of fun and awesome adventures!",
    "Happy Birthday, {name}! Tons of smiles and great vibes for {age}!",
    "{name}, big hugs! Let {age} be light, warm and full of sweet moments!",
    "{name}, you got this! Bold moves and bright wins at {age}!",
)

TEMPLATES: dict[tuple[str, str], tuple[str, ...]] = {
    ("ru", "formal"): RU_FORMAL,
    ("ru", "friendly"): RU_FRIENDLY,
    ("pl", "formal"): PL_FORMAL,
    ("pl", "friendly"): PL_FRIENDLY,
    ("en", "formal"): EN_FORMAL,
    ("en", "friendly"): EN_FRIENDLY,
}

FALLBACK_TEMPLATES = EN_FRIENDLY


class GreetingGenerator:
    def generate(self, language: str, tone: str, name: str, age: int) -> str:
        key = (normalize_code(language), normalize_code(tone))
        templates = TEMPLATES.get(key, FALLBACK_TEMPLATES)
        template = self._select_template(templates, key, name, age)
        return template.format(name=name, age=age)

    @staticmethod
    def _select_template(templates: tuple[str, ...], key: tuple[str, str], name: str, age: int) -> str:
        seed = "|".join((*key, name, str(age)))
        digest = hashlib.sha256(seed.encode("utf-8")).digest()
        index = int.from_bytes(digest[:4], "big") % len(templates)
        return templates[index]
