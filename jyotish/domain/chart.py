"""
Modèle du thème védique renvoyé par le moteur astrologique.

Le moteur est un collaborateur opaque: ce module valide et restreint sa charge utile au point
d'entrée unique (`parse_chart`) pour que le reste de l'application manipule des types connus.
Les champs optionnels ont des valeurs par défaut et les clés inconnues sont conservées.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from jyotish.domain.errors import AstroEngineError


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow")


class Lagna(_Lenient):
    """Ascendant: signe et degré se levant à l'est à la naissance."""

    sign: str
    sign_num: int = 0
    degrees: float = 0.0
    lord: str = ""


class Planet(_Lenient):
    """Position natale d'une planète."""

    sign: str
    sign_num: int = 0
    degrees: float = 0.0
    house: int = 0
    nakshatra: str = ""
    pada: int = 0
    retrograde: bool = False
    combust: bool = False
    lord: str = ""


class House(_Lenient):
    sign: str
    lord: str = ""
    planets: list[str] = Field(default_factory=list)


class DashaBalance(_Lenient):
    planet: str = ""
    years: int = 0
    months: int = 0
    days: int = 0


class DashaPeriod(_Lenient):
    planet: str
    start: str
    end: str


class CurrentDasha(_Lenient):
    mahadasha: str
    antardasha: str
    mahadasha_start: str = ""
    mahadasha_end: str = ""
    antardasha_start: str = ""
    antardasha_end: str = ""


class Dashas(_Lenient):
    balance_at_birth: DashaBalance = Field(default_factory=DashaBalance)
    sequence: list[DashaPeriod] = Field(default_factory=list)
    current: CurrentDasha


class Yoga(_Lenient):
    name: str
    type: str = ""
    strength: str = ""
    description: str = ""
    planets: list[str] = Field(default_factory=list)
    effect: str = ""


class Numerology(_Lenient):
    birth_number: int
    destiny_number: int
    name_number: int | None = None


class ChartData(_Lenient):
    """Thème complet: lagna, planètes par nom, maisons par numéro, dashas et yogas."""

    calculated_at: str = ""
    ayanamsha: str = "lahiri"
    ayanamsha_value: float = 0.0
    julian_day: float = 0.0
    lagna: Lagna
    planets: dict[str, Planet]
    houses: dict[str, House] = Field(default_factory=dict)
    dashas: Dashas
    yogas: list[Yoga] = Field(default_factory=list)
    ashtakavarga: dict[str, list[int]] | None = None
    numerology: Numerology | None = None

    def planet(self, name: str) -> Planet:
        """Retourne la planète demandée, ou une position `Unknown` si le moteur l'a omise."""
        found = self.planets.get(name)
        if found is None:
            return Planet(sign="Unknown")
        return found

    def house(self, number: int) -> House:
        found = self.houses.get(str(number))
        if found is None:
            return House(sign="Unknown", lord="Unknown")
        return found


class TransitData(_Lenient):
    """Positions planétaires courantes."""

    date: str = ""
    planets: dict[str, dict[str, Any]] = Field(default_factory=dict)


class Aspect(_Lenient):
    """Aspect entre une planète en transit et une planète natale."""

    transiting_planet: str
    natal_planet: str
    aspect_type: str
    orb: float
    applying: bool = False


def parse_chart(payload: Any) -> ChartData:
    """Valide la charge utile brute du moteur et la convertit en `ChartData`.

    Raises:
        AstroEngineError: si la forme ne correspond pas au contrat attendu.
    """
    try:
        return ChartData.model_validate(payload)
    except PydanticValidationError as exc:
        raise AstroEngineError(
            f"invalid chart payload: {exc.error_count()} issue(s)", endpoint="/chart"
        ) from exc


def ordinal(n: int) -> str:
    """1 -> "1st", 2 -> "2nd", 11 -> "11th"; 0 (maison inconnue) -> "Unknown"."""
    if n <= 0:
        return "Unknown"
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"
