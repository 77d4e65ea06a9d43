"""
Règles des alertes de transit.

Une alerte signale un aspect appliquant serré entre une planète en transit et une planète
natale. Les règles sont pures; le job de scan s'occupe des appels au moteur et de l'insertion.
"""

from __future__ import annotations

from jyotish.domain.chart import Aspect
from jyotish.domain.entities import NewAlert

ALERT_TYPE = "planet_transit"


def significant_aspects(aspects: list[Aspect], max_orb: float) -> list[Aspect]:
    """Aspects appliquants d'orbe strictement inférieur à `max_orb` (en valeur absolue)."""
    return [a for a in aspects if a.applying and abs(a.orb) < max_orb]


def build_alert(profile_id: str, aspect: Aspect, day: str) -> NewAlert:
    """Alerte du jour `day` (YYYY-MM-DD) pour un aspect significatif."""
    return NewAlert(
        profile_id=profile_id,
        alert_type=ALERT_TYPE,
        title=f"{aspect.transiting_planet} {aspect.aspect_type} Natal {aspect.natal_planet}",
        content=(
            f"Transiting {aspect.transiting_planet} is forming a {aspect.aspect_type} aspect "
            f"with your natal {aspect.natal_planet}. Orb: {aspect.orb:.2f}°"
        ),
        trigger_date=day,
        planet=aspect.transiting_planet,
        natal_planet=aspect.natal_planet,
        orb=aspect.orb,
    )
