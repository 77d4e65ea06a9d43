"""
Gabarits de prompts des rapports.

Un gabarit par type de rapport: fonction pure `(chart, language, *, year) -> str` qui rend les
faits du thème en markdown et termine par une demande d'analyse numérotée et la langue de
sortie. Une planète ou une maison absente est rendue `Unknown`.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from jyotish.domain.chart import ChartData, Planet, ordinal
from jyotish.domain.errors import ValidationError

PromptTemplate = Callable[..., str]

NUMEROLOGY_UNAVAILABLE = "Numerology data not available in chart."


def language_name(language: str) -> str:
    return "Hindi" if language == "hi" else "English"


def _motion(p: Planet) -> str:
    return "Retrograde" if p.retrograde else "Direct"


def _placement(p: Planet) -> str:
    return f"{p.sign} in {ordinal(p.house)} house"


def _lord_position(chart: ChartData, house: int) -> Planet:
    return chart.planet(chart.house(house).lord)


def _planet_lines(chart: ChartData, detailed: bool = False) -> str:
    lines = []
    for name, p in chart.planets.items():
        if detailed:
            retro = " (Retrograde)" if p.retrograde else ""
            lines.append(
                f"- {name}: {p.sign} ({p.degrees:.2f}°) in {ordinal(p.house)} house, "
                f"{p.nakshatra or 'Unknown'} nakshatra{retro}"
            )
        else:
            lines.append(f"- {name}: {p.sign} ({ordinal(p.house)} house)")
    return "\n".join(lines)


def _finish(body: str) -> str:
    return body.strip()


def in_depth(chart: ChartData, language: str, *, year: int | None = None) -> str:
    lagna, moon, d = chart.lagna, chart.planet("Moon"), chart.dashas
    numbers = ""
    if chart.numerology:
        numbers = (
            f"\n- Birth Number: {chart.numerology.birth_number}, "
            f"Destiny Number: {chart.numerology.destiny_number}"
        )
    houses = "\n".join(
        f"- {ordinal(int(num)) if num.isdigit() else num} House: {h.sign}, Lord {h.lord}, "
        f"Planets: {', '.join(h.planets) if h.planets else 'Empty'}"
        for num, h in chart.houses.items()
    )
    sequence = "\n".join(f"  {p.planet}: {p.start} to {p.end}" for p in d.sequence[:5])
    yogas = "\n".join(
        f"- **{y.name}** ({y.type}, {y.strength}): {y.description}" for y in chart.yogas
    )
    b = d.balance_at_birth
    return _finish(
        f"""
# Complete In-Depth Horoscope Analysis

## Personal Details
- Lagna (Ascendant): {lagna.sign} at {lagna.degrees:.2f}°, Lord: {lagna.lord or 'Unknown'}
- Birth Nakshatra: {moon.nakshatra or 'Unknown'}, Pada {moon.pada}{numbers}

## All Planetary Positions
{_planet_lines(chart, detailed=True)}

## House Analysis
{houses}

## Vimshottari Dasha
- Balance at Birth: {b.planet} {b.years}Y {b.months}M {b.days}D
- Current Period: {d.current.mahadasha} - {d.current.antardasha}
- Next 5 Major Periods:
{sequence}

## Detected Yogas ({len(chart.yogas)} total)
{yogas}

## Analysis Request
This is the most comprehensive report. Provide an exhaustive analysis covering:

### Part 1: Personality & Character
1. Core personality traits
2. Mental and emotional nature
3. Strengths and weaknesses
4. Life purpose and dharma

### Part 2: Life Areas
5. Family and early life
6. Education and learning
7. Career and profession (detailed)
8. Wealth and finances (detailed)
9. Love, marriage, and relationships
10. Children and progeny
11. Health and longevity
12. Spiritual inclinations

### Part 3: Timing Analysis
13. Complete dasha analysis (Mahadasha effects)
14. Past life karmas (based on nodes)
15. Future predictions (next 10 years)

### Part 4: Yogas & Special Combinations
16. All detected yogas explained in detail
17. Ashtakavarga analysis
18. Navamsa chart insights

### Part 5: Remedies & Recommendations
19. Gemstone recommendations
20. Mantra suggestions
21. Charitable acts
22. Lifestyle guidance

Generate an extremely detailed, well-structured report in {language_name(language)}.
"""
    )


def career(chart: ChartData, language: str, *, year: int | None = None) -> str:
    p, cur = chart.planet, chart.dashas.current
    tenth, sixth = chart.house(10), chart.house(6)
    yogas = "\n".join(
        f"- {y.name}: {y.description}"
        for y in chart.yogas
        if y.type in ("raj", "dhana") or "Career" in y.name
    )
    return _finish(
        f"""
# Career & Business Horoscope Analysis

## Birth Chart Data
- Lagna (Ascendant): {chart.lagna.sign} at {chart.lagna.degrees:.2f}°
- 10th House (Career): {tenth.sign}, Lord: {tenth.lord}
- 10th Lord Position: {_placement(_lord_position(chart, 10))}
- 6th House (Service): {sixth.sign}, Lord: {sixth.lord}
- Sun (Authority): {_placement(p('Sun'))}, {p('Sun').nakshatra or 'Unknown'}
- Saturn (Discipline): {_placement(p('Saturn'))}, {_motion(p('Saturn'))}
- Jupiter (Wisdom): {_placement(p('Jupiter'))}
- Mercury (Intelligence): {_placement(p('Mercury'))}

## Current Dasha Period
- Mahadasha: {cur.mahadasha} ({cur.mahadasha_start} to {cur.mahadasha_end})
- Antardasha: {cur.antardasha} ({cur.antardasha_start} to {cur.antardasha_end})

## Detected Yogas (Career-Related)
{yogas}

## Analysis Request
Based on this Vedic astrology birth chart, provide a comprehensive career and business analysis covering:

1. **Natural Career Inclinations** - What fields/industries suit this person based on planetary placements?
2. **Professional Strengths** - Key talents and abilities in the workplace
3. **Career Challenges** - Potential obstacles and how to overcome them
4. **Best Career Periods** - Timing analysis based on dasha periods
5. **Business vs. Job** - Which path is more favorable?
6. **Authority & Leadership** - Potential for leadership roles
7. **Financial Success** - Wealth accumulation through career
8. **Current Period Analysis** - Specific guidance for the active {cur.mahadasha}-{cur.antardasha} period
9. **Practical Recommendations** - Actionable career advice

Generate a detailed, well-structured report in {language_name(language)}.
"""
    )


def wealth(chart: ChartData, language: str, *, year: int | None = None) -> str:
    p, cur = chart.planet, chart.dashas.current
    second, eleventh = chart.house(2), chart.house(11)
    yogas = "\n".join(
        f"- {y.name}: {y.description} (Strength: {y.strength})"
        for y in chart.yogas
        if y.type == "dhana" or "Wealth" in y.name or "Dhana" in y.name
    )
    return _finish(
        f"""
# Wealth & Fortune Horoscope Analysis

## Birth Chart Data
- Lagna: {chart.lagna.sign}
- 2nd House (Wealth): {second.sign}, Lord: {second.lord}, Position: {_placement(_lord_position(chart, 2))}
- 11th House (Gains): {eleventh.sign}, Lord: {eleventh.lord}, Position: {_placement(_lord_position(chart, 11))}
- Jupiter (Karaka): {_placement(p('Jupiter'))}, {p('Jupiter').nakshatra or 'Unknown'}
- Venus (Luxury): {_placement(p('Venus'))}

## Dhana Yogas (Wealth Combinations)
{yogas}

## Current Dasha
- {cur.mahadasha} - {cur.antardasha}

## Analysis Request
Provide comprehensive wealth and financial fortune analysis covering:

1. **Wealth Potential** - Overall capacity for wealth accumulation
2. **Primary Income Sources** - Career vs. investments vs. inheritance
3. **Financial Strengths** - Natural money-making abilities
4. **Financial Challenges** - Areas of potential loss or obstacles
5. **Best Wealth Periods** - Timing for major financial gains
6. **Investment Guidance** - Favorable investment types (real estate, stocks, business, etc.)
7. **Savings vs. Spending** - Natural tendencies and balance needed
8. **Current Period Analysis** - Financial outlook for active dasha
9. **Wealth Remedies** - Astrological recommendations for enhancing prosperity

Generate in {language_name(language)}.
"""
    )


def yearly(chart: ChartData, language: str, *, year: int | None = None) -> str:
    year = year or datetime.now(UTC).year
    p, cur = chart.planet, chart.dashas.current
    return _finish(
        f"""
# {year} Yearly Horoscope

## Birth Chart Summary
- Lagna: {chart.lagna.sign}
- Sun: {_placement(p('Sun'))}
- Moon: {_placement(p('Moon'))}, {p('Moon').nakshatra or 'Unknown'}

## Current Dasha Period ({year})
- Mahadasha: {cur.mahadasha}
- Antardasha: {cur.antardasha}
- Period: {cur.antardasha_start} to {cur.antardasha_end}

## Major Planetary Positions
{_planet_lines(chart)}

## Analysis Request
Provide a detailed forecast for {year} covering:

1. **Overall Theme** - Main focus areas for the year
2. **Month-by-Month Highlights** - Key events and periods to watch
3. **Career & Profession** - Work-related developments
4. **Finance & Wealth** - Income, expenses, investments
5. **Health & Vitality** - Physical and mental well-being
6. **Relationships & Family** - Personal life dynamics
7. **Opportunities & Challenges** - What to pursue and what to avoid
8. **Important Dates** - Auspicious and inauspicious periods
9. **Yearly Remedies** - Specific recommendations for {year}

Generate in {language_name(language)}.
"""
    )


def transit_jupiter(chart: ChartData, language: str, *, year: int | None = None) -> str:
    jup = chart.planet("Jupiter")
    return _finish(
        f"""
# Jupiter Transit Predictions

## Natal Jupiter Position
- Sign: {jup.sign}
- House: {ordinal(jup.house)}
- Nakshatra: {jup.nakshatra or 'Unknown'}
- {_motion(jup)}

## Lagna & Key Houses
- Lagna: {chart.lagna.sign}
- 9th House (Jupiter's domain): {chart.house(9).sign}
- 12th House (Jupiter's other domain): {chart.house(12).sign}

## Analysis Request
Jupiter takes 12 years to complete one zodiac cycle. Provide transit analysis covering:

1. **Current Transit Position** - Where is Jupiter now?
2. **House-by-House Effects** - As Jupiter moves through each house from Lagna
3. **Natal Jupiter Impact** - How transiting Jupiter aspects natal Jupiter
4. **Best Transit Periods** - Most auspicious houses (2, 5, 7, 9, 11 from Moon/Lagna)
5. **Challenging Periods** - Difficult transits (6, 8, 12)
6. **Career Impact** - Professional growth opportunities
7. **Wealth Impact** - Financial expansion
8. **Spiritual Growth** - Learning and wisdom
9. **Key Dates** - When Jupiter enters new signs
10. **Recommendations** - How to maximize positive transit effects

Generate in {language_name(language)}.
"""
    )


def transit_saturn(chart: ChartData, language: str, *, year: int | None = None) -> str:
    sat, moon = chart.planet("Saturn"), chart.planet("Moon")
    return _finish(
        f"""
# Saturn Transit Predictions (Sade Sati & Dhaiya)

## Natal Saturn Position
- Sign: {sat.sign}
- House: {ordinal(sat.house)}
- Nakshatra: {sat.nakshatra or 'Unknown'}
- {_motion(sat)}

## Natal Moon (for Sade Sati calculation)
- Moon Sign: {moon.sign}
- Moon House: {ordinal(moon.house)}
- Moon Nakshatra: {moon.nakshatra or 'Unknown'}

## Analysis Request
Saturn takes 30 years for one zodiac cycle. Critical periods:
- **Sade Sati**: 7.5 years when Saturn transits 12th, 1st, 2nd from Moon
- **Dhaiya**: 2.5 years when Saturn transits 4th or 8th from Moon

Provide comprehensive analysis:

1. **Current Transit Status** - Is Sade Sati or Dhaiya active?
2. **Sade Sati Phases** - If applicable: rising (12th from Moon), peak (over Moon), setting (2nd from Moon)
3. **Impact on Life Areas** - Career, health, relationships and mental state
4. **Previous Saturn Returns** - Lessons from past transits
5. **Upcoming Critical Periods** - Next Sade Sati, Dhaiya, Saturn Return
6. **House-by-House Effects** - Saturn's transit through each house
7. **Natal Saturn Activation** - When transiting Saturn aspects natal Saturn
8. **Remedies & Mitigations** - Specific actions to reduce hardships
9. **Silver Linings** - Growth opportunities through discipline
10. **Timeline** - Exact dates for phase changes

Generate in {language_name(language)}.
"""
    )


def transit_rahu_ketu(chart: ChartData, language: str, *, year: int | None = None) -> str:
    rahu, ketu, moon = chart.planet("Rahu"), chart.planet("Ketu"), chart.planet("Moon")
    return _finish(
        f"""
# Rahu-Ketu Transit Predictions (Nodal Transits)

## Natal Nodal Axis
- Rahu: {_placement(rahu)}, {rahu.nakshatra or 'Unknown'}
- Ketu: {_placement(ketu)}, {ketu.nakshatra or 'Unknown'}

## Lagna & Moon
- Lagna: {chart.lagna.sign}
- Moon: {_placement(moon)}

## Analysis Request
Rahu and Ketu transit in reverse through the zodiac, spending 18 months in each sign.

Provide comprehensive analysis:

1. **Current Nodal Transit** - Current signs and houses for Rahu-Ketu
2. **Rahu Transit Effects** - Material desires, unexpected opportunities, areas of obsession
3. **Ketu Transit Effects** - Spiritual detachment, past karmas, losses or letting go
4. **Nodal Return** - When Rahu-Ketu return to natal positions (every 18.6 years)
5. **Karmic Axis Activation** - When transiting nodes cross natal planets
6. **Eclipse Impact** - Eclipses on natal Rahu-Ketu axis
7. **House-by-House Analysis** - Effects as nodes transit each house
8. **Rahu Mahadasha Connection** - If in Rahu or Ketu dasha, special significance
9. **Remedies** - Mantras, donations, spiritual practices
10. **Timeline** - Next sign changes and major nodal events

Generate in {language_name(language)}.
"""
    )


def numerology(chart: ChartData, language: str, *, year: int | None = None) -> str:
    num = chart.numerology
    if num is None:
        return NUMEROLOGY_UNAVAILABLE
    name_block = ""
    if num.name_number:
        name_block = f"""
### Name Number ({num.name_number})
11. Social personality
12. How others perceive you
13. Professional image
14. Name change recommendations if needed
"""
    return _finish(
        f"""
# Numerology Report

## Core Numbers
- **Birth Number**: {num.birth_number}
- **Destiny Number**: {num.destiny_number}
- **Name Number**: {num.name_number or 'Not calculated'}

## Analysis Request
Vedic numerology (based on the Chaldean system) reveals personality and destiny through numbers.

Provide detailed analysis:

### Birth Number ({num.birth_number})
1. Core personality traits
2. Natural talents and abilities
3. Life approach and behavior
4. Strengths and challenges
5. Ruling planet connection

### Destiny Number ({num.destiny_number})
6. Life purpose and mission
7. Career paths suited
8. Relationship compatibility
9. Major life themes
10. Karmic lessons
{name_block}
### Number Combinations
15. Birth + Destiny synergy
16. Favorable dates and numbers
17. Unfavorable dates to avoid
18. Lucky numbers, colors, gemstones
19. Compatible people (by birth number)

### Year Analysis
20. Current personal year number and predictions
21. Next 5 personal years forecast

### Remedies & Recommendations
22. Numerology-based remedies
23. Name spelling optimization
24. Business/vehicle number selection
25. Important date selection

Generate comprehensive numerology report in {language_name(language)}.
"""
    )


def gem_recommendation(chart: ChartData, language: str, *, year: int | None = None) -> str:
    lagna, moon, cur = chart.lagna, chart.planet("Moon"), chart.dashas.current
    positions = "\n".join(
        f"- {name}: {_placement(p)}{' (R)' if p.retrograde else ''}"
        for name, p in chart.planets.items()
    )
    return _finish(
        f"""
# Gemstone Recommendation Report

## Birth Chart Summary
- Lagna: {lagna.sign}, Lord: {lagna.lord or 'Unknown'}
- Moon: {moon.sign}, Nakshatra: {moon.nakshatra or 'Unknown'}
- Lagna Lord Position: {_placement(chart.planet(lagna.lord))}

## Current Dasha
- Mahadasha: {cur.mahadasha}
- Antardasha: {cur.antardasha}

## All Planetary Positions
{positions}

## Analysis Request
Gemstones (Ratnas) are Vedic remedies that channel planetary energies.

Provide comprehensive gemstone guidance:

1. **Main Gemstone** - Which planet needs strengthening most? Name (Sanskrit and English), ruling planet, expected benefits, weight in carats, metal setting, finger, day and time to wear, mantra
2. **Alternate Gemstone** - Second priority planet, same details
3. **Strong Planets** - Well-placed planets (no gemstone needed)
4. **Weak Planets** - Debilitated or afflicted planets (gemstone helpful)
5. **Malefic Planets** - Planets causing problems (cautious approach)
6. **Quality Guidelines** - Authenticity, flaws, activation ritual (Pran Pratishtha), wearing muhurta
7. **Uparatnas** - Substitute gemstones
8. **Rudraksha** - Specific beads for planets
9. **Other Remedies** - Mantras, yantras, donations
10. **Gemstones to Avoid** - Planets that are enemies or harmful
11. **Combination Rules** - Which gemstones can be worn together
12. **When to Remove** - If adverse effects occur
13. **Current Period Gems** - For active {cur.mahadasha}-{cur.antardasha}
14. **Future Preparation** - Gems for upcoming dashas

Generate detailed gemstone report in {language_name(language)}.
"""
    )


PROMPTS: dict[str, PromptTemplate] = {
    "in_depth": in_depth,
    "career": career,
    "wealth": wealth,
    "yearly": yearly,
    "transit_jupiter": transit_jupiter,
    "transit_saturn": transit_saturn,
    "transit_rahu_ketu": transit_rahu_ketu,
    "numerology": numerology,
    "gem_recommendation": gem_recommendation,
}

REPORT_TITLES: dict[str, str] = {
    "in_depth": "In-Depth Horoscope",
    "career": "Career & Business",
    "wealth": "Wealth & Fortune",
    "yearly": "Yearly Horoscope",
    "transit_jupiter": "Jupiter Transit",
    "transit_saturn": "Saturn Transit",
    "transit_rahu_ketu": "Rahu-Ketu Transit",
    "numerology": "Numerology",
    "gem_recommendation": "Gemstone Recommendation",
}


def render_report_prompt(
    report_type: str, chart: ChartData, language: str, year: int | None = None
) -> str:
    """Rend le gabarit du type demandé. Lève `ValidationError` si le type est inconnu."""
    template = PROMPTS.get(report_type)
    if template is None:
        raise ValidationError(f"Unknown report type: {report_type}")
    return template(chart, language, year=year)
