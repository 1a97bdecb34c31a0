"""
Local Resume Parser

Heuristic (no I/O) extraction of search keywords and location from resume
text. Used when the LLM extractor is unavailable.

Weighting:
    Each experience entry (a dated role line, or an explicit duration such
    as "10 years truck driving") gets
        weight = (years / total_years * 10 + 5) * tenure_mult * recency_mult
    so long, recent experience outranks short or old experience. Skills and
    job titles found in the text get a base weight, boosted by the entry
    they appear in.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from src.common.locations import MAJOR_CITIES, find_locations
from src.common.types import ResumeSignals

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEYWORDS = 20

SKILLS_DATABASE: List[str] = [
    # Software / data
    "python", "java", "javascript", "typescript", "react", "node.js", "sql",
    "aws", "azure", "docker", "kubernetes", "machine learning", "data analysis",
    "excel", "power bi", "tableau", "salesforce", "sap", "quickbooks",
    # Sales / business
    "sales", "account management", "business development", "customer service",
    "lead generation", "negotiation", "crm", "marketing", "project management",
    "budgeting", "forecasting", "bookkeeping", "payroll",
    # Trades / logistics
    "truck driving", "forklift", "class 1", "class 3", "logistics", "warehouse",
    "inventory", "shipping", "dispatch", "welding", "carpentry", "electrical",
    "plumbing", "hvac", "heavy equipment", "construction", "safety",
    # Hospitality / care
    "cooking", "food safety", "food preparation", "catering", "cashier",
    "first aid", "patient care", "nursing", "childcare",
]

HIGH_VALUE_SKILLS = {
    "python", "aws", "kubernetes", "machine learning", "salesforce",
    "account management", "business development", "project management",
    "class 1", "heavy equipment", "nursing",
}

JOB_TITLES: List[str] = [
    "software engineer", "software developer", "data analyst", "data scientist",
    "project manager", "product manager", "business analyst",
    "account manager", "account executive", "sales manager", "sales representative",
    "sales associate", "customer service representative", "office manager",
    "administrative assistant", "bookkeeper", "accountant",
    "truck driver", "delivery driver", "driver", "dispatcher", "warehouse associate",
    "forklift operator", "welder", "electrician", "carpenter", "plumber",
    "labourer", "laborer", "mechanic",
    "cook", "line cook", "chef", "server", "cashier", "barista",
    "registered nurse", "nurse", "caregiver", "teacher",
]

_NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11,
    "twelve": 12, "fifteen": 15, "twenty": 20,
}
_NUMBER = r"\d+(?:\.\d+)?|" + "|".join(sorted(_NUMBER_WORDS, key=len, reverse=True))
_UNIT = r"years?|yrs?|months?|mos?"

# "10 years truck driving", "6 months as a cook", "5+ yrs of experience in sales"
DURATION_FORWARD = re.compile(
    rf"\b(?P<num>{_NUMBER})\+?\s*(?P<unit>{_UNIT})\b"
    r"(?:\s+of)?(?:\s+(?:experience|exp)\b)?(?:\s+(?:as|in|with|doing|at))?(?:\s+(?:an?|the)\b)?"
    r"\s+(?P<phrase>[A-Za-z][A-Za-z/&\- ]{1,48})",
    re.IGNORECASE,
)

# "truck driving for 10 years", "Cook (6 months)"
DURATION_BACKWARD = re.compile(
    r"(?P<phrase>[A-Za-z][A-Za-z/&\- ]{1,48}?)\s*(?:for|\(|-|:)\s*"
    rf"(?P<num>{_NUMBER})\+?\s*(?P<unit>{_UNIT})\b",
    re.IGNORECASE,
)

_MONTHS = {m: i for i, m in enumerate(
    ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"], start=1
)}
_MONTH = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?"

# "2015 - 2020", "Jan 2018 – Present", "03/2019 to current"
DATE_RANGE = re.compile(
    rf"(?:(?P<m1>{_MONTH})\s+|(?P<n1>\d{{1,2}})/)?(?P<y1>(?:19|20)\d{{2}})\s*(?:-|–|—|to)\s*"
    rf"(?:(?:(?P<m2>{_MONTH})\s+|(?P<n2>\d{{1,2}})/)?(?P<y2>(?:19|20)\d{{2}})|(?P<present>present|current|now|today))",
    re.IGNORECASE,
)

# Words that end a duration phrase
_PHRASE_STOPWORDS = {
    "at", "for", "with", "and", "in", "from", "including", "experience", "exp",
    "while", "where", "on", "to", "of", "the", "a", "an", "as", "years", "year",
    "months", "month",
}


@dataclass
class ExperienceEntry:
    """A unit of work history with tenure and recency."""
    phrase: str
    years: float
    years_since_end: Optional[float]  # None when the end date is unknown
    current: bool
    context: str
    position: int


def tenure_multiplier(years: float) -> float:
    if years >= 5:
        return 1.5
    if years >= 3:
        return 1.3
    if years >= 1:
        return 1.0
    return 0.8


def recency_multiplier(entry: ExperienceEntry) -> float:
    if entry.current:
        return 2.0
    if entry.years_since_end is None:
        return 1.0
    if entry.years_since_end < 3:
        return 1.5
    if entry.years_since_end < 5:
        return 1.0
    if entry.years_since_end < 10:
        return 0.7
    return 0.5


def normalize_keywords(keywords: Iterable[str], limit: int = DEFAULT_MAX_KEYWORDS) -> List[str]:
    """
    Lowercase, collapse whitespace, drop empties and duplicates, cap length.

    Input order is treated as importance order and preserved.
    """
    seen = set()
    result = []
    for keyword in keywords:
        if not isinstance(keyword, str):
            continue
        normalized = re.sub(r"\s+", " ", keyword).strip().strip(".,;:-").lower()
        if len(normalized) < 2 or normalized in seen:
            continue
        seen.add(normalized)
        result.append(normalized)
        if len(result) >= limit:
            break
    return result


def _to_number(raw: str) -> float:
    raw = raw.lower()
    if raw in _NUMBER_WORDS:
        return float(_NUMBER_WORDS[raw])
    return float(raw)


def _to_years(num: str, unit: str) -> float:
    value = _to_number(num)
    return value / 12.0 if unit.lower().startswith("mo") else value


def _clean_phrase(raw: str, max_words: int = 4) -> str:
    """Trim a captured phrase to its leading content words."""
    words = []
    for word in raw.strip().split():
        lowered = word.lower().strip("/&-")
        if not lowered:
            continue
        if lowered in _PHRASE_STOPWORDS and words:
            break
        if lowered in _PHRASE_STOPWORDS:
            continue
        words.append(lowered)
        if len(words) >= max_words:
            break
    return " ".join(words)


def _month_value(month: Optional[str], numeric: Optional[str], default: int) -> int:
    if month:
        return _MONTHS.get(month[:3].lower(), default)
    if numeric and 1 <= int(numeric) <= 12:
        return int(numeric)
    return default


def _contains(text: str, term: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])", text) is not None


class LocalResumeParser:
    """Keyword-table and regex based resume signal extraction."""

    def __init__(self, max_keywords: int = DEFAULT_MAX_KEYWORDS, now: Optional[datetime] = None):
        self.max_keywords = max_keywords
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.utcnow()

    def extract(self, resume_text: str) -> ResumeSignals:
        """
        Extract ranked keywords and location from resume text.

        Args:
            resume_text: Plain resume text

        Returns:
            ResumeSignals with extraction_method="local" (keywords may be empty)
        """
        if not isinstance(resume_text, str) or not resume_text.strip():
            return ResumeSignals(extraction_method="local")

        entries = self._parse_experience(resume_text)
        weights = self._score_keywords(resume_text, entries)

        ranked = sorted(weights.items(), key=lambda item: (-item[1][0], item[1][1]))
        keywords = normalize_keywords((k for k, _ in ranked), self.max_keywords)

        locations = self._find_locations(resume_text)
        logger.debug(
            f"Local parser: {len(entries)} experience entries, "
            f"{len(keywords)} keywords, location={locations[0] if locations else None}"
        )

        return ResumeSignals(
            keywords=keywords,
            location=locations[0] if locations else None,
            locations=locations,
            extraction_method="local",
        )

    # =========================================================================
    # Experience parsing
    # =========================================================================

    def _parse_experience(self, text: str) -> List[ExperienceEntry]:
        entries: List[ExperienceEntry] = []
        entries.extend(self._parse_durations(text))
        entries.extend(self._parse_date_ranges(text))
        return entries

    def _parse_durations(self, text: str) -> List[ExperienceEntry]:
        entries = []
        seen_spans = []

        for pattern in (DURATION_FORWARD, DURATION_BACKWARD):
            for match in pattern.finditer(text):
                if any(start <= match.start() < end for start, end in seen_spans):
                    continue
                phrase = _clean_phrase(match.group("phrase"))
                if pattern is DURATION_BACKWARD:
                    # Keep the words nearest to the duration
                    phrase = " ".join(
                        w for w in match.group("phrase").lower().split() if w not in _PHRASE_STOPWORDS
                    )
                    phrase = " ".join(phrase.split()[-3:])
                if not phrase:
                    continue
                seen_spans.append((match.start(), match.end()))
                entries.append(ExperienceEntry(
                    phrase=phrase,
                    years=_to_years(match.group("num"), match.group("unit")),
                    years_since_end=None,
                    current=False,
                    context=match.group(0).lower(),
                    position=match.start(),
                ))
        return entries

    def _parse_date_ranges(self, text: str) -> List[ExperienceEntry]:
        entries = []
        lines = text.splitlines()
        offset = 0
        now = self.now
        now_value = now.year + (now.month - 1) / 12.0

        for index, line in enumerate(lines):
            match = DATE_RANGE.search(line)
            if match:
                start = int(match.group("y1")) + (_month_value(match.group("m1"), match.group("n1"), 1) - 1) / 12.0
                current = bool(match.group("present"))
                if current:
                    end = now_value
                else:
                    end = int(match.group("y2")) + (_month_value(match.group("m2"), match.group("n2"), 12) - 1) / 12.0

                if end >= start:
                    role_text = (line[:match.start()] + " " + line[match.end():]).strip(" |,-–—\t")
                    if len(role_text) < 3 and index > 0:
                        role_text = lines[index - 1].strip()
                    context = " ".join(lines[index:index + 4]).lower()
                    phrase = self._role_phrase(role_text)
                    if phrase:
                        entries.append(ExperienceEntry(
                            phrase=phrase,
                            years=max(end - start, 1 / 12.0),
                            years_since_end=0.0 if current else max(0.0, now_value - end),
                            current=current,
                            context=f"{role_text.lower()} {context}",
                            position=offset + match.start(),
                        ))
            offset += len(line) + 1

        return entries

    def _role_phrase(self, role_text: str) -> str:
        lowered = role_text.lower()
        for title in sorted(JOB_TITLES, key=len, reverse=True):
            if _contains(lowered, title):
                return title
        head = re.split(r"\s+(?:at|@)\s+|[|,(]", lowered)[0]
        return _clean_phrase(head)

    # =========================================================================
    # Keyword scoring
    # =========================================================================

    def _score_keywords(self, text: str, entries: List[ExperienceEntry]) -> Dict[str, tuple]:
        """Return {keyword: (weight, first_position)}."""
        lowered = text.lower()
        total_years = sum(e.years for e in entries) or 1.0
        weights: Dict[str, tuple] = {}

        def add(keyword: str, weight: float, position: int) -> None:
            current = weights.get(keyword)
            if current is None:
                weights[keyword] = (weight, position)
            else:
                weights[keyword] = (max(current[0], weight), min(current[1], position))

        entry_weights = []
        for entry in entries:
            base = entry.years / total_years * 10 + 5
            weight = base * tenure_multiplier(entry.years) * recency_multiplier(entry)
            entry_weights.append((entry, weight))
            add(entry.phrase, weight, entry.position)

        def boost_for(term: str) -> float:
            return max(
                (weight for entry, weight in entry_weights if _contains(entry.context, term)),
                default=0.0,
            )

        for skill in SKILLS_DATABASE:
            if _contains(lowered, skill):
                weight = 5.0 + (2.0 if skill in HIGH_VALUE_SKILLS else 0.0) + 0.5 * boost_for(skill)
                add(skill, weight, lowered.find(skill))

        for title in JOB_TITLES:
            if _contains(lowered, title):
                add(title, 5.0 + boost_for(title), lowered.find(title))

        return weights

    # =========================================================================
    # Location
    # =========================================================================

    def _find_locations(self, text: str) -> List[str]:
        header = "\n".join(text.splitlines()[:10])
        locations = find_locations(header)
        for location in find_locations(text):
            if location not in locations:
                locations.append(location)

        if not locations:
            lowered_header = header.lower()
            for city, code in MAJOR_CITIES.items():
                if _contains(lowered_header, city):
                    locations.append(f"{city.title()}, {code}")
                    break
        return locations
