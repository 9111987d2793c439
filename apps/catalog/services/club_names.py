"""Club label resolution for product cards and the configurator.

Product feeds carry a free-text ``team`` field that is often noisy
("Chelsea Shadow Black", "Benfica Home Kit", "CLUB") and a display name
that usually contains the club somewhere ("Real Madrid Home Jersey 25/26").
``club_label`` turns those into one short, stable label.

Resolution order:

1. Clean the ``team`` field (drop "& colour" suffixes and trailing
   variant/colour/descriptor words), clamp it, then map it through the
   club pattern dictionary or title-case it.
2. Without a usable team, run the pattern dictionary on the name.
3. Otherwise cut the name at the first variant boundary word, drop season
   tokens and clean + clamp what is left.
4. Give up with ``''``. Callers never display a placeholder.
"""

import re
import unicodedata
from dataclasses import dataclass, field

SENTINELS = frozenset({'CLUB', 'TEAM'})

# Canonical names. "Madrid" on its own must never become Real Madrid.
CLUB_PATTERNS = (
    (r'\breal\s*madrid\b', 'Real Madrid'),
    (r'\b(fc\s*)?barcelona\b|\bbar[cç]a\b', 'FC Barcelona'),
    (r'\batl[eé]tico\s*(de\s*)?madrid\b', 'Atlético de Madrid'),
    (r'\breal\s*betis\b', 'Real Betis'),
    (r'\bsevilla\b', 'Sevilla FC'),
    (r'\breal\s*sociedad\b', 'Real Sociedad'),
    (r'\bvillarreal\b', 'Villarreal'),
    (r'\b(sl\s*)?benfica\b', 'SL Benfica'),
    (r'\b(fc\s*)?porto\b', 'FC Porto'),
    (r'\bsporting\s*cp\b|\bsporting\b(?!.*gij[oó]n)', 'Sporting CP'),
    (r'\b(sc\s*)?braga\b', 'SC Braga'),
    (r'\bvit[oó]ria(\s*sc)?\b', 'Vitória SC'),
)

VARIANT_WORDS = frozenset({
    'PRIMARY', 'HOME', 'AWAY', 'THIRD', 'FOURTH',
    '1ST', '2ND', '3RD', '4TH', 'FIRST', 'SECOND',
    'CLUB', 'TEAM', 'MEN', 'WOMEN', 'KID', 'KIDS', 'YOUTH',
    'GOALKEEPER', 'GK', 'JERSEY', 'KIT', 'TRAINING', 'TRACKSUIT', 'SET', 'SUIT',
    'PRE-MATCH', 'PREMATCH', 'WARM-UP', 'WARMUP',
    'CUP', 'EDITION', 'SPECIAL', 'LIMITED', 'CONCEPT', 'RETRO',
})

COLOR_WORDS = frozenset({
    'RED', 'BLACK', 'WHITE', 'BLUE', 'NAVY', 'SKY', 'SKYBLUE', 'SKY-BLUE',
    'LIGHT', 'DARK', 'GREEN', 'YELLOW', 'PINK', 'PURPLE', 'ORANGE', 'GREY',
    'GRAY', 'GOLD', 'SILVER', 'BEIGE', 'BROWN', 'MAROON', 'BURGUNDY', 'CREAM',
    'TEAL', 'LIME', 'AQUA', 'CYAN',
})

DESCRIPTOR_WORDS = frozenset({
    'TRICOLOR', 'TRI-COLOR', 'TRICOLOUR', 'TRI-COLOUR',
    'BICOLOR', 'BI-COLOR', 'BICOLOUR', 'BI-COLOUR',
    'MULTICOLOR', 'MULTI-COLOR', 'MULTICOLOUR', 'MULTI-COLOUR',
    'COLORWAY', 'COLOURWAY',
    'SHADOW', 'SAMURAI', 'DRAGON', 'LION', 'PHANTOM', 'STEALTH', 'NINJA',
    'WARRIOR', 'LEGEND', 'ELITE', 'PREMIUM', 'SPECIAL', 'LIMITED',
})

# First tokens of legitimate multi-word names ("Real Madrid", "AC Milan").
MULTIWORD_STARTERS = frozenset({
    'REAL', 'ATLÉTICO', 'ATLETICO', 'MANCHESTER', 'PARIS', 'BORUSSIA', 'BAYER',
    'BAYERN', 'INTER', 'AC', 'AS', 'SL', 'FC', 'SC', 'CD', 'UD', 'RB', 'CLUB',
    'SPORTING', 'NEW', 'SOUTH', 'NORTH', 'COSTA', 'SAUDI', 'LOS', 'LAS', 'LA',
    'DE', 'DEL', 'AL',
})

BOUNDARY_WORDS = (
    'Home', 'Away', 'Third', 'Fourth', 'Primary', 'Goalkeeper', 'GK', 'Kids',
    'Kid', 'Women', 'Woman', 'Jersey', 'Kit', 'Tracksuit', 'Training',
    'Pre-Match', 'Prematch', 'Warm-Up', 'Warmup', 'Retro', 'Concept',
    r'World\s*Cup',
)

LOWERCASE_JOINERS = frozenset({'de', 'da', 'do', 'dos', 'das', 'of', 'and', 'the'})

_SEASON_RE = re.compile(r'\b(20\d{2}/\d{2}|\d{2}/\d{2}|20\d{2})\b')
_COLOUR_SUFFIX_RE = re.compile(r'\s+(TRI-?COL(OU)?R|BI-?COL(OU)?R|MULTI-?COL(OU)?R)\b', re.IGNORECASE)
_TOKEN_KEY_RE = re.compile(r'[^A-Z-]')
_STARTER_KEY_RE = re.compile(r'[^A-ZÀ-ÖØ-Ý]')


@dataclass(frozen=True)
class ClubVocabulary:
    """Word lists and patterns used by the resolver.

    Bump ``version`` whenever a list changes so cached labels can be
    invalidated.
    """
    version: str = '2025.2'
    patterns: tuple = CLUB_PATTERNS
    variant_words: frozenset = VARIANT_WORDS
    color_words: frozenset = COLOR_WORDS
    descriptor_words: frozenset = DESCRIPTOR_WORDS
    multiword_starters: frozenset = MULTIWORD_STARTERS
    boundary_words: tuple = BOUNDARY_WORDS
    _compiled: tuple = field(init=False, repr=False, compare=False)
    _boundary_re: object = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        compiled = tuple((re.compile(p, re.IGNORECASE), club) for p, club in self.patterns)
        boundary = re.compile(r'\s+(' + '|'.join(self.boundary_words) + r')\b', re.IGNORECASE)
        object.__setattr__(self, '_compiled', compiled)
        object.__setattr__(self, '_boundary_re', boundary)

    def is_strippable(self, token):
        key = _TOKEN_KEY_RE.sub('', token.upper())
        if not key:
            return False
        for candidate in (key, key.replace('-', '')):
            if (candidate in self.variant_words
                    or candidate in self.color_words
                    or candidate in self.descriptor_words):
                return True
        return False

    def is_starter(self, token):
        return _STARTER_KEY_RE.sub('', token.upper()) in self.multiword_starters

    def match(self, text):
        for regex, club in self._compiled:
            if regex.search(text):
                return club
        return None

    def cut_at_boundary(self, text):
        return self._boundary_re.split(text, maxsplit=1)[0]


DEFAULT_VOCABULARY = ClubVocabulary()


def _collapse(value):
    if value is None:
        return ''
    return ' '.join(str(value).split())


def _is_sentinel(value):
    return value.upper() in SENTINELS


def title_case_smart(value):
    """Title-case a label, keeping short acronyms ("FC", "PSG") and joiners."""
    words = []
    for word in _collapse(value).split(' '):
        if not word:
            continue
        letters = re.sub(r'[^A-Za-z]', '', word)
        if 0 < len(letters) <= 4 and word.upper() == word:
            words.append(word)
            continue
        lower = word.lower()
        if lower in LOWERCASE_JOINERS:
            words.append(lower)
            continue
        words.append(lower[:1].upper() + lower[1:])
    return ' '.join(words)


def clean_team_value(value, vocabulary=DEFAULT_VOCABULARY):
    """Strip colour halves and trailing junk words from a raw team string."""
    text = _collapse(_collapse(value).replace('|', ' '))
    if not text or _is_sentinel(text):
        return ''

    text = _collapse(_SEASON_RE.sub('', text))
    if '&' in text:
        text = _collapse(text.split('&', 1)[0])

    while True:
        tokens = text.split(' ') if text else []
        while len(tokens) > 1 and vocabulary.is_strippable(tokens[-1]):
            tokens.pop()
        stripped = _collapse(' '.join(tokens))
        text = _collapse(_COLOUR_SUFFIX_RE.sub('', stripped))
        if text == stripped:
            break

    if not text or _is_sentinel(text):
        return ''
    return text


def hard_clamp(label, vocabulary=DEFAULT_VOCABULARY):
    """Collapse leftover multi-word noise to the club's first word.

    Canonical pattern names and names starting with a known multi-word
    prefix ("Real", "FC", "Manchester", ...) are kept whole.
    """
    text = _collapse(label)
    if not text:
        return ''

    canonical = vocabulary.match(text)
    if canonical:
        return canonical

    parts = text.split(' ')
    if len(parts) == 1:
        return text
    if vocabulary.is_starter(parts[0]):
        return text
    # Never invent a multi-word name; a descriptor or any other second word goes.
    return parts[0]


def infer_from_name(name, vocabulary=DEFAULT_VOCABULARY):
    text = _collapse(name)
    if not text:
        return ''
    head = vocabulary.cut_at_boundary(text)
    head = _collapse(_SEASON_RE.sub('', head))
    return hard_clamp(clean_team_value(head, vocabulary), vocabulary)


def club_label(team, name, vocabulary=DEFAULT_VOCABULARY):
    """Canonical club label for a product, or ``''`` when unsure."""
    label = ''

    team_clean = clean_team_value(team, vocabulary)
    if team_clean:
        clamped = hard_clamp(team_clean, vocabulary)
        label = vocabulary.match(clamped) or title_case_smart(clamped)

    # A team that clamps down to "Club" or "Team" is no better than none.
    if not label or _is_sentinel(label):
        label = vocabulary.match(_collapse(name)) or ''
        if not label:
            label = title_case_smart(infer_from_name(name, vocabulary))

    if _is_sentinel(label):
        return ''
    return label


def normalize_club_name(text, vocabulary=DEFAULT_VOCABULARY):
    """Resolve a single free-text string; applying it twice changes nothing."""
    return club_label(text, text, vocabulary)


def slugify_club(name):
    """URL slug for a club name ("Atlético de Madrid" -> "atletico-de-madrid")."""
    text = unicodedata.normalize('NFD', _collapse(name))
    text = ''.join(ch for ch in text if not unicodedata.combining(ch)).lower()
    text = text.replace('&', ' and ').replace("'", '')
    text = re.sub(r'[^a-z0-9]+', '-', text)
    return text.strip('-')


def team_name_from_slug(slug, vocabulary=DEFAULT_VOCABULARY):
    """Reverse of ``slugify_club`` for canonical clubs; best effort otherwise."""
    slug = _collapse(slug).lower()
    if not slug:
        return ''
    for _, club in vocabulary.patterns:
        if slugify_club(club) == slug:
            return club
    return title_case_smart(slug.replace('-', ' '))
