"""
Province gazetteer for resolving city names to their province.

Keys are normalized names (lower-case, no diacritics, single spaces) so the
lookups can be fed straight from LocationNormalizer output.
"""

from typing import Optional

from rapidfuzz import fuzz, process

# Province key -> main cities, towns and common aliases in that province.
PROVINCE_CITIES = {
    'maputo': [
        'maputo', 'maputo cidade', 'matola', 'boane', 'marracuene',
        'manhica', 'namaacha', 'moamba', 'ressano garcia', 'catembe',
    ],
    'gaza': [
        'xai xai', 'chokwe', 'chibuto', 'macia', 'bilene',
        'manjacaze', 'chicualacuala', 'massingir',
    ],
    'inhambane': [
        'inhambane', 'maxixe', 'vilankulo', 'vilanculos', 'massinga',
        'inharrime', 'tofo', 'zavala', 'govuro',
    ],
    'sofala': [
        'beira', 'dondo', 'nhamatanda', 'gorongosa', 'buzi', 'marromeu',
        'caia', 'muanza',
    ],
    'manica': [
        'chimoio', 'manica', 'gondola', 'catandica', 'sussundenga',
        'espungabera', 'machipanda',
    ],
    'tete': [
        'tete', 'moatize', 'songo', 'ulongue', 'nhamayabue', 'zumbo',
        'cahora bassa',
    ],
    'zambezia': [
        'quelimane', 'mocuba', 'gurue', 'milange', 'alto molocue',
        'nicoadala', 'morrumbala', 'pebane',
    ],
    'nampula': [
        'nampula', 'nacala', 'nacala porto', 'ilha de mocambique',
        'angoche', 'monapo', 'ribaue', 'malema', 'mossuril',
    ],
    'cabo delgado': [
        'pemba', 'montepuez', 'mocimboa da praia', 'mueda', 'chiure',
        'palma', 'macomia', 'ancuabe',
    ],
    'niassa': [
        'lichinga', 'cuamba', 'marrupa', 'mandimba', 'metangula',
        'mecanhelas',
    ],
}

# Spellings people use for the province itself.
PROVINCE_ALIASES = {
    'maputo provincia': 'maputo',
    'provincia de maputo': 'maputo',
    'cidade de maputo': 'maputo',
    'maputo cidade': 'maputo',
}

# Country names that show up as trailing address segments.
COUNTRY_NAMES = {'mocambique', 'mozambique', 'mz'}

# Minimum fuzz.ratio (0-100) for a misspelt name to count as a known place.
CLOSE_MATCH_CUTOFF = 80

_CITY_TO_PROVINCE = {
    city: province
    for province, cities in PROVINCE_CITIES.items()
    for city in cities
}


def is_province(name: str) -> bool:
    """Return True if the normalized name is itself a province."""
    return name in PROVINCE_CITIES or name in PROVINCE_ALIASES


def is_known_place(name: str) -> bool:
    """Return True if the normalized name is a known city or province."""
    return is_province(name) or name in _CITY_TO_PROVINCE


def canonical_province(name: str) -> Optional[str]:
    """Return the province key for a normalized province name, or None."""
    if name in PROVINCE_CITIES:
        return name
    return PROVINCE_ALIASES.get(name)


def detect_province(name: str) -> Optional[str]:
    """
    Resolve a normalized place name to its province key.

    Tries, in order: the name as a province, the name as a known city, and
    finally the closest known city or province for misspellings such as
    "nampla" or "quilimane".

    Returns:
        Province key, or None when the name cannot be placed
    """
    if not name:
        return None

    province = canonical_province(name)
    if province:
        return province

    if name in _CITY_TO_PROVINCE:
        return _CITY_TO_PROVINCE[name]

    candidates = list(_CITY_TO_PROVINCE) + list(PROVINCE_CITIES)
    best = process.extractOne(name, candidates, scorer=fuzz.ratio, score_cutoff=CLOSE_MATCH_CUTOFF)
    if best is None:
        return None
    match = best[0]
    return canonical_province(match) or _CITY_TO_PROVINCE.get(match)
