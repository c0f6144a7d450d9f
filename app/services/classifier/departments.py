"""
Department fallback table.

Static category -> candidate departments mapping. Used by the routing UI
when the classifier is unavailable or the citizen overrides the suggestion,
so the department picker is never empty.
"""

from typing import Dict, List, Tuple, Union

from app.models.classification import IssueCategory

DEFAULT_DEPARTMENTS: Tuple[str, ...] = ("Public Works",)

DEPARTMENTS_BY_CATEGORY: Dict[str, Tuple[str, ...]] = {
    IssueCategory.INFRASTRUCTURE.value: ("Public Works", "Roads & Highways", "Building Department", "Engineering"),
    IssueCategory.SAFETY.value: ("Police Department", "Fire Department", "Traffic Police", "Emergency Services"),
    IssueCategory.ENVIRONMENT.value: ("Sanitation Department", "Environmental Health", "Waste Management", "Pollution Control"),
    IssueCategory.TRANSPORTATION.value: ("Transport Department", "Traffic Management", "Public Transit Authority", "Parking Authority"),
    IssueCategory.PUBLIC_SERVICES.value: ("Municipal Corporation", "Citizen Services", "Health Department", "Social Welfare"),
    IssueCategory.UTILITIES.value: ("Electricity Board", "Water Authority", "Gas Department", "Telecom Services"),
    IssueCategory.PARKS_AND_RECREATION.value: ("Parks Department", "Sports Authority", "Community Services", "Horticulture"),
}


def departments_for(category: Union[IssueCategory, str, None]) -> List[str]:
    """
    Ordered candidate departments for a category.

    Total: unknown or empty categories get the generic default list.
    Returns a new list on every call so callers may mutate it freely.
    """
    key = category.value if isinstance(category, IssueCategory) else category
    return list(DEPARTMENTS_BY_CATEGORY.get(key or "", DEFAULT_DEPARTMENTS))


def match_department(category: IssueCategory, suggestion: str) -> str:
    """
    Map a model-suggested department onto the category's candidates.

    Matching is case-insensitive; a suggestion outside the candidate list
    resolves to the category's primary department.
    """
    candidates = departments_for(category)
    wanted = suggestion.strip().casefold()
    for candidate in candidates:
        if candidate.casefold() == wanted:
            return candidate
    return candidates[0]
