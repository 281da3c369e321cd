"""
Name matching used to map CSV hierarchy labels onto existing Teamleader entities
"""
from typing import Iterable, List, Optional

from models import RemoteEntity


def normalize_name(name: Optional[str]) -> str:
    return (name or '').lower().strip()


def is_close(candidate_name: Optional[str], wanted_name: Optional[str]) -> bool:
    """
    Decide whether an existing entity name is close enough to a wanted label.

    Two names match when, after lowercasing and trimming, one contains the
    other, or both are at least three characters long and share their first
    three characters. Short common prefixes ("Proj" / "Production") therefore
    match as well.
    """
    a = normalize_name(candidate_name)
    b = normalize_name(wanted_name)
    if a in b or b in a:
        return True
    if len(a) >= 3 and len(b) >= 3 and a[:3] == b[:3]:
        return True
    return False


def pick_best_match(candidates: Iterable[RemoteEntity], wanted_name: str) -> Optional[RemoteEntity]:
    """
    Pick the closest candidate for a label

    Among matching candidates the longest name wins; equal lengths keep the
    order the API returned them in.
    """
    best = None
    for candidate in candidates:
        if not is_close(candidate.name, wanted_name):
            continue
        if best is None or len(candidate.name.strip()) > len(best.name.strip()):
            best = candidate
    return best


def find_ticket_match(candidates: Iterable[RemoteEntity], ticket_ids: Optional[List[str]]) -> Optional[RemoteEntity]:
    """Return the first candidate whose name mentions any of the ticket ids"""
    wanted = [t.strip().lower() for t in (ticket_ids or []) if t and t.strip()]
    if not wanted:
        return None
    for candidate in candidates:
        name = normalize_name(candidate.name)
        if any(ticket in name for ticket in wanted):
            return candidate
    return None
