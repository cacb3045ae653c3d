"""Team ordering and hierarchy report rendering."""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from ..models.team import Team, TeamRecord

ROOT = None


def _parents_within(teams: Sequence[Team]) -> Dict[str, Optional[str]]:
    """Map each slug to its parent slug.

    Parents outside the listing are dropped, so such teams become roots. A
    parent chain that loops back on itself is cut where the loop is found.
    """
    slugs = {team.slug for team in teams}
    parents = {
        team.slug: team.parent_slug if team.parent_slug in slugs else None
        for team in teams
    }

    for slug in parents:
        seen = {slug}
        current = parents[slug]
        while current is not None:
            if current in seen:
                logger.warning(f'Team hierarchy cycle detected at {current}')
                parents[current] = None
                break
            seen.add(current)
            current = parents[current]

    return parents


def team_depths(teams: Sequence[Team]) -> Dict[str, int]:
    """Length of each team's parent chain (roots are 0)."""
    parents = _parents_within(teams)
    depths: Dict[str, int] = {}

    def depth_of(slug: str) -> int:
        if slug not in depths:
            parent = parents[slug]
            depths[slug] = 0 if parent is None else depth_of(parent) + 1
        return depths[slug]

    for slug in parents:
        depth_of(slug)
    return depths


def sort_teams_by_hierarchy(teams: Sequence[Team]) -> List[Team]:
    """Order teams so every parent precedes its children.

    Teams are sorted by depth; within a depth the listing order is kept.
    """
    depths = team_depths(teams)
    return sorted(teams, key=lambda team: depths[team.slug])


def build_adjacency(teams: Sequence[Team]) -> Dict[Optional[str], List[str]]:
    """Parent slug to child slugs; roots are listed under ``None``."""
    parents = _parents_within(teams)
    adjacency: Dict[Optional[str], List[str]] = {ROOT: []}
    for team in teams:
        adjacency.setdefault(team.slug, [])
    for team in teams:
        adjacency[parents[team.slug]].append(team.slug)
    return adjacency


def render_hierarchy(
    adjacency: Mapping[Optional[str], List[str]],
    records: Mapping[str, TeamRecord],
    username_mappings: Optional[Mapping[str, str]] = None,
    parent: Optional[str] = ROOT,
    _visited: Optional[frozenset] = None,
) -> List[Dict[str, Any]]:
    """Render the nested team report starting below ``parent``.

    Args:
        adjacency: Output of :func:`build_adjacency`
        records: Team records keyed by source slug
        username_mappings: Source login to target login
        parent: Slug whose subtree is rendered (``None`` for the roots)

    Returns:
        One dict per child team, each with its own ``children``
    """
    mappings = username_mappings or {}
    visited = _visited or frozenset()
    rendered = []

    for slug in adjacency.get(parent, []):
        if slug in visited or slug not in records:
            continue
        record = records[slug]
        rendered.append(
            {
                'name': record.source.name,
                'slug': slug,
                'state': record.state.value,
                'idp_group': record.idp_group,
                'members': [
                    {
                        'source_login': member.login,
                        'target_login': mappings.get(member.login, member.login),
                        'role': member.role,
                    }
                    for member in record.members
                ],
                'repositories': [
                    {'name': repo.name, 'permission': repo.permission}
                    for repo in record.repositories
                ],
                'children': render_hierarchy(
                    adjacency, records, mappings, slug, visited | {slug}
                ),
            }
        )

    return rendered
