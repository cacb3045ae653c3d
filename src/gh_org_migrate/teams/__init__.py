"""Team hierarchy ordering and rendering."""

from .hierarchy import (
    sort_teams_by_hierarchy,
    team_depths,
    build_adjacency,
    render_hierarchy,
)

__all__ = ['sort_teams_by_hierarchy', 'team_depths', 'build_adjacency', 'render_hierarchy']
