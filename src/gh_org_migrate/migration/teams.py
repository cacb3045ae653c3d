"""Team migration: hierarchy, membership, repository permissions, IdP groups."""

from typing import Dict, List, Optional

from ..api.pagination import collect
from ..models.team import (
    IdpGroup,
    Team,
    TeamCreate,
    TeamMember,
    TeamRecord,
    TeamRepository,
    TeamState,
)
from ..teams.hierarchy import build_adjacency, render_hierarchy, sort_teams_by_hierarchy
from ..utils.batching import run_in_batches
from .strategy import MigrationReport, MigrationStatus, MigrationStrategy


class TeamMigrationStrategy(MigrationStrategy):
    """Recreates source teams at the target, parents before children."""

    component = 'teams'

    async def run(self, report: MigrationReport) -> None:
        self.logger.info(f'Fetching teams from source organization: {self.source.org}')
        listing = await collect(self.source, f'/orgs/{self.source.org}/teams')
        teams = sort_teams_by_hierarchy([Team(**t) for t in listing])
        self.logger.info(f'Found {len(teams)} teams in source organization: {self.source.org}')

        idp_groups = await self.list_idp_groups()
        target_teams = await self.list_target_teams()

        records: Dict[str, TeamRecord] = {}
        for team in teams:
            record = TeamRecord(source=team)
            records[team.slug] = record
            try:
                await self.process_team(record, records, target_teams, idp_groups, report)
            except Exception as e:
                record.state = TeamState.FAILED
                self.record_failure(report, 'team', team.slug, e)

        hierarchy = render_hierarchy(
            build_adjacency(teams), records, self.context.username_mappings
        )
        report.details['hierarchy'] = hierarchy
        self.logger.debug(f'Team hierarchy: {hierarchy}')

    async def list_target_teams(self) -> Dict[str, Team]:
        listing = await collect(self.target, f'/orgs/{self.target.org}/teams')
        return {team['slug']: Team(**team) for team in listing}

    async def list_idp_groups(self) -> Dict[str, IdpGroup]:
        """Target IdP groups keyed by group name; empty when none are configured."""
        settings = self.context.config.migration
        if not settings.idp_groups and not settings.idp_group_default:
            return {}

        try:
            listing = await collect(
                self.target, f'/orgs/{self.target.org}/team-sync/groups', item_key='groups'
            )
        except Exception as e:
            self.logger.warning(f'Could not list IdP groups of {self.target.org}: {e}')
            return {}

        groups = {g['group_name']: IdpGroup(**g) for g in listing}
        self.logger.info(f'Found {len(groups)} IdP groups in {self.target.org}')
        return groups

    async def fetch_members(self, team: Team) -> List[TeamMember]:
        """Members of a source team with their individually fetched roles."""
        members = await collect(
            self.source, f'/orgs/{self.source.org}/teams/{team.slug}/members'
        )

        async def fetch_role(member):
            response = await self.source.get_async(
                f'/orgs/{self.source.org}/teams/{team.slug}/memberships/{member["login"]}'
            )
            return TeamMember(login=member['login'], role=response.data['role'])

        results = await run_in_batches(members, fetch_role, self.context.concurrency)
        fetched = []
        for member, result in zip(members, results):
            if isinstance(result, Exception):
                self.logger.warning(
                    f'Error fetching membership for {member["login"]}: {result}'
                )
                continue
            fetched.append(result)
        return fetched

    async def fetch_repositories(self, team: Team) -> List[TeamRepository]:
        self.logger.debug(f'Fetching repositories for team: {team.name}')
        try:
            repos = await collect(
                self.source, f'/orgs/{self.source.org}/teams/{team.slug}/repos'
            )
        except Exception as e:
            self.logger.error(f'Error fetching repositories for team {team.name}: {e}')
            return []
        return [TeamRepository.from_api(repo) for repo in repos]

    def parent_destination_id(
        self, team: Team, records: Dict[str, TeamRecord]
    ) -> Optional[int]:
        """Destination id of the parent, if the parent was created or found in this run."""
        if not team.parent_slug:
            return None
        parent = records.get(team.parent_slug)
        if parent is None or parent.destination_id is None:
            self.logger.debug(f'Parent {team.parent_slug} of {team.slug} not migrated')
            return None
        return parent.destination_id

    async def process_team(
        self,
        record: TeamRecord,
        records: Dict[str, TeamRecord],
        target_teams: Dict[str, Team],
        idp_groups: Dict[str, IdpGroup],
        report: MigrationReport,
    ) -> None:
        team = record.source
        self.logger.debug(f'Processing team: {team.name}')

        record.members = await self.fetch_members(team)
        record.repositories = await self.fetch_repositories(team)
        record.state = TeamState.MEMBERS_FETCHED

        group_name = self.context.config.migration.idp_group_for(team.name)
        group = idp_groups.get(group_name) if group_name else None
        if group_name and group is None:
            self.logger.warning(f'IdP group {group_name} not found for team {team.name}')
        record.idp_group = group.group_name if group else None

        if self.dry_run:
            self.record_dry_run(record, target_teams, report)
            return

        existing = target_teams.get(team.slug)
        if existing is not None:
            self.logger.info(f'Team {team.slug} already exists in target organization')
            record.destination_id = existing.id
            record.destination_slug = existing.slug
            status_message = 'already exists'
        else:
            await self.create_team(record, records)
            status_message = None
        record.state = TeamState.CREATED

        if group is not None:
            await self.link_idp_group(record, group, report)

        await self.replay_members(record, report)
        record.state = TeamState.MEMBERS_REPLAYED

        await self.replay_repositories(record, report)
        record.state = TeamState.PERMISSIONS_REPLAYED

        report.add_item(
            'team', team.slug, MigrationStatus.COMPLETED, self.target.org, status_message,
            destination_id=record.destination_id,
            parent_team_id=record.parent_destination_id,
        )

    def record_dry_run(
        self, record: TeamRecord, target_teams: Dict[str, Team], report: MigrationReport
    ) -> None:
        team = record.source
        parent = f' (Parent: {team.parent.name or team.parent.slug})' if team.parent else ''
        if team.slug in target_teams:
            self.logger.info(f'{self.prefix}Team {team.name} already exists; would reuse it')
        else:
            self.logger.info(f'{self.prefix}Would create team: {team.name}{parent}')

        for repo in record.repositories:
            self.logger.info(
                f'{self.prefix}Would add repository {repo.name} with {repo.permission} permission'
            )
        for member in record.members:
            target_login = self.context.target_login(member.login)
            if target_login != member.login:
                self.logger.info(f'{self.prefix}Would map user {member.login} to {target_login}')
        if record.idp_group:
            self.logger.info(f'{self.prefix}Would link IdP group {record.idp_group}')

        record.state = TeamState.DRY_RUN_RECORDED
        report.add_item(
            'team', team.slug, MigrationStatus.DRY_RUN, self.target.org,
            parent=team.parent_slug,
        )

    async def create_team(self, record: TeamRecord, records: Dict[str, TeamRecord]) -> None:
        team = record.source
        payload = TeamCreate(
            name=team.name,
            description=team.description,
            privacy=team.privacy,
            permission=team.permission,
            parent_team_id=self.parent_destination_id(team, records),
        )

        self.logger.info(f'Creating team in target organization: {team.name}')
        response = await self.target.post_async(
            f'/orgs/{self.target.org}/teams', data=payload.model_dump(exclude_none=True)
        )
        record.destination_id = response.data['id']
        record.destination_slug = response.data['slug']
        record.parent_destination_id = payload.parent_team_id

        parent = f' (Parent: {team.parent_slug})' if payload.parent_team_id else ''
        self.logger.info(f'Successfully created team: {team.name}{parent}')

    async def link_idp_group(
        self, record: TeamRecord, group: IdpGroup, report: MigrationReport
    ) -> None:
        try:
            await self.target.patch_async(
                f'/orgs/{self.target.org}/teams/{record.destination_slug}'
                f'/team-sync/group-mappings',
                data={'groups': [group.model_dump(exclude_none=True)]},
            )
            self.logger.info(
                f'Linked IdP group {group.group_name} to team {record.destination_slug}'
            )
        except Exception as e:
            error_msg = f'Unable to link IdP group {group.group_name} to team {record.source.slug}: {e}'
            self.logger.warning(error_msg)
            report.add_error(error_msg)

    async def replay_members(self, record: TeamRecord, report: MigrationReport) -> None:
        self.logger.info(f'Migrating members for team: {record.source.name}')
        for member in record.members:
            target_login = self.context.target_login(member.login)
            if target_login != member.login:
                self.logger.debug(f'Mapping user {member.login} to {target_login}')
            try:
                await self.target.put_async(
                    f'/orgs/{self.target.org}/teams/{record.destination_slug}'
                    f'/memberships/{target_login}',
                    data={'role': member.role},
                )
                self.logger.debug(
                    f'Added {target_login} to team {record.destination_slug} '
                    f'with role {member.role}'
                )
            except Exception as e:
                error_msg = (
                    f'Unable to add {member.login} to team {record.source.slug}: {e}'
                )
                self.logger.warning(error_msg)
                report.add_error(error_msg)

    async def replay_repositories(self, record: TeamRecord, report: MigrationReport) -> None:
        self.logger.info(
            f'Migrating {len(record.repositories)} repositories for team: {record.source.name}'
        )
        for repo in record.repositories:
            if not await self.target_repository_exists(repo.name):
                continue
            try:
                await self.target.put_async(
                    f'/orgs/{self.target.org}/teams/{record.destination_slug}'
                    f'/repos/{self.target.org}/{repo.name}',
                    data={'permission': repo.permission},
                )
                self.logger.debug(
                    f'Added repository {repo.name} to team {record.destination_slug} '
                    f'with permission {repo.permission}'
                )
            except Exception as e:
                error_msg = (
                    f'Unable to set permissions for repository {repo.name} '
                    f'in team {record.source.slug}: {e}'
                )
                self.logger.warning(error_msg)
                report.add_error(error_msg)
