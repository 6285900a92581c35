"""Tests for shared step, test run, session, milestone and project documents."""

import json
from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import bulk_documents, indexed_document
from search_sync.models import (
    CaseField,
    CaseFieldType,
    Configuration,
    FieldIcon,
    Milestone,
    MilestoneType,
    Project,
    SessionFieldValue,
    SharedStepGroup,
    SharedStepItem,
    Tag,
    Template,
    TestRun,
    TestSession,
    User,
    Workflow,
)
from search_sync.services.milestone_sync import (
    build_milestone_document,
    get_child_milestone_ids,
    sync_project_milestones,
)
from search_sync.services.project_sync import build_project_document, sync_all_projects, sync_project
from search_sync.services.session_sync import build_session_document, sync_project_sessions
from search_sync.services.shared_step_sync import (
    build_shared_step_document,
    sync_project_shared_step_groups,
    sync_shared_step_group,
)
from search_sync.services.test_run_sync import (
    build_test_run_document,
    count_project_test_runs,
    sync_project_test_runs,
    sync_test_run,
)


def rich(text: str) -> str:
    return json.dumps({"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}]})


# ---------------------------------------------------------------------------
# Shared step groups
# ---------------------------------------------------------------------------

class TestSharedStepDocuments:

    @pytest.mark.asyncio
    async def test_document(self, db_session: AsyncSession, project: Project, user: User):
        group = SharedStepGroup(
            project_id=project.id,
            name="Login",
            created_by_id=user.id,
            items=[
                SharedStepItem(order=1, step=rich("Submit"), expected_result=rich("Dashboard")),
                SharedStepItem(order=0, step="Open login page"),
            ],
        )
        db_session.add(group)
        await db_session.commit()

        doc = await build_shared_step_document(db_session, group.id)

        assert doc["name"] == "Login"
        assert doc["projectName"] == "Checkout"
        assert [item["step"] for item in doc["items"]] == ["Open login page", "Submit"]
        assert doc["items"][1]["expectedResult"] == "Dashboard"
        assert doc["createdByName"] == "Ada Tester"
        assert doc["searchableContent"] == "Login Open login page Submit Dashboard"

    @pytest.mark.asyncio
    async def test_sync_missing_group_deletes(self, db_session: AsyncSession, es):
        assert await sync_shared_step_group(db_session, es, 77) is True
        es.delete.assert_awaited_once_with(index="testplanit-shared-steps", id="77", refresh=True)

    @pytest.mark.asyncio
    async def test_project_backfill_pages(self, db_session: AsyncSession, es, project: Project, user: User):
        db_session.add_all([
            SharedStepGroup(project_id=project.id, name=f"Group {i}", created_by_id=user.id)
            for i in range(3)
        ])
        await db_session.commit()
        messages = []

        async def on_progress(processed: int, total: int, message: str) -> None:
            messages.append(message)

        result = await sync_project_shared_step_groups(
            db_session, es, project.id, batch_size=2, progress_callback=on_progress
        )

        assert result.indexed == 3
        assert es.bulk.await_count == 2
        assert messages == [
            "Starting sync of 3 shared step groups",
            "Synced 2/3 shared step groups",
            "Synced 3/3 shared step groups",
        ]


# ---------------------------------------------------------------------------
# Test runs
# ---------------------------------------------------------------------------

class TestTestRunDocuments:

    @pytest.mark.asyncio
    async def test_document(
        self,
        db_session: AsyncSession,
        project: Project,
        user: User,
        workflow_state: Workflow,
    ):
        milestone = Milestone(project_id=project.id, name="Release 2", created_by_id=user.id)
        run = TestRun(
            project_id=project.id,
            name="Nightly regression",
            note=rich("Run against staging"),
            docs=None,
            configuration=Configuration(name="Chrome / Linux"),
            milestone=milestone,
            state=workflow_state,
            elapsed=3600,
            is_completed=True,
            completed_at=datetime(2024, 5, 1, 6, 30),
            test_run_type="JUNIT",
            created_by_id=user.id,
            tags=[Tag(name="nightly")],
        )
        db_session.add(run)
        await db_session.commit()

        doc = await build_test_run_document(db_session, run.id)

        assert doc["configurationName"] == "Chrome / Linux"
        assert doc["milestoneName"] == "Release 2"
        assert doc["stateName"] == "Ready"
        assert doc["note"] == "Run against staging"
        assert doc["docs"] == ""
        assert doc["completedAt"] == "2024-05-01T06:30:00.000Z"
        assert doc["testRunType"] == "JUNIT"
        assert doc["tags"] == [{"id": run.tags[0].id, "name": "nightly"}]
        assert doc["searchableContent"] == "Nightly regression Run against staging nightly"

    @pytest.mark.asyncio
    async def test_soft_deleted_run_is_indexed(self, db_session: AsyncSession, es, project: Project, user: User):
        run = TestRun(project_id=project.id, name="Old run", created_by_id=user.id, is_deleted=True)
        db_session.add(run)
        await db_session.commit()

        assert await sync_test_run(db_session, es, run.id) is True
        assert indexed_document(es)["isDeleted"] is True

    @pytest.mark.asyncio
    async def test_project_backfill_single_bulk(self, db_session: AsyncSession, es, project: Project, user: User):
        db_session.add_all([
            TestRun(project_id=project.id, name=f"Run {i}", created_by_id=user.id)
            for i in range(4)
        ])
        await db_session.commit()

        result = await sync_project_test_runs(db_session, es, project.id)

        assert es.bulk.await_count == 1
        assert result.indexed == 4
        assert await count_project_test_runs(db_session, project.id) == 4


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestSessionDocuments:

    @pytest.mark.asyncio
    async def test_document_with_assignee_and_custom_fields(
        self,
        db_session: AsyncSession,
        project: Project,
        user: User,
        template: Template,
    ):
        tester = User(id="user-2", name="Grace Hopper", image=None)
        field = CaseField(
            display_name="Browser",
            system_name="browser",
            field_type=CaseFieldType(type="Text String"),
        )
        db_session.add_all([tester, field])
        await db_session.flush()

        session = TestSession(
            project_id=project.id,
            template_id=template.id,
            name="Explore checkout",
            mission=rich("Find coupon bugs"),
            assigned_to_id=tester.id,
            estimate=1800,
            created_by_id=user.id,
            session_field_values=[SessionFieldValue(field_id=field.id, value="Firefox")],
        )
        db_session.add(session)
        await db_session.commit()

        doc = await build_session_document(db_session, session.id)

        assert doc["templateName"] == "Default"
        assert doc["mission"] == "Find coupon bugs"
        assert doc["assignedToId"] == "user-2"
        assert doc["assignedToName"] == "Grace Hopper"
        assert doc["assignedToImage"] is None
        assert doc["createdByName"] == "Ada Tester"
        assert doc["customFields"] == [{
            "fieldId": field.id,
            "fieldName": "Browser",
            "fieldType": "Text String",
            "value": "Firefox",
            "valueKeyword": "Firefox",
        }]
        assert doc["searchableContent"] == "Explore checkout Find coupon bugs Firefox"

    @pytest.mark.asyncio
    async def test_unassigned_session(self, db_session: AsyncSession, es, project: Project, user: User):
        db_session.add(TestSession(project_id=project.id, name="Solo", created_by_id=user.id))
        await db_session.commit()

        result = await sync_project_sessions(db_session, es, project.id)

        (doc,) = bulk_documents(es)
        assert result.indexed == 1
        assert doc["assignedToName"] is None
        assert doc["templateName"] is None
        assert doc["customFields"] == []


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------

class TestMilestoneDocuments:

    @pytest.mark.asyncio
    async def test_document_with_type_and_parent(self, db_session: AsyncSession, project: Project, user: User):
        parent = Milestone(project_id=project.id, name="2024", created_by_id=user.id)
        child = Milestone(
            project_id=project.id,
            name="Q2",
            parent=parent,
            milestone_type=MilestoneType(name="Sprint", icon=FieldIcon(name="flag")),
            due_date=datetime(2024, 6, 30),
            docs=rich("Ship payments"),
            created_by_id=user.id,
        )
        db_session.add(child)
        await db_session.commit()

        doc = await build_milestone_document(db_session, child.id)

        assert doc["parentId"] == parent.id
        assert doc["parentName"] == "2024"
        assert doc["milestoneTypeName"] == "Sprint"
        assert doc["milestoneTypeIcon"] == "flag"
        assert doc["dueDate"] == "2024-06-30T00:00:00.000Z"
        assert doc["completedAt"] is None
        assert doc["searchableContent"] == "Q2 Ship payments"

    @pytest.mark.asyncio
    async def test_child_ids(self, db_session: AsyncSession, project: Project, user: User):
        parent = Milestone(project_id=project.id, name="2024", created_by_id=user.id)
        children = [
            Milestone(project_id=project.id, name=name, parent=parent, created_by_id=user.id)
            for name in ("Q1", "Q2")
        ]
        db_session.add_all([parent, *children])
        await db_session.commit()

        assert await get_child_milestone_ids(db_session, parent.id) == [c.id for c in children]
        assert await get_child_milestone_ids(db_session, children[0].id) == []

    @pytest.mark.asyncio
    async def test_project_backfill(self, db_session: AsyncSession, es, project: Project, user: User):
        db_session.add(Milestone(project_id=project.id, name="Beta", created_by_id=user.id))
        await db_session.commit()

        result = await sync_project_milestones(db_session, es, project.id)

        assert result.indexed == 1
        assert bulk_documents(es)[0]["parentName"] is None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class TestProjectDocuments:

    @pytest.mark.asyncio
    async def test_document(self, db_session: AsyncSession, project: Project):
        doc = await build_project_document(db_session, project.id)
        assert doc["name"] == "Checkout"
        assert doc["iconUrl"] == "https://cdn.example.com/icons/checkout.png"
        assert doc["createdById"] == "user-1"
        assert doc["createdByName"] == "Ada Tester"
        assert "projectId" not in doc

    @pytest.mark.asyncio
    async def test_sync(self, db_session: AsyncSession, es, project: Project):
        assert await sync_project(db_session, es, project.id) is True
        assert es.index.await_args.kwargs["index"] == "testplanit-projects"

    @pytest.mark.asyncio
    async def test_sync_all_includes_deleted(self, db_session: AsyncSession, es, project: Project, user: User):
        db_session.add(Project(name="Archive", created_by=user.id, is_deleted=True))
        await db_session.commit()

        result = await sync_all_projects(db_session, es)

        assert result.indexed == 2
        assert [doc["isDeleted"] for doc in bulk_documents(es)] == [False, True]
